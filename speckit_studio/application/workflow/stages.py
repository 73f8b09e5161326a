"""Stage handlers - one per workflow operation, dispatched through a total mapping.

Every handler reads the current spec (except regeneration, which works from the
requirement context), builds a system context from charters and templates, calls
the backend, and writes its documents into a fixed folder of the project tree.
A missing spec.md makes a handler a silent no-op.
"""

import logging
import re
from collections.abc import Awaitable, Callable

from speckit_studio.application.workflow import offline, replies
from speckit_studio.application.workflow.clarification import ClarificationEngine
from speckit_studio.application.workflow.documents import (
    ANALYSIS_FILE,
    CHECKLIST_FILE,
    PM_FOLDER,
    SPECS_FOLDER,
    TASKS_FILE,
    TECH_FOLDER,
    TEST_FOLDER,
    find_spec,
    project_documents,
    spec_system_context,
    write_documents,
)
from speckit_studio.application.workflow.dto import TurnContext, TurnResult
from speckit_studio.application.workflow.prompts import (
    ANALYZE_PROMPT,
    AUTOTEST_PROMPT,
    CHECKLIST_PROMPT,
    COMPLETE_PROMPT,
    COMPLETE_SYSTEM,
    REGENERATE_PROMPT,
    SLUG_PROMPT,
    SLUG_SYSTEM,
    TASKS_PROMPT,
    TECH_PROMPT,
    format_documents,
)
from speckit_studio.domain.entities.artifact_tree import (
    ArtifactNode,
    add_to_folder,
    ensure_folder,
    make_file,
    update_file_content,
    upsert_file,
)
from speckit_studio.domain.entities.operations import Operation
from speckit_studio.domain.entities.project_state import ChatMessage, WorkflowStep, mark_completed
from speckit_studio.domain.services.context_aggregator import (
    AUTOTEST_TEMPLATES_ID,
    CMD_ANALYZE,
    CMD_AUTOTEST,
    CMD_CHECKLIST,
    CMD_TASKS,
    CMD_TECH,
    STD_KB,
    STD_TEST,
    STD_TEST_TABLE,
    TECH_TEMPLATES_ID,
    TEMPLATES_ROOT_ID,
    collect_context,
    collect_product_charter,
    collect_standards,
    construct_system_context,
)
from speckit_studio.domain.services.platform_detector import detect_platforms
from speckit_studio.infrastructure.llm.generation_backend import GenerationBackend

logger = logging.getLogger(__name__)

StageHandler = Callable[[TurnContext, str, str], Awaitable[TurnResult]]

DEFAULT_SLUG = "update"
_SLUG_RE = re.compile(r"[^a-zA-Z0-9-]")

_SECTION4_RE = re.compile(r"^##\s+4(?!\d)", re.MULTILINE)
_PENDING_RE = re.compile(r"> \*\*Pending Generation")
_PENDING_SEPARATOR_RE = re.compile(r"\n---\n> \*\*Pending")


def sanitize_slug(raw: str) -> str:
    """Kebab-case file suffix: [a-z0-9-] only, at most 40 chars, no edge hyphens."""
    slug = _SLUG_RE.sub("", (raw or "").strip()).lower()[:40] or DEFAULT_SLUG
    return slug.strip("-") or DEFAULT_SLUG


def unique_spec_name(folder: ArtifactNode | None, slug: str) -> str:
    """spec-<slug>.md, or spec-<slug>-<n>.md (n = 1, 2, ...) when taken."""
    taken = {c.name for c in (folder.children or [])} if folder is not None else set()
    name = f"spec-{slug}.md"
    counter = 1
    while name in taken:
        name = f"spec-{slug}-{counter}.md"
        counter += 1
    return name


def merge_completed_sections(spec: str, additional: str) -> str:
    """Replace sections 4+ (or the pending placeholder) of spec with additional.

    Cut point: first "## 4" heading line, else the pending block (with its
    preceding --- separator when present), else nothing is cut.
    """
    cut = None
    heading = _SECTION4_RE.search(spec)
    if heading:
        cut = heading.start()
    else:
        pending = _PENDING_RE.search(spec)
        if pending:
            separator = _PENDING_SEPARATOR_RE.search(spec)
            cut = separator.start() if separator else pending.start()

    body = spec
    if cut is not None:
        body = spec[:cut].strip()
        # Separator left by a previous completion.
        if body.endswith("---"):
            body = body[:-3].rstrip()
    return f"{body}\n\n---\n{additional}"


class StageHandlers:
    """Stage handlers keyed by Operation. Every Operation member has an entry."""

    def __init__(
        self,
        backend: GenerationBackend | None,
        clarification: ClarificationEngine,
        mock_delay_seconds: float = 1.0,
    ) -> None:
        self._backend = backend
        self._clarification = clarification
        self._mock_delay = mock_delay_seconds
        self._handlers: dict[Operation, StageHandler] = {
            Operation.ANSWER_CLARIFICATION: self.answer_clarification,
            Operation.REGENERATE_SPEC: self.regenerate_spec,
            Operation.COMPLETE_SPEC: self.complete_spec,
            Operation.RUN_CHECKLIST: self.run_checklist,
            Operation.RUN_TECH: self.run_tech,
            Operation.RUN_AUTOTEST: self.run_autotest,
            Operation.RUN_TASKS: self.run_tasks,
            Operation.RUN_IMPLEMENT: self.run_implement,
            Operation.RUN_ANALYZE: self.run_analyze,
            Operation.UNKNOWN: self.unknown,
        }
        missing = set(Operation) - set(self._handlers)
        if missing:
            raise RuntimeError(f"No stage handler for: {sorted(m.value for m in missing)}")

    def handler_for(self, operation: Operation) -> StageHandler:
        return self._handlers[operation]

    async def dispatch(self, operation_id: str, label: str, ctx: TurnContext) -> TurnResult:
        operation = Operation.parse(operation_id)
        logger.info("Stage %s started", operation.value)
        result = await self._handlers[operation](ctx, operation_id, label)
        logger.info("Stage %s finished (%d messages)", operation.value, len(result.messages))
        return result

    async def _offline_delay(self, ctx: TurnContext) -> None:
        await ctx.token.sleep(self._mock_delay)

    def _stage_result(
        self,
        ctx: TurnContext,
        files: ArtifactNode,
        step: WorkflowStep,
        message: ChatMessage,
        active_file_id: str | None,
        completed: WorkflowStep | None = None,
    ) -> TurnResult:
        state = ctx.state
        steps = list(state.completed_steps)
        if completed is not None:
            steps = mark_completed(steps, completed)
        return TurnResult(
            messages=[message],
            files=files,
            next_step=step,
            active_file_id=active_file_id,
            updated_context=state.requirement_context,
            updated_round=state.clarification_round,
            completed_steps=steps,
        )

    # --- Handlers ---

    async def answer_clarification(self, ctx: TurnContext, operation_id: str, label: str) -> TurnResult:
        """An option click is the user's answer to the open question."""
        return await self._clarification.run(label, ctx)

    async def regenerate_spec(self, ctx: TurnContext, operation_id: str, label: str) -> TurnResult:
        ctx.progress(replies.PROGRESS_REGENERATE)
        context = ctx.state.requirement_context

        if self._backend is not None:
            content = await self._backend.complete(
                spec_system_context(ctx.system_files, context),
                REGENERATE_PROMPT.format(context=context),
                None,
                ctx.token,
            )
            ctx.progress(replies.PROGRESS_SLUG)
            raw_slug = await self._backend.complete(SLUG_SYSTEM, SLUG_PROMPT.format(context=context), None, ctx.token)
            slug = sanitize_slug(raw_slug)
        else:
            await self._offline_delay(ctx)
            content = offline.regenerated_spec(context)
            slug = offline.regenerate_slug()

        files, folder = ensure_folder(ctx.state.files, SPECS_FOLDER)
        name = unique_spec_name(folder, slug)
        node = make_file(name, content)
        files = add_to_folder(files, folder.id, node)
        logger.info("Regenerated spec written as %s", name)

        return self._stage_result(
            ctx,
            files,
            WorkflowStep.SPEC_GENERATED,
            ChatMessage.bot(replies.REGENERATE_DONE.format(name=name), [replies.run_checklist_action()]),
            node.id,
        )

    async def complete_spec(self, ctx: TurnContext, operation_id: str, label: str) -> TurnResult:
        ctx.progress(replies.PROGRESS_COMPLETE)
        spec_node = find_spec(ctx.state.files)
        if spec_node is None or not spec_node.content:
            logger.info("complete_spec skipped: no spec.md")
            return ctx.unchanged()
        spec = spec_node.content

        if self._backend is not None:
            standards = collect_standards(ctx.system_files, [STD_TEST, STD_TEST_TABLE, STD_KB])
            standards.append(collect_product_charter(ctx.system_files))
            additional = await self._backend.complete(
                COMPLETE_SYSTEM,
                COMPLETE_PROMPT.format(spec=spec, standards="\n".join(standards)),
                None,
                ctx.token,
            )
        else:
            await self._offline_delay(ctx)
            additional = offline.COMPLETED_SECTIONS

        files = update_file_content(ctx.state.files, spec_node.id, merge_completed_sections(spec, additional))
        return self._stage_result(
            ctx,
            files,
            WorkflowStep.SPEC_GENERATED,
            ChatMessage.bot(replies.COMPLETE_DONE, [replies.run_checklist_action()]),
            ctx.state.active_file_id,
        )

    async def run_checklist(self, ctx: TurnContext, operation_id: str, label: str) -> TurnResult:
        ctx.progress(replies.PROGRESS_CHECKLIST)
        spec_node = find_spec(ctx.state.files)
        if spec_node is None or not spec_node.content:
            logger.info("run_checklist skipped: no spec.md")
            return ctx.unchanged()

        if self._backend is not None:
            platforms = detect_platforms(spec_node.content)
            collected = collect_context(ctx.system_files, CMD_CHECKLIST, TEMPLATES_ROOT_ID, platforms)
            report = await self._backend.complete(
                construct_system_context(collected.charters, [], []),
                CHECKLIST_PROMPT.format(spec=spec_node.content),
                None,
                ctx.token,
            )
        else:
            await self._offline_delay(ctx)
            report = offline.CHECKLIST

        files, node = upsert_file(ctx.state.files, SPECS_FOLDER, CHECKLIST_FILE, report)
        return self._stage_result(
            ctx,
            files,
            WorkflowStep.CHECKLIST,
            ChatMessage.bot(replies.CHECKLIST_DONE, [replies.run_tech_action()]),
            node.id,
            WorkflowStep.CHECKLIST,
        )

    async def _per_platform_documents(
        self,
        ctx: TurnContext,
        spec: str,
        command_id: str,
        template_folder_id: str,
        prompt_template: str,
        offline_documents: Callable[[list[str]], dict[str, str]],
    ) -> dict[str, str]:
        platforms = detect_platforms(spec)
        if self._backend is None:
            await self._offline_delay(ctx)
            return offline_documents(platforms)
        collected = collect_context(ctx.system_files, command_id, template_folder_id, platforms)
        return await self._backend.complete_multi_document(
            construct_system_context(collected.charters, collected.templates, []),
            prompt_template.format(spec=spec, platforms=", ".join(platforms)),
            ctx.token,
        )

    async def run_tech(self, ctx: TurnContext, operation_id: str, label: str) -> TurnResult:
        ctx.progress(replies.PROGRESS_TECH)
        spec_node = find_spec(ctx.state.files)
        if spec_node is None or not spec_node.content:
            logger.info("run_tech skipped: no spec.md")
            return ctx.unchanged()

        documents = await self._per_platform_documents(
            ctx, spec_node.content, CMD_TECH, TECH_TEMPLATES_ID, TECH_PROMPT, offline.tech_documents
        )
        files, first_id = write_documents(ctx.state.files, TECH_FOLDER, documents)
        logger.info("Tech design documents: %s", list(documents))
        return self._stage_result(
            ctx,
            files,
            WorkflowStep.TECHDETAIL,
            ChatMessage.bot(replies.TECH_DONE.format(count=len(documents)), [replies.run_autotest_action()]),
            first_id,
            WorkflowStep.TECHDETAIL,
        )

    async def run_autotest(self, ctx: TurnContext, operation_id: str, label: str) -> TurnResult:
        ctx.progress(replies.PROGRESS_AUTOTEST)
        spec_node = find_spec(ctx.state.files)
        if spec_node is None or not spec_node.content:
            logger.info("run_autotest skipped: no spec.md")
            return ctx.unchanged()

        documents = await self._per_platform_documents(
            ctx, spec_node.content, CMD_AUTOTEST, AUTOTEST_TEMPLATES_ID, AUTOTEST_PROMPT, offline.autotest_documents
        )
        files, first_id = write_documents(ctx.state.files, TEST_FOLDER, documents)
        logger.info("Test plan documents: %s", list(documents))
        return self._stage_result(
            ctx,
            files,
            WorkflowStep.AUTOTEST,
            ChatMessage.bot(replies.AUTOTEST_DONE, [replies.run_tasks_action()]),
            first_id,
            WorkflowStep.AUTOTEST,
        )

    async def run_tasks(self, ctx: TurnContext, operation_id: str, label: str) -> TurnResult:
        ctx.progress(replies.PROGRESS_TASKS)
        spec_node = find_spec(ctx.state.files)
        if spec_node is None or not spec_node.content:
            logger.info("run_tasks skipped: no spec.md")
            return ctx.unchanged()

        if self._backend is not None:
            platforms = detect_platforms(spec_node.content)
            collected = collect_context(ctx.system_files, CMD_TASKS, TEMPLATES_ROOT_ID, platforms)
            tasks = await self._backend.complete(
                construct_system_context(collected.charters, [], []),
                TASKS_PROMPT.format(spec=spec_node.content),
                None,
                ctx.token,
            )
        else:
            await self._offline_delay(ctx)
            tasks = offline.TASKS

        files, node = upsert_file(ctx.state.files, PM_FOLDER, TASKS_FILE, tasks)
        return self._stage_result(
            ctx,
            files,
            WorkflowStep.TASKS,
            ChatMessage.bot(replies.TASKS_DONE, [replies.run_implement_action()]),
            node.id,
            WorkflowStep.TASKS,
        )

    async def run_implement(self, ctx: TurnContext, operation_id: str, label: str) -> TurnResult:
        """Not built yet: acknowledge without touching the project."""
        return ctx.unchanged([ChatMessage.bot(replies.IMPLEMENT_PENDING)])

    async def run_analyze(self, ctx: TurnContext, operation_id: str, label: str) -> TurnResult:
        ctx.progress(replies.PROGRESS_ANALYZE)
        spec_node = find_spec(ctx.state.files)
        if spec_node is None or not spec_node.content:
            logger.info("run_analyze skipped: no spec.md")
            return ctx.unchanged()

        documents = project_documents(ctx.state.files)
        if self._backend is not None:
            platforms = detect_platforms(spec_node.content)
            collected = collect_context(ctx.system_files, CMD_ANALYZE, TEMPLATES_ROOT_ID, platforms)
            report = await self._backend.complete(
                construct_system_context(collected.charters, [], []),
                ANALYZE_PROMPT.format(platforms=", ".join(platforms), documents=format_documents(documents)),
                None,
                ctx.token,
            )
        else:
            await self._offline_delay(ctx)
            report = offline.analysis([name for name, _ in documents])

        files, node = upsert_file(ctx.state.files, SPECS_FOLDER, ANALYSIS_FILE, report)
        return self._stage_result(
            ctx,
            files,
            WorkflowStep.ANALYZE,
            ChatMessage.bot(replies.ANALYZE_DONE, [replies.run_tasks_action()]),
            node.id,
            WorkflowStep.ANALYZE,
        )

    async def unknown(self, ctx: TurnContext, operation_id: str, label: str) -> TurnResult:
        return ctx.unchanged([ChatMessage.bot(replies.UNKNOWN_ACTION.format(operation_id=operation_id))])
