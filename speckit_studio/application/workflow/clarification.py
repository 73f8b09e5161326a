"""Clarification engine - question rounds until the requirement is clear, then spec.md."""

import logging

from speckit_studio.application.workflow import offline, replies
from speckit_studio.application.workflow.documents import (
    SPEC_FILE,
    SPECS_FOLDER,
    find_spec,
    spec_system_context,
)
from speckit_studio.application.workflow.dto import TurnContext, TurnResult
from speckit_studio.application.workflow.prompts import REFINEMENT_NOTE, SPEC_PROMPT
from speckit_studio.domain.entities.artifact_tree import upsert_file
from speckit_studio.domain.entities.project_state import (
    MAX_CLARIFICATION_ROUND,
    ChatMessage,
    WorkflowStep,
    mark_completed,
)
from speckit_studio.infrastructure.llm.generation_backend import ClarificationQuestion, GenerationBackend

logger = logging.getLogger(__name__)

# Rounds after which spec.md is generated even if the backend never says "enough".
SPEC_TRIGGER_ROUND = 3


def append_answer(context: str, round_number: int, answer: str, image_count: int = 0) -> str:
    """Requirement context with one more answer recorded."""
    context += f"\nUser Answer (Round {round_number}): {answer}"
    if image_count:
        context += f"\n[User uploaded {image_count} images]"
    return context


class ClarificationEngine:
    """One clarification turn: record the answer, ask or stop, and write spec.md once round >= 3."""

    def __init__(self, backend: GenerationBackend | None, mock_delay_seconds: float = 1.0) -> None:
        self._backend = backend
        self._mock_delay = mock_delay_seconds

    async def run(self, answer: str, ctx: TurnContext) -> TurnResult:
        state = ctx.state
        files = state.files
        context = state.requirement_context
        round_number = state.clarification_round
        active_file_id = state.active_file_id
        completed = list(state.completed_steps)
        messages: list[ChatMessage] = []
        next_step = WorkflowStep.CLARIFYING

        if answer:
            ctx.progress(replies.PROGRESS_RECORDING)
            context = append_answer(context, round_number, answer, len(ctx.attachments or []))

        # History first, then this turn's images, so later rounds keep earlier visual context.
        attachments = [*state.history_attachments(), *(ctx.attachments or [])]

        question = await self._ask(context, round_number, find_spec(files) is not None, attachments, ctx)
        if question.is_enough:
            round_number = MAX_CLARIFICATION_ROUND
        else:
            messages.append(
                ChatMessage.bot(
                    question.question,
                    replies.option_actions(question.options, question.recommendation),
                    prefix="bot-q",
                )
            )
            round_number = min(round_number + 1, MAX_CLARIFICATION_ROUND)
        logger.info("Clarification round %d -> %d (enough=%s)", state.clarification_round, round_number, question.is_enough)

        if round_number >= SPEC_TRIGGER_ROUND:
            ctx.progress(replies.PROGRESS_SPEC)
            next_step = WorkflowStep.SPEC_GENERATED
            content = await self._generate_spec(ctx, context, attachments)
            files, spec_node = upsert_file(files, SPECS_FOLDER, SPEC_FILE, content)
            active_file_id = spec_node.id
            completed = mark_completed(completed, WorkflowStep.SPECIFY)
            messages.append(
                ChatMessage.bot(
                    replies.SPEC_DONE,
                    [replies.complete_spec_action(), replies.run_checklist_action()],
                    prefix="bot-done",
                )
            )
            logger.info("Spec generated (%d chars)", len(content))

        return TurnResult(
            messages=messages,
            files=files,
            next_step=next_step,
            active_file_id=active_file_id,
            updated_context=context,
            updated_round=round_number,
            completed_steps=completed,
        )

    async def _ask(self, context, round_number, has_spec, attachments, ctx: TurnContext) -> ClarificationQuestion:
        if self._backend is None:
            await ctx.token.sleep(self._mock_delay)
            return offline.clarification(round_number)
        ctx.progress(replies.PROGRESS_THINKING)
        prompt_context = context + REFINEMENT_NOTE if has_spec else context
        return await self._backend.clarify(prompt_context, round_number, attachments, ctx.token)

    async def _generate_spec(self, ctx: TurnContext, context: str, attachments) -> str:
        if self._backend is None:
            await ctx.token.sleep(self._mock_delay)
            return offline.spec(context)
        system_context = spec_system_context(ctx.system_files, context)
        return await self._backend.complete(
            system_context,
            SPEC_PROMPT.format(context=context),
            attachments,
            ctx.token,
        )
