"""Spec workflow use case - the two per-turn entry points of the orchestrator."""

import logging

from speckit_studio.application.workflow import replies
from speckit_studio.application.workflow.clarification import ClarificationEngine
from speckit_studio.application.workflow.dto import ProgressCallback, TurnContext, TurnResult
from speckit_studio.application.workflow.stages import StageHandlers
from speckit_studio.domain.entities.artifact_tree import ArtifactNode
from speckit_studio.domain.entities.cancellation import CancellationToken, ensure_token
from speckit_studio.domain.entities.operations import is_command
from speckit_studio.domain.entities.project_state import (
    Attachment,
    ChatMessage,
    ProjectState,
    WorkflowStep,
)
from speckit_studio.domain.services.intent_detector import IntentDetector
from speckit_studio.infrastructure.llm.generation_backend import GenerationBackend

logger = logging.getLogger(__name__)

EXIT_KEYWORDS = ("退出", "暂停", "exit", "stop", "pause")


def is_exit_request(text: str) -> bool:
    lowered = text.lower()
    return any(k in lowered for k in EXIT_KEYWORDS)


class SpecWorkflowUseCase:
    """Routes a user message or action click to clarification or a stage handler.

    Without a backend every generation step uses scripted offline documents
    after a cancellable delay, so the whole flow can be exercised locally.
    """

    def __init__(
        self,
        backend: GenerationBackend | None = None,
        mock_delay_seconds: float = 1.0,
        intent_detector: IntentDetector | None = None,
    ) -> None:
        self._backend = backend
        self._intents = intent_detector or IntentDetector(
            classify=backend.classify if backend is not None else None
        )
        self._clarification = ClarificationEngine(backend, mock_delay_seconds)
        self._stages = StageHandlers(backend, self._clarification, mock_delay_seconds)

    @property
    def has_backend(self) -> bool:
        return self._backend is not None

    async def handle_user_message(
        self,
        text: str,
        state: ProjectState,
        system_files: ArtifactNode,
        attachments: list[Attachment] | None = None,
        token: CancellationToken | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> TurnResult:
        """Process one free-text message (plus optional images)."""
        ctx = TurnContext(state, system_files, ensure_token(token), on_progress, attachments)
        ctx.token.raise_if_cancelled()

        intent = await self._intents.detect(text)
        if is_command(intent):
            logger.info("Message dispatched as command %s", intent)
            return await self._stages.dispatch(intent, f"User Trigger: {text}", ctx)

        step = state.current_step
        if step == WorkflowStep.INIT:
            return await self._clarification.run(text, ctx)

        if step == WorkflowStep.CLARIFYING:
            if is_exit_request(text):
                logger.info("Clarification paused")
                paused = ctx.unchanged([ChatMessage.bot(replies.PAUSED, prefix="bot-pause")])
                return paused.model_copy(update={"next_step": WorkflowStep.PAUSED})
            return await self._clarification.run(text, ctx)

        # Paused, or anything after the first answer: treat the message as
        # another clarification answer (resume or refinement).
        if step == WorkflowStep.PAUSED or state.requirement_context:
            return await self._clarification.run(text, ctx)

        logger.warning("Unknown workflow state %s with empty context, resetting", step.value)
        return TurnResult(
            messages=[ChatMessage.bot(replies.UNKNOWN_STATE, prefix="bot-err")],
            files=state.files,
            next_step=WorkflowStep.INIT,
        )

    async def handle_action_click(
        self,
        operation_id: str,
        label: str,
        state: ProjectState,
        system_files: ArtifactNode,
        token: CancellationToken | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> TurnResult:
        """Process a click on a suggested action (clarification option or next stage)."""
        ctx = TurnContext(state, system_files, ensure_token(token), on_progress)
        ctx.token.raise_if_cancelled()
        return await self._stages.dispatch(operation_id, label, ctx)
