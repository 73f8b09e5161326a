"""Workflow DTOs."""

from collections.abc import Callable
from dataclasses import dataclass

from pydantic import BaseModel

from speckit_studio.domain.entities.artifact_tree import ArtifactNode
from speckit_studio.domain.entities.cancellation import CancellationToken
from speckit_studio.domain.entities.project_state import (
    Attachment,
    ChatMessage,
    ProjectState,
    WorkflowStep,
)

# Receives short human-readable status lines ("正在生成文档...") while a turn runs.
ProgressCallback = Callable[[str], None]


class TurnResult(BaseModel):
    """What one orchestrator turn hands back to the host.

    None means "not touched by this turn"; the host keeps its current value.
    """

    messages: list[ChatMessage]
    files: ArtifactNode
    next_step: WorkflowStep
    active_file_id: str | None = None
    updated_context: str | None = None
    updated_round: int | None = None
    completed_steps: list[WorkflowStep] | None = None


@dataclass
class TurnContext:
    """Inputs shared by every handler of a single turn."""

    state: ProjectState
    system_files: ArtifactNode
    token: CancellationToken
    on_progress: ProgressCallback | None = None
    attachments: list[Attachment] | None = None

    def progress(self, status: str) -> None:
        if self.on_progress is not None:
            self.on_progress(status)

    def unchanged(self, messages: list[ChatMessage] | None = None) -> TurnResult:
        """Result that leaves the state as it was, optionally with messages."""
        return TurnResult(
            messages=messages or [],
            files=self.state.files,
            next_step=self.state.current_step,
            active_file_id=self.state.active_file_id,
            updated_context=self.state.requirement_context,
            updated_round=self.state.clarification_round,
            completed_steps=list(self.state.completed_steps),
        )
