"""Session DTOs."""

from pydantic import BaseModel, Field, model_validator

from speckit_studio.application.workflow.dto import TurnResult
from speckit_studio.domain.entities.project_state import Attachment, ProjectState, WorkflowStep


class MessageRequest(BaseModel):
    """User message with optional images. Text or at least one attachment is required."""

    text: str = Field("", max_length=100_000)
    attachments: list[Attachment] = Field(default_factory=list, max_length=20)

    @model_validator(mode="after")
    def _not_empty(self) -> "MessageRequest":
        if not self.text.strip() and not self.attachments:
            raise ValueError("Message must contain text or an attachment")
        return self


class ActionRequest(BaseModel):
    """Click on a suggested action."""

    operation_id: str = Field(..., min_length=1, max_length=100)
    label: str = Field("", max_length=1_000)


class TurnOutcome(BaseModel):
    """Result of a submitted turn as seen by the client.

    applied=False with cancelled=True means a newer request (or stop) won;
    error is set when the turn failed and nothing but the user message was kept.
    """

    applied: bool
    cancelled: bool = False
    error: str | None = None
    result: TurnResult | None = None
    state: ProjectState | None = None


class SessionSummary(BaseModel):
    """Entry of the session list."""

    id: str
    title: str
    last_modified: int
    current_step: WorkflowStep


class FilePatch(BaseModel):
    """Edit of a project or library node. Unset fields are left alone."""

    name: str | None = Field(None, min_length=1, max_length=255)
    content: str | None = Field(None, max_length=1_000_000)
    toggle_expanded: bool = False


class ActiveFileRequest(BaseModel):
    node_id: str | None = Field(None, max_length=255)


class NewFileRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    content: str = Field("", max_length=1_000_000)
