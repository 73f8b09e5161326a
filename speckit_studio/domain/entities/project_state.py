"""Project state - the per-session data owned by the workflow orchestrator."""

import time
import uuid
from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field

from speckit_studio.domain.entities.artifact_tree import ArtifactNode, make_folder

MAX_CLARIFICATION_ROUND = 5
OUTPUT_ROOT_ID = "root"


class WorkflowStep(str, Enum):
    """Active phase of a session; stage values double as completed-step markers."""

    INIT = "init"
    CLARIFYING = "clarifying"
    PAUSED = "paused"
    SPEC_GENERATED = "spec_generated"
    SPECIFY = "specify"
    CHECKLIST = "checklist"
    TECHDETAIL = "techdetail"
    AUTOTEST = "autotest"
    TASKS = "tasks"
    IMPLEMENT = "implement"
    ANALYZE = "analyze"


def now_ms() -> int:
    """Current time in milliseconds (chat timestamps)."""
    return int(time.time() * 1000)


def _message_id(prefix: str) -> str:
    return f"{prefix}-{now_ms()}-{uuid.uuid4().hex[:6]}"


class ChatAction(BaseModel):
    """Clickable suggestion bound to a workflow operation."""

    id: str
    label: str
    kind: Literal["primary", "secondary"] = "secondary"
    operation_id: str


class Attachment(BaseModel):
    """Image attached to a user message. data is base64 or a data URL."""

    id: str
    media_type: Literal["image"] = "image"
    mime_type: str
    data: str
    name: str = ""


class ChatMessage(BaseModel):
    """Single chat entry. Append-only within a session."""

    id: str
    author: Literal["user", "bot"]
    content: str
    timestamp: int = Field(default_factory=now_ms)
    actions: list[ChatAction] | None = None
    attachments: list[Attachment] | None = None

    @classmethod
    def bot(cls, content: str, actions: list[ChatAction] | None = None, prefix: str = "bot") -> "ChatMessage":
        return cls(id=_message_id(prefix), author="bot", content=content, actions=actions or None)

    @classmethod
    def user(cls, content: str, attachments: list[Attachment] | None = None, prefix: str = "user") -> "ChatMessage":
        return cls(id=_message_id(prefix), author="user", content=content, attachments=attachments or None)


class ProjectState(BaseModel):
    """Persisted orchestrator state for one session."""

    session_id: str | None = None
    name: str = "New Project"
    files: ArtifactNode
    active_file_id: str | None = None
    chat_history: list[ChatMessage] = Field(default_factory=list)
    current_step: WorkflowStep = WorkflowStep.INIT
    requirement_context: str = ""
    clarification_round: int = Field(default=0, ge=0, le=MAX_CLARIFICATION_ROUND)
    completed_steps: list[WorkflowStep] = Field(default_factory=list)

    def history_attachments(self) -> list[Attachment]:
        """All attachments across the chat history, in order."""
        return [a for m in self.chat_history for a in (m.attachments or [])]


class ChatSession(BaseModel):
    """Session wrapper persisted by the host."""

    id: str
    title: str
    last_modified: int = Field(default_factory=now_ms)
    data: ProjectState


def mark_completed(steps: list[WorkflowStep], step: WorkflowStep) -> list[WorkflowStep]:
    """Add step to the completed list, keeping order and uniqueness."""
    if step in steps:
        return list(steps)
    return [*steps, step]


WELCOME_MESSAGE = "👋 你好！我是 SpecKit 智能助手。系统知识库已加载（包含最新的开发宪章、技术模板和标准指令）。"

WELCOME_TIPS = """### 💡 编写高质量需求的技巧
建议在描述需求时采用 **"角色 + 场景 + 价值"** 的结构，并尽可能指明 **平台**：

- **❌ 模糊的描述**：
  "做一个扫码功能。"

- **✅ 推荐的描述**：
  "为**仓库管理员 (角色)** 开发一个 **App端 (平台)** 的扫码入库功能，支持**连续扫描二维码 (场景)** 并自动校验库存数量，以防止录入错误 **(价值)**。"

---
您可以直接发送文字，或上传需求截图/草图，我们将开始第一轮需求澄清。"""


def create_default_project_state(session_id: str | None = None) -> ProjectState:
    """Fresh state: empty output tree, welcome messages, step init."""
    ts = now_ms()
    return ProjectState(
        session_id=session_id,
        files=make_folder("specs", node_id=OUTPUT_ROOT_ID),
        chat_history=[
            ChatMessage(id="welcome-1", author="bot", content=WELCOME_MESSAGE, timestamp=ts),
            ChatMessage(id="welcome-tips", author="bot", content=WELCOME_TIPS, timestamp=ts + 100),
        ],
    )
