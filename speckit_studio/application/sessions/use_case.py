"""Session turn service - the host side of the orchestrator.

Owns persistence of sessions and the per-session cancellation token: a new
submission cancels the previous one, and only the newest turn may write back.
"""

import asyncio
import logging
import uuid
from collections.abc import AsyncIterator, Awaitable, Callable

from speckit_studio.application.sessions.dto import (
    ActionRequest,
    FilePatch,
    MessageRequest,
    SessionSummary,
    TurnOutcome,
)
from speckit_studio.application.sessions.library import LibraryService, apply_patch
from speckit_studio.application.workflow.dto import ProgressCallback, TurnResult
from speckit_studio.application.workflow.use_case import SpecWorkflowUseCase
from speckit_studio.domain.entities.artifact_tree import delete_node, find
from speckit_studio.domain.entities.cancellation import CancellationToken, OperationCancelledError
from speckit_studio.domain.entities.project_state import (
    ChatMessage,
    ChatSession,
    ProjectState,
    create_default_project_state,
    now_ms,
)
from speckit_studio.domain.ports.storage import BlobStorePort

logger = logging.getLogger(__name__)

SESSION_KEY_PREFIX = "session_"
DEFAULT_TITLE = "新对话 (New Chat)"
TITLE_MAX_LEN = 15
TURN_FAILED = "生成失败"


def session_key(session_id: str) -> str:
    return f"{SESSION_KEY_PREFIX}{session_id}"


def merge_turn_result(state: ProjectState, result: TurnResult) -> ProjectState:
    """Apply a finished turn to the latest state. Empty or None fields keep the current value."""
    return state.model_copy(
        update={
            "files": result.files,
            "chat_history": [*state.chat_history, *result.messages],
            "current_step": result.next_step,
            "active_file_id": result.active_file_id or state.active_file_id,
            "requirement_context": result.updated_context or state.requirement_context,
            "clarification_round": (
                result.updated_round if result.updated_round is not None else state.clarification_round
            ),
            "completed_steps": (
                result.completed_steps if result.completed_steps is not None else state.completed_steps
            ),
        }
    )


def derive_title(session: ChatSession) -> str:
    """Default title becomes the first user message (15 chars) once the dialogue has started."""
    if session.title != DEFAULT_TITLE or len(session.data.chat_history) <= 2:
        return session.title
    first = next((m for m in session.data.chat_history if m.author == "user" and m.content), None)
    if first is None:
        return session.title
    text = first.content
    return text[:TITLE_MAX_LEN] + ("..." if len(text) > TITLE_MAX_LEN else "")


class SessionTurnService:
    """Sessions, turns and project-file edits, persisted through a BlobStorePort."""

    def __init__(
        self,
        workflow: SpecWorkflowUseCase,
        store: BlobStorePort,
        library: LibraryService,
    ) -> None:
        self._workflow = workflow
        self._store = store
        self._library = library
        self._tokens: dict[str, CancellationToken] = {}

    # --- Sessions ---

    def create_session(self) -> ChatSession:
        session_id = f"sess-{now_ms()}"
        if self._store.load(session_key(session_id)) is not None:
            session_id = f"{session_id}-{uuid.uuid4().hex[:4]}"
        session = ChatSession(
            id=session_id,
            title=DEFAULT_TITLE,
            data=create_default_project_state(session_id),
        )
        self.save_session(session)
        logger.info("Session %s created", session_id)
        return session

    def get_session(self, session_id: str) -> ChatSession | None:
        raw = self._store.load(session_key(session_id))
        if raw is None:
            return None
        try:
            return ChatSession.model_validate(raw)
        except ValueError:
            logger.warning("Stored session %s is malformed", session_id, exc_info=True)
            return None

    def save_session(self, session: ChatSession) -> None:
        if not self._store.save(session_key(session.id), session.model_dump(mode="json")):
            logger.warning("Session %s was not persisted", session.id)

    def list_sessions(self) -> list[SessionSummary]:
        """Newest first."""
        sessions = []
        for key in self._store.list_keys(SESSION_KEY_PREFIX):
            session = self.get_session(key[len(SESSION_KEY_PREFIX):])
            if session is not None:
                sessions.append(
                    SessionSummary(
                        id=session.id,
                        title=session.title,
                        last_modified=session.last_modified,
                        current_step=session.data.current_step,
                    )
                )
        sessions.sort(key=lambda s: s.last_modified, reverse=True)
        return sessions

    def delete_session(self, session_id: str) -> bool:
        self.stop(session_id)
        return self._store.delete(session_key(session_id))

    def _update_state(self, session: ChatSession, state: ProjectState) -> ChatSession:
        updated = session.model_copy(update={"data": state, "last_modified": now_ms()})
        updated = updated.model_copy(update={"title": derive_title(updated)})
        self.save_session(updated)
        return updated

    # --- Turns ---

    def stop(self, session_id: str) -> bool:
        """Cancel the in-flight turn of a session. Returns False when nothing was running."""
        token = self._tokens.pop(session_id, None)
        if token is None:
            return False
        token.cancel()
        logger.info("Turn of session %s stopped", session_id)
        return True

    def is_running(self, session_id: str) -> bool:
        return session_id in self._tokens

    async def submit_message(
        self,
        session_id: str,
        request: MessageRequest,
        on_progress: ProgressCallback | None = None,
        token: CancellationToken | None = None,
    ) -> TurnOutcome | None:
        """Append the user message and run a turn under token (a fresh one by default).

        None when the session does not exist.
        """
        session = self.get_session(session_id)
        if session is None:
            return None
        snapshot = session.data
        user_message = ChatMessage.user(request.text, request.attachments)
        self._append_user_message(session, user_message)
        system_files = self._library.get_system_library()

        return await self._run_turn(
            session_id,
            lambda token: self._workflow.handle_user_message(
                request.text,
                snapshot,
                system_files,
                request.attachments or None,
                token,
                on_progress,
            ),
            token,
        )

    async def submit_action(
        self,
        session_id: str,
        request: ActionRequest,
        on_progress: ProgressCallback | None = None,
    ) -> TurnOutcome | None:
        """Record the click as a user message and run the action. None when the session does not exist."""
        session = self.get_session(session_id)
        if session is None:
            return None
        snapshot = session.data
        label = request.label or request.operation_id
        self._append_user_message(session, ChatMessage.user(f"✅ {label}", prefix="user-act"))
        system_files = self._library.get_system_library()

        return await self._run_turn(
            session_id,
            lambda token: self._workflow.handle_action_click(
                request.operation_id,
                label,
                snapshot,
                system_files,
                token,
                on_progress,
            ),
        )

    async def stream_message(self, session_id: str, request: MessageRequest) -> AsyncIterator[dict]:
        """Run a message turn, yielding {"event": "progress"|"done", "data": ...} dicts."""
        queue: asyncio.Queue[dict] = asyncio.Queue()
        token = CancellationToken()

        def on_progress(status: str) -> None:
            queue.put_nowait({"event": "progress", "data": status})

        async def run_turn() -> None:
            try:
                outcome = await self.submit_message(session_id, request, on_progress, token)
                if outcome is None:
                    outcome = TurnOutcome(applied=False, error="Session not found")
                queue.put_nowait({"event": "done", "data": outcome.model_dump_json()})
            except Exception as e:
                logger.exception("Streaming turn failed for session %s", session_id)
                queue.put_nowait({"event": "done", "data": TurnOutcome(applied=False, error=str(e)).model_dump_json()})

        task = asyncio.create_task(run_turn())
        try:
            while True:
                event = await queue.get()
                yield event
                if event["event"] == "done":
                    break
        finally:
            if not task.done():
                # Client went away: cancel this turn only; a newer turn may own the session by now.
                token.cancel()
                task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

    def _append_user_message(self, session: ChatSession, message: ChatMessage) -> None:
        state = session.data.model_copy(update={"chat_history": [*session.data.chat_history, message]})
        self._update_state(session, state)

    def _current_state(self, session_id: str) -> ProjectState | None:
        session = self.get_session(session_id)
        return session.data if session is not None else None

    async def _run_turn(
        self,
        session_id: str,
        run: Callable[[CancellationToken], Awaitable[TurnResult]],
        token: CancellationToken | None = None,
    ) -> TurnOutcome:
        previous = self._tokens.get(session_id)
        if previous is not None and previous is not token:
            logger.info("Cancelling previous turn of session %s", session_id)
            previous.cancel()
        if token is None:
            token = CancellationToken()
        self._tokens[session_id] = token

        try:
            result = await run(token)
            if token.cancelled or self._tokens.get(session_id) is not token:
                raise OperationCancelledError("Superseded")
        except OperationCancelledError:
            logger.debug("Turn of session %s cancelled", session_id)
            return TurnOutcome(applied=False, cancelled=True, state=self._current_state(session_id))
        except Exception:
            logger.exception("Turn failed for session %s", session_id)
            return TurnOutcome(applied=False, error=TURN_FAILED, state=self._current_state(session_id))
        finally:
            if self._tokens.get(session_id) is token:
                del self._tokens[session_id]

        # Merge into the latest stored state: messages appended since the snapshot survive.
        session = self.get_session(session_id)
        if session is None:
            logger.info("Session %s deleted during its turn, result dropped", session_id)
            return TurnOutcome(applied=False, cancelled=True)
        session = self._update_state(session, merge_turn_result(session.data, result))
        return TurnOutcome(applied=True, result=result, state=session.data)

    # --- Project files ---

    def update_file(self, session_id: str, node_id: str, patch: FilePatch) -> ProjectState | None:
        """Rename / edit / toggle a project node. None when the session or node does not exist."""
        session = self.get_session(session_id)
        if session is None or find(session.data.files, node_id) is None:
            return None
        files = apply_patch(session.data.files, node_id, patch)
        return self._update_state(session, session.data.model_copy(update={"files": files})).data

    def delete_file(self, session_id: str, node_id: str) -> ProjectState | None:
        session = self.get_session(session_id)
        if session is None or node_id == session.data.files.id or find(session.data.files, node_id) is None:
            return None
        state = session.data
        files = delete_node(state.files, node_id)
        active = state.active_file_id
        # Also covers an active file inside a deleted folder.
        if active is not None and find(files, active) is None:
            active = None
        state = state.model_copy(update={"files": files, "active_file_id": active})
        return self._update_state(session, state).data

    def select_file(self, session_id: str, node_id: str | None) -> ProjectState | None:
        session = self.get_session(session_id)
        if session is None:
            return None
        if node_id is not None and find(session.data.files, node_id) is None:
            return None
        return self._update_state(session, session.data.model_copy(update={"active_file_id": node_id})).data
