"""Tests for SessionTurnService: persistence, cancellation and file edits."""

import asyncio
import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from speckit_studio.application.sessions.dto import ActionRequest, FilePatch, MessageRequest
from speckit_studio.application.sessions.library import LibraryService
from speckit_studio.application.sessions.use_case import (
    DEFAULT_TITLE,
    TURN_FAILED,
    SessionTurnService,
    derive_title,
    merge_turn_result,
)
from speckit_studio.application.workflow.dto import TurnResult
from speckit_studio.application.workflow.use_case import SpecWorkflowUseCase
from speckit_studio.domain.entities.artifact_tree import child_folder, find, upsert_file
from speckit_studio.domain.entities.project_state import WorkflowStep


def _service(store, workflow=None, delay: float = 0) -> SessionTurnService:
    workflow = workflow or SpecWorkflowUseCase(backend=None, mock_delay_seconds=delay)
    return SessionTurnService(workflow, store, LibraryService(store))


class TestSessions:
    def test_create_and_get(self, store):
        service = _service(store)
        session = service.create_session()

        loaded = service.get_session(session.id)
        assert loaded.title == DEFAULT_TITLE
        assert loaded.data.current_step == WorkflowStep.INIT
        assert len(loaded.data.chat_history) == 2

    def test_ids_do_not_collide(self, store):
        service = _service(store)
        ids = {service.create_session().id for _ in range(3)}
        assert len(ids) == 3

    def test_list_newest_first(self, store):
        service = _service(store)
        first = service.create_session()
        second = service.create_session()
        service.save_session(second.model_copy(update={"last_modified": first.last_modified + 10}))

        assert [s.id for s in service.list_sessions()][0] == second.id

    def test_delete(self, store):
        service = _service(store)
        session = service.create_session()
        assert service.delete_session(session.id) is True
        assert service.get_session(session.id) is None
        assert service.delete_session(session.id) is False

    def test_missing_session(self, store):
        assert _service(store).get_session("nope") is None


class TestTurns:
    @pytest.mark.asyncio
    async def test_message_turn_is_applied_and_titled(self, store):
        service = _service(store)
        session = service.create_session()

        outcome = await service.submit_message(session.id, MessageRequest(text="做一个家庭记账应用，支持多人协作"))

        assert outcome.applied is True
        stored = service.get_session(session.id)
        assert stored.data.current_step == WorkflowStep.CLARIFYING
        assert stored.data.clarification_round == 1
        assert [m.author for m in stored.data.chat_history] == ["bot", "bot", "user", "bot"]
        assert stored.title == "做一个家庭记账应用，支持多人协..."
        assert not service.is_running(session.id)

    @pytest.mark.asyncio
    async def test_action_is_recorded_as_user_message(self, store):
        service = _service(store)
        session = service.create_session()

        outcome = await service.submit_action(session.id, ActionRequest(operation_id="run_tech", label="生成技术方案"))

        assert outcome.applied is True
        user = service.get_session(session.id).data.chat_history[2]
        assert user.content == "✅ 生成技术方案"
        assert user.id.startswith("user-act-")

    @pytest.mark.asyncio
    async def test_unknown_session(self, store):
        service = _service(store)
        assert await service.submit_message("nope", MessageRequest(text="x")) is None
        assert await service.submit_action("nope", ActionRequest(operation_id="run_tech")) is None

    @pytest.mark.asyncio
    async def test_newer_request_wins(self, store):
        service = _service(store, delay=0.2)
        session = service.create_session()

        first = asyncio.create_task(service.submit_message(session.id, MessageRequest(text="第一条需求")))
        await asyncio.sleep(0.02)
        second = await service.submit_message(session.id, MessageRequest(text="第二条需求"))
        first = await first

        assert first.cancelled is True
        assert first.applied is False
        assert second.applied is True
        data = service.get_session(session.id).data
        user_texts = [m.content for m in data.chat_history if m.author == "user"]
        assert user_texts == ["第一条需求", "第二条需求"]
        assert "第一条需求" not in data.requirement_context
        assert "第二条需求" in data.requirement_context
        assert data.clarification_round == 1

    @pytest.mark.asyncio
    async def test_stop(self, store):
        service = _service(store, delay=5)
        session = service.create_session()

        task = asyncio.create_task(service.submit_message(session.id, MessageRequest(text="需求")))
        await asyncio.sleep(0.02)
        assert service.is_running(session.id)
        assert service.stop(session.id) is True

        outcome = await asyncio.wait_for(task, timeout=1)
        assert outcome.cancelled is True
        assert service.stop(session.id) is False
        data = service.get_session(session.id).data
        assert data.chat_history[-1].content == "需求"
        assert data.current_step == WorkflowStep.INIT

    @pytest.mark.asyncio
    async def test_failure_keeps_user_message(self, store):
        workflow = MagicMock()
        workflow.handle_user_message = AsyncMock(side_effect=RuntimeError("backend exploded"))
        service = _service(store, workflow=workflow)
        session = service.create_session()

        outcome = await service.submit_message(session.id, MessageRequest(text="需求"))

        assert outcome.applied is False
        assert outcome.error == TURN_FAILED
        assert outcome.state.chat_history[-1].content == "需求"

    @pytest.mark.asyncio
    async def test_stream_yields_progress_then_done(self, store):
        service = _service(store)
        session = service.create_session()

        events = [e async for e in service.stream_message(session.id, MessageRequest(text="需求"))]

        assert events[0]["event"] == "progress"
        assert events[-1]["event"] == "done"
        assert json.loads(events[-1]["data"])["applied"] is True

    @pytest.mark.asyncio
    async def test_closed_stream_leaves_newer_turn_running(self, store):
        """Disconnecting a superseded stream must not cancel the turn that replaced it."""
        service = _service(store, delay=5)
        session = service.create_session()

        stream = service.stream_message(session.id, MessageRequest(text="第一条需求"))
        first_event = await stream.__anext__()
        assert first_event["event"] == "progress"

        newer = asyncio.create_task(service.submit_message(session.id, MessageRequest(text="第二条需求")))
        await asyncio.sleep(0.02)
        await stream.aclose()

        assert service.is_running(session.id)
        assert newer.done() is False

        service.stop(session.id)
        outcome = await asyncio.wait_for(newer, timeout=1)
        assert outcome.cancelled is True


class TestMerge:
    def test_none_fields_keep_current_values(self, state):
        state = state.model_copy(update={"requirement_context": "ctx", "clarification_round": 2, "active_file_id": "a"})
        result = TurnResult(messages=[], files=state.files, next_step=WorkflowStep.CLARIFYING)

        merged = merge_turn_result(state, result)

        assert merged.requirement_context == "ctx"
        assert merged.clarification_round == 2
        assert merged.active_file_id == "a"
        assert merged.current_step == WorkflowStep.CLARIFYING

    def test_title_needs_a_dialogue(self, store):
        session = _service(store).create_session()
        assert derive_title(session) == DEFAULT_TITLE
        custom = session.model_copy(update={"title": "My title"})
        assert derive_title(custom) == "My title"


class TestProjectFiles:
    def _session_with_spec(self, service):
        session = service.create_session()
        files, node = upsert_file(session.data.files, "specs", "spec.md", "# Spec")
        session = session.model_copy(
            update={"data": session.data.model_copy(update={"files": files, "active_file_id": node.id})}
        )
        service.save_session(session)
        return session, node

    def test_update_file(self, store):
        service = _service(store)
        session, node = self._session_with_spec(service)

        state = service.update_file(session.id, node.id, FilePatch(name="spec-v2.md", content="# New"))

        updated = find(state.files, node.id)
        assert (updated.name, updated.content) == ("spec-v2.md", "# New")
        assert service.update_file(session.id, "missing", FilePatch(content="x")) is None

    def test_delete_folder_clears_active(self, store):
        service = _service(store)
        session, node = self._session_with_spec(service)
        folder = child_folder(session.data.files, "specs")

        state = service.delete_file(session.id, folder.id)

        assert find(state.files, node.id) is None
        assert state.active_file_id is None

    def test_root_cannot_be_deleted(self, store):
        service = _service(store)
        session, _ = self._session_with_spec(service)
        assert service.delete_file(session.id, session.data.files.id) is None

    def test_select_file(self, store):
        service = _service(store)
        session, node = self._session_with_spec(service)
        assert service.select_file(session.id, None).active_file_id is None
        assert service.select_file(session.id, node.id).active_file_id == node.id
        assert service.select_file(session.id, "missing") is None
