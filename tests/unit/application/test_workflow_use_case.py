"""Tests for SpecWorkflowUseCase routing and the offline end-to-end flow."""

from unittest.mock import AsyncMock

import pytest

from speckit_studio.application.sessions.use_case import merge_turn_result
from speckit_studio.application.workflow import replies
from speckit_studio.application.workflow.documents import find_spec
from speckit_studio.application.workflow.use_case import SpecWorkflowUseCase, is_exit_request
from speckit_studio.domain.entities.artifact_tree import child_folder, upsert_file
from speckit_studio.domain.entities.cancellation import CancellationToken, OperationCancelledError
from speckit_studio.domain.entities.project_state import WorkflowStep


def _with_spec(state, content="# Spec\n\n## 1. 概述\nbackend api"):
    files, node = upsert_file(state.files, "specs", "spec.md", content)
    return state.model_copy(
        update={
            "files": files,
            "active_file_id": node.id,
            "current_step": WorkflowStep.SPEC_GENERATED,
            "requirement_context": "\nUser Answer (Round 0): 记账",
            "clarification_round": 5,
        }
    )


class TestOfflineFlow:
    """Message, two option clicks, spec.md - without a backend."""

    @pytest.mark.asyncio
    async def test_clarification_to_spec(self, offline_workflow, state, system_files):
        first = await offline_workflow.handle_user_message("我想做一个记账应用", state, system_files)

        assert first.next_step == WorkflowStep.CLARIFYING
        assert first.updated_round == 1
        question = first.messages[-1]
        assert question.id.startswith("bot-q-")
        assert [a.id for a in question.actions] == ["opt-0", "opt-1", "opt-2"]
        assert question.actions[0].kind == "primary"
        assert all(a.operation_id == "answer_clarification" for a in question.actions)
        state = merge_turn_result(state, first)

        option = question.actions[1]
        second = await offline_workflow.handle_action_click(option.operation_id, option.label, state, system_files)
        assert second.updated_round == 2
        assert second.next_step == WorkflowStep.CLARIFYING
        state = merge_turn_result(state, second)

        option = second.messages[-1].actions[1]
        third = await offline_workflow.handle_action_click(option.operation_id, option.label, state, system_files)
        state = merge_turn_result(state, third)

        assert third.next_step == WorkflowStep.SPEC_GENERATED
        assert third.updated_round == 5
        spec = find_spec(state.files)
        assert spec is not None
        assert child_folder(state.files, "specs").children[0].id == spec.id
        assert state.active_file_id == spec.id
        assert state.completed_steps == [WorkflowStep.SPECIFY]
        assert [(a.id, a.kind) for a in third.messages[-1].actions] == [
            ("act-complete", "secondary"),
            ("act-check", "primary"),
        ]
        assert "User Answer (Round 0): 我想做一个记账应用" in state.requirement_context
        assert "User Answer (Round 1): B端企业用户" in state.requirement_context
        assert "User Answer (Round 2): Web + App" in state.requirement_context

    @pytest.mark.asyncio
    async def test_progress_reported(self, offline_workflow, state, system_files):
        statuses = []
        await offline_workflow.handle_user_message("需求", state, system_files, on_progress=statuses.append)
        assert statuses[0] == replies.PROGRESS_RECORDING


class TestRouting:
    @pytest.mark.asyncio
    async def test_exit_pauses_clarification(self, offline_workflow, state, system_files):
        state = state.model_copy(update={"current_step": WorkflowStep.CLARIFYING, "requirement_context": "x"})

        result = await offline_workflow.handle_user_message("先暂停一下", state, system_files)

        assert result.next_step == WorkflowStep.PAUSED
        assert result.messages[0].content == replies.PAUSED
        assert result.files is state.files
        assert result.updated_context == "x"

    @pytest.mark.asyncio
    async def test_paused_message_resumes(self, offline_workflow, state, system_files):
        state = state.model_copy(
            update={"current_step": WorkflowStep.PAUSED, "requirement_context": "x", "clarification_round": 1}
        )
        result = await offline_workflow.handle_user_message("继续，面向企业", state, system_files)
        assert result.next_step == WorkflowStep.CLARIFYING
        assert result.updated_round == 2

    @pytest.mark.asyncio
    async def test_command_without_spec_is_silent(self, offline_workflow, state, system_files):
        result = await offline_workflow.handle_user_message("检查", state, system_files)
        assert result.messages == []
        assert result.files is state.files
        assert result.next_step == WorkflowStep.INIT

    @pytest.mark.asyncio
    async def test_command_with_spec_runs_stage(self, offline_workflow, state, system_files):
        result = await offline_workflow.handle_user_message("检查一下", _with_spec(state), system_files)
        assert result.next_step == WorkflowStep.CHECKLIST

    @pytest.mark.asyncio
    async def test_refinement_after_spec(self, offline_workflow, state, system_files):
        result = await offline_workflow.handle_user_message("增加导出功能", _with_spec(state), system_files)
        assert "User Answer (Round 5): 增加导出功能" in result.updated_context

    @pytest.mark.asyncio
    async def test_unknown_state_resets(self, offline_workflow, state, system_files):
        state = state.model_copy(update={"current_step": WorkflowStep.TASKS})
        result = await offline_workflow.handle_user_message("hello", state, system_files)
        assert result.next_step == WorkflowStep.INIT
        assert result.messages[0].content == replies.UNKNOWN_STATE

    @pytest.mark.asyncio
    async def test_backend_classification_dispatches(self, backend, state, system_files):
        backend.classify = AsyncMock(return_value="run_tech")
        workflow = SpecWorkflowUseCase(backend=backend, mock_delay_seconds=0)

        result = await workflow.handle_user_message("please write the architecture for this", _with_spec(state), system_files)

        assert result.next_step == WorkflowStep.TECHDETAIL
        backend.complete_multi_document.assert_called_once()
        backend.clarify.assert_not_called()

    @pytest.mark.asyncio
    async def test_cancelled_token(self, offline_workflow, state, system_files):
        token = CancellationToken()
        token.cancel()
        with pytest.raises(OperationCancelledError):
            await offline_workflow.handle_user_message("需求", state, system_files, token=token)
        with pytest.raises(OperationCancelledError):
            await offline_workflow.handle_action_click("run_tech", "Tech", state, system_files, token=token)


def test_exit_keywords():
    assert is_exit_request("Please STOP")
    assert is_exit_request("退出")
    assert not is_exit_request("继续")
