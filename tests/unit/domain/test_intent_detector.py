"""Tests for IntentDetector."""

from unittest.mock import AsyncMock

import pytest

from speckit_studio.domain.entities.operations import CHAT, Operation, is_command
from speckit_studio.domain.services.intent_detector import CLASSIFY_INSTRUCTION, IntentDetector


class TestFastPath:
    """Keyword prefix matching."""

    @pytest.fixture
    def detector(self):
        return IntentDetector()

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("重新生成", "regenerate_spec"),
            ("补全埋点", "complete_spec"),
            ("检查一下", "run_checklist"),
            ("技术方案", "run_tech"),
            ("测试计划", "run_autotest"),
            ("任务分解", "run_tasks"),
            ("Implement it", "run_implement"),
            ("一致性分析", "run_analyze"),
        ],
    )
    def test_commands(self, detector, text, expected):
        assert detector.fast_path(text) == expected

    def test_anchored_at_start(self, detector):
        assert detector.fast_path("请帮我检查") is None

    def test_long_message_skips_fast_path(self, detector):
        assert detector.fast_path("检查" + "x" * 80) is None

    def test_length_counts_surrounding_whitespace(self, detector):
        """The length gate applies to the raw message, padding included."""
        assert detector.fast_path("checklist" + " " * 60) is None
        assert detector.fast_path("checklist" + " " * 40) == "run_checklist"

    def test_leading_whitespace_breaks_anchor(self, detector):
        assert detector.fast_path("  checklist") is None


class TestDetect:
    """Backend fallback behaviour."""

    @pytest.mark.asyncio
    async def test_fast_path_hit_never_calls_backend(self):
        classify = AsyncMock(return_value="run_tasks")
        detector = IntentDetector(classify)

        assert await detector.detect("检查") == "run_checklist"
        classify.assert_not_called()

    @pytest.mark.asyncio
    async def test_backend_answer_is_cleaned(self):
        classify = AsyncMock(return_value=" `run_tech` \n")
        detector = IntentDetector(classify)

        assert await detector.detect("please produce the architecture docs") == "run_tech"
        classify.assert_called_once_with(CLASSIFY_INSTRUCTION, "please produce the architecture docs")

    @pytest.mark.asyncio
    async def test_without_backend_returns_chat(self):
        detector = IntentDetector()
        assert detector.has_backend is False
        assert await detector.detect("我想做一个记账应用") == CHAT

    @pytest.mark.asyncio
    async def test_empty_backend_answer_is_chat(self):
        detector = IntentDetector(AsyncMock(return_value="  "))
        assert await detector.detect("hello there") == CHAT


class TestOperations:
    def test_parse_unknown(self):
        assert Operation.parse("run_tech") is Operation.RUN_TECH
        assert Operation.parse("nonsense") is Operation.UNKNOWN

    def test_is_command(self):
        assert is_command("run_tasks")
        assert is_command("complete_spec")
        assert is_command("regenerate_spec")
        assert not is_command("chat")
        assert not is_command("answer_clarification")
