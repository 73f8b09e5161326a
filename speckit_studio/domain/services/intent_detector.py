"""Intent classifier - regex fast path with LRU cache, backend fallback."""

import logging
import re
from collections.abc import Awaitable, Callable
from functools import lru_cache

from speckit_studio.domain.entities.operations import CHAT

logger = logging.getLogger(__name__)

FAST_PATH_MAX_LENGTH = 60

# Checked in order; first match wins. Anchored at the start of the message.
COMMAND_PATTERNS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("regenerate_spec", ("重新生成", "完整生成", "重写", "regenerate", "rewrite")),
    ("complete_spec", ("补全", "埋点", "测试标准", "验收标准", "知识库", "enrich")),
    ("run_checklist", ("检查", "质量", "checklist", "review")),
    ("run_tech", ("技术方案", "架构", "tech", "design")),
    ("run_autotest", ("测试计划", "test plan", "cases")),
    ("run_tasks", ("任务", "分解", "tasks")),
    ("run_implement", ("实施", "代码", "code", "implement")),
    ("run_analyze", ("分析", "一致性", "analyze")),
)

_COMMAND_RES: tuple[tuple[str, re.Pattern[str]], ...] = tuple(
    (op, re.compile("^(?:" + "|".join(re.escape(k) for k in keywords) + ")", re.IGNORECASE))
    for op, keywords in COMMAND_PATTERNS
)

CLASSIFY_INSTRUCTION = """You are a command dispatcher for the SpecKit system.
Map user input to one of the following COMMAND_IDs:

- regenerate_spec: Full rewrite of the spec document (keywords: 重新生成, 完整生成, 重写, regenerate full, rewrite)
- complete_spec: Enrich existing spec with tracking/testing (keywords: 补全, 埋点, 验收标准, enrich spec)
- run_checklist: Run quality checklist (keywords: 检查, 质量, review, checklist)
- run_tech: Generate technical design/architecture (keywords: 技术方案, 架构, tech spec, design docs)
- run_autotest: Generate test plan/cases (keywords: 测试计划, test plan, cases)
- run_tasks: Generate task list (keywords: 任务, tasks, breakdown)
- run_implement: Simulate implementation/coding (keywords: 实施, 代码, code, implement)
- run_analyze: Run consistency analysis (keywords: 分析, 一致性, analyze, scan)

If the input is a regular chat message, requirement description, or clarification answer, or is longer than 50 characters, return "chat".

Return STRICTLY just the COMMAND_ID string or "chat". No Markdown, no quotes."""

# (instruction, utterance) -> raw answer; must not raise (adapter falls back to "chat")
ClassifyFn = Callable[[str, str], Awaitable[str]]


@lru_cache(maxsize=256)
def _fast_path_impl(text: str) -> str | None:
    """Regex match on the raw text (cached at module level). Length counts surrounding whitespace."""
    if not text or len(text) >= FAST_PATH_MAX_LENGTH:
        return None
    for op, pattern in _COMMAND_RES:
        if pattern.search(text):
            return op
    return None


def _clean_answer(raw: str) -> str:
    answer = (raw or "").strip().strip("`'\"").strip()
    return answer or CHAT


class IntentDetector:
    """Maps an utterance to an operation id or "chat".

    Short messages are matched against fixed keyword prefixes first; the backend is
    only consulted when that finds nothing, so a fast-path hit never costs a call.
    """

    def __init__(self, classify: ClassifyFn | None = None) -> None:
        self._classify = classify

    @property
    def has_backend(self) -> bool:
        return self._classify is not None

    def fast_path(self, message: str) -> str | None:
        """Deterministic keyword match; None when nothing matched."""
        return _fast_path_impl(message)

    async def detect(self, message: str) -> str:
        """Operation id or "chat"."""
        op = self.fast_path(message)
        if op is not None:
            logger.debug("Intent fast path: %s", op)
            return op
        if self._classify is None:
            return CHAT
        answer = _clean_answer(await self._classify(CLASSIFY_INSTRUCTION, message))
        logger.debug("Intent from backend: %s", answer)
        return answer

