"""Scripted documents used when no generation backend is configured."""

from speckit_studio.domain.entities.project_state import now_ms
from speckit_studio.infrastructure.llm.generation_backend import ClarificationQuestion

_SCRIPTED_QUESTIONS = (
    ClarificationQuestion(
        question="这个功能主要面向什么用户群体？",
        options=["C端普通用户", "B端企业用户", "内部管理员"],
        recommendation="C端普通用户",
        is_enough=False,
    ),
    ClarificationQuestion(
        question="主要涉及哪些平台？",
        options=["仅移动端App", "Web + App", "全平台 (Web/App/PC)"],
        recommendation="Web + App",
        is_enough=False,
    ),
)

_READY_QUESTION = ClarificationQuestion(
    question="是否需要生成需求文档？",
    options=["生成文档", "继续补充"],
    recommendation="生成文档",
    is_enough=True,
)


def clarification(round_number: int) -> ClarificationQuestion:
    """Two scripted questions, then "enough"."""
    if 0 <= round_number < len(_SCRIPTED_QUESTIONS):
        return _SCRIPTED_QUESTIONS[round_number].model_copy(deep=True)
    return _READY_QUESTION.model_copy(deep=True)


def spec(context: str) -> str:
    return f"# 需求规格说明书 (Mock)\n\n## 1. 概述\n基于: {context}\n\n## 2. 功能清单..."


def regenerated_spec(context: str) -> str:
    return f"# 需求规格说明书 (Full Regen)\n\nBased on {context}"


def regenerate_slug() -> str:
    return f"mock-{now_ms()}"


COMPLETED_SECTIONS = (
    "\n## 4. 数据埋点设计\n- Mock Data Event 1"
    "\n## 5. 测试验收标准\n- Mock Test Case 1"
    "\n## 6. 词条与知识库\n- Mock Term 1"
)

CHECKLIST = "# Quality Checklist\n- [x] Principle 1 checked\n- [ ] Issue found in section 2"


def tech_documents(platforms: list[str]) -> dict[str, str]:
    return {f"tech-{p}.md": f"# {p.upper()} Technical Design (Mock)\n\nBased on Spec..." for p in platforms}


def autotest_documents(platforms: list[str]) -> dict[str, str]:
    return {"test-plan.md": "# Automation Test Plan (Mock)"}


TASKS = "# Tasks (Mock)\n- [ ] Task 1"


def analysis(document_names: list[str]) -> str:
    rows = "\n".join(f"| {name} | 一致 | - |" for name in document_names)
    return f"# Consistency Analysis (Mock)\n\n| 文档 | 结论 | 问题 |\n| :--- | :--- | :--- |\n{rows}"
