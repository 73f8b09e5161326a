"""Bot replies, suggested actions and progress lines shown to the user."""

from speckit_studio.domain.entities.operations import Operation
from speckit_studio.domain.entities.project_state import ChatAction

# Progress
PROGRESS_RECORDING = "正在记录反馈..."
PROGRESS_THINKING = "正在思考..."
PROGRESS_SPEC = "正在生成文档..."
PROGRESS_REGENERATE = "正在重新生成完整需求文档..."
PROGRESS_SLUG = "正在生成版本命名..."
PROGRESS_COMPLETE = "正在补全文档 (埋点/测试/知识库)..."
PROGRESS_CHECKLIST = "正在进行质量检查..."
PROGRESS_TECH = "正在生成技术方案..."
PROGRESS_AUTOTEST = "正在生成自动化测试计划..."
PROGRESS_TASKS = "正在分解任务..."
PROGRESS_ANALYZE = "正在进行一致性分析..."

# Replies
SPEC_DONE = "✅ 规格文档 (spec.md) 已生成。已应用标准: 知识库、Markdown、埋点设计。\n\n下一步: 质量检查 (Checklist)"
REGENERATE_DONE = "✅ 需求文档已重新生成为新版本: {name}"
COMPLETE_DONE = "✅ 文档已补全。 已新增/更新：数据埋点、验收标准、知识库。\n\n下一步: 质量检查 (Checklist)"
CHECKLIST_DONE = "✅ 检查报告已生成。请修复发现的问题，然后继续技术设计。"
TECH_DONE = "✅ 技术方案 ({count} files) 已生成。"
AUTOTEST_DONE = "✅ 测试计划已生成。"
TASKS_DONE = "✅ 任务分解已完成。"
ANALYZE_DONE = "✅ 一致性分析报告 (analysis.md) 已生成。"
IMPLEMENT_PENDING = "💻 代码生成功能正在开发中 (Coming Soon)..."
UNKNOWN_ACTION = "Action {operation_id} executed (Mock)."
PAUSED = "已暂停需求澄清。您可以随时发送内容继续。"
UNKNOWN_STATE = "未知的状态，已重置。"


def _action(action_id: str, label: str, op: Operation, primary: bool = True) -> ChatAction:
    return ChatAction(
        id=action_id,
        label=label,
        kind="primary" if primary else "secondary",
        operation_id=op.value,
    )


def run_checklist_action() -> ChatAction:
    return _action("act-check", "运行质量检查 (Checklist)", Operation.RUN_CHECKLIST)


def complete_spec_action() -> ChatAction:
    return _action("act-complete", "补全文档 (埋点/测试/知识库)", Operation.COMPLETE_SPEC, primary=False)


def run_tech_action() -> ChatAction:
    return _action("act-tech", "生成技术方案 (Tech Design)", Operation.RUN_TECH)


def run_autotest_action() -> ChatAction:
    return _action("act-test", "生成测试计划 (AutoTest)", Operation.RUN_AUTOTEST)


def run_tasks_action() -> ChatAction:
    return _action("act-tasks", "生成任务分解 (Tasks)", Operation.RUN_TASKS)


def run_implement_action() -> ChatAction:
    return _action("act-imp", "生成代码 (Implement)", Operation.RUN_IMPLEMENT)


def option_actions(options: list[str], recommendation: str) -> list[ChatAction]:
    """Clarification options; the recommended one is primary."""
    return [
        ChatAction(
            id=f"opt-{idx}",
            label=option,
            kind="primary" if option == recommendation else "secondary",
            operation_id=Operation.ANSWER_CLARIFICATION.value,
        )
        for idx, option in enumerate(options)
    ]
