"""Default system library - charters, command prompts, standards and templates.

Well-known ids (sys-charters, cmd-*, std-*, tpl-*) are what the context
aggregator looks up, so they must stay stable across releases.
"""

from speckit_studio.domain.entities.artifact_tree import ArtifactNode, make_file, make_folder

SYSTEM_ROOT_ID = "sys-root"
SYSTEM_STANDARDS_ID = "sys-standards"

SPEC_TEMPLATE = """# 需求规格说明书

## 1. 概述 (Overview)
**需求摘要**: {{REQUIREMENT}}

## 2. 功能清单 (Function List)
| 模块名称 | 功能名称 | 功能描述 | 涉及端 | 优先级 |
| :--- | :--- | :--- | :--- | :--- |
| 轮廓提取 | 功能入口 | 当用户进行拍照后在右侧面板出现"轮廓识别"按钮 | WEB | P0 |
| 轮廓提取 | 自动提取轮廓 | 拍照后自动分析图像，识别所有物体轮廓 | WEB, PC | P0 |
| 轮廓编辑 | 预览对比 | 提供原始识别结果和选择预览选择两个视图 | WEB | P0 |
| 轮廓编辑 | 智能选区 | 在原始视图内，鼠标hover状态可以高亮轮廓，点击加入列表 | WEB | P0 |

## 3. 功能详细设计 (Detailed Design)

### 3.1 [模块名称] - [功能名称]
- **触发条件 (Trigger)**: 用户点击...
- **前置条件 (Pre-condition)**: 
- **交互逻辑 (Logic Flow)**:
  1. 第一步...
  2. 第二步...
- **异常处理 (Exception)**: 
  - 若网络超时...

### 3.2 ...

---
> **Pending Generation (待补全)**:
> - 4. 数据埋点设计 (Data Tracking)
> - 5. 测试验收标准 (Acceptance Criteria)
> - 6. 词条与知识库 (Glossary & KB)
"""

REQUIREMENT_WRITING_STANDARD = """# 需求撰写标准 (Requirement Writing Standard)

1. **明确性 (Clarity)**
   - 避免使用"优化"、"提升"、"增强"等模糊词汇，必须使用可量化的指标或具体行为描述。
   - ❌ "优化图片加载速度"
   - ✅ "图片加载时间在 4G 网络下需小于 200ms"

2. **原子性 (Atomicity)**
   - 每个功能点必须是独立的、可测试的最小单元。
   - 不要在一条描述中包含多个逻辑分支。

3. **用户视角 (User-Centric)**
   - 描述必须体现用户价值 (User Value)，即"作为[角色]，我想要[功能]，以便于[价值]"。

4. **完备性 (Completeness)**
   - 功能描述必须包含：触发条件、前置条件、交互逻辑和异常流程。"""

PRODUCT_CHARTER = (
    "# 产品宪章 (Department Product)\n\n"
    "- **用户价值**: 明确定义每个功能的用户价值。\n"
    "- **极度细化**: 功能清单必须拆解到原子级 (Atomic Units)。例如，\"编辑功能\"太笼统，"
    "应拆分为\"选区\"、\"移动\"、\"旋转\"、\"参数调整\"等。\n"
    "- **表格化**: 功能列表必须以表格形式呈现，明确优先级与涉及端。"
)

# (id, file name, title, body) for .claude/commands
COMMANDS: tuple[tuple[str, str, str, str], ...] = (
    ("cmd-analyze", "speckit.analyze.md", "Analyze", "Analyze consistency across documents."),
    ("cmd-autotest", "speckit.autotest.md", "AutoTest", "Generate automated test cases."),
    ("cmd-checklist", "speckit.checklist.md", "Checklist", "Verify constitution compliance."),
    ("cmd-clarify", "speckit.clarify.md", "Clarify", "Ask clarifying questions to the user."),
    ("cmd-constitution", "speckit.constitution.md", "Constitution", "Manage and update charters."),
    ("cmd-implement", "speckit.implement.md", "Implement", "Execute code generation based on tasks."),
    ("cmd-plan", "speckit.plan.md", "Plan", "Create initial project plan."),
    ("cmd-specify", "speckit.specify.md", "Specify", "Generate core specification document."),
    ("cmd-status", "speckit.status.md", "Status", "Report project progress."),
    ("cmd-tasks", "speckit.tasks.md", "Tasks", "Break down specs into tasks."),
    ("cmd-issues", "speckit.taskstoissues.md", "TasksToIssues", "Convert tasks to Git issues."),
    ("cmd-tech", "speckit.techdetail.md", "TechDetail", "Generate technical design documents."),
)

SCRIPTS: tuple[tuple[str, str, str], ...] = (
    ("sh-check", "check-prerequisites.sh", "Check system requirements"),
    ("sh-common", "common.sh", "Common utility functions"),
    ("sh-create", "create-new-feature.sh", "Scaffolding script"),
    ("sh-load", "load-constitution.sh", "Load charters into context"),
    ("sh-setup", "setup-plan.sh", "Setup project plan"),
    ("sh-update", "update-agent-context.sh", "Refresh AI context"),
)

# (folder id, folder name, [(file id, file name, content), ...])
DOMAIN_CHARTERS: tuple[tuple[str, str, tuple[tuple[str, str, str], ...]], ...] = (
    (
        "ch-folder-web",
        "Web",
        (
            ("ch-web", "constitution-web.md", "# Web端宪章 (Domain Main)\n\n- 使用 TypeScript\n- 遵循 BEM 命名规范"),
            (
                "ch-web-payment",
                "sub-payment-rules.md",
                "# Web支付业务规范 (Domain Sub)\n\n- 金额计算必须在后端进行\n- 前端仅负责展示格式化\n- 支付状态轮询间隔不小于3秒",
            ),
        ),
    ),
    (
        "ch-folder-backend",
        "Backend",
        (("ch-backend", "constitution-backend.md", "# 后端宪章 (Domain Main)\n\n- 接口遵循 RESTful 标准\n- 强制单元测试覆盖率 > 80%"),),
    ),
    ("ch-folder-app", "App", (("ch-app", "constitution-app.md", "# APP端宪章 (Domain Main)\n\n- Flutter 优先\n- 离线优先设计"),)),
    ("ch-folder-pc", "PC", (("ch-pc", "constitution-pc.md", "# PC端宪章 (Domain Main)\n\n- 跨平台兼容性\n- 内存管理规范"),)),
    (
        "ch-folder-firmware",
        "Firmware",
        (("ch-firmware", "constitution-firmware.md", "# 固件宪章 (Domain Main)\n\n- 实时性保障\n- OTA 升级安全规范"),),
    ),
    ("ch-folder-ui", "UI", (("ch-ui", "constitution-ui.md", "# UI设计宪章 (Domain Main)\n\n- 统一设计语言\n- 交互一致性"),)),
)

STANDARDS: tuple[tuple[str, str, str], ...] = (
    ("std-spec", "requirement-writing-standards.md", REQUIREMENT_WRITING_STANDARD),
    ("std-kb", "knowledge-base-writing-standards.md", "# 知识库编写标准\n\n1. 结构化索引\n2. 标签分类规范..."),
    ("std-md", "markdown-format-standards.md", "# Markdown 格式标准\n\n1. 标题层级\n2. 代码块标记..."),
    ("std-test", "testing-acceptance-standards.md", "# 埋点设计标准\n\n1. 事件命名规范\n2. 参数定义..."),
    (
        "std-test-table",
        "test-acceptance-table-standards.md",
        "# 测试验收表标准\n\n## 1. 验收项格式\n- 必须包含：前置条件、操作步骤、预期结果\n"
        "- 优先级划分：P0 (Blocker), P1 (Critical), P2 (Major)",
    ),
)

TECH_TEMPLATES: tuple[tuple[str, str, str], ...] = (
    ("tpl-tech-app", "app-template.md", "# App技术方案模板\n\n## 架构设计 (Flutter)\n..."),
    (
        "tpl-tech-be",
        "backend-template.md",
        "# 后端技术方案模板\n\n## 接口设计 (NestJS)\n- API: POST /v1/resource\n\n## 数据库设计\n- Table: ...",
    ),
    ("tpl-tech-fw", "firmware-template.md", "# 固件技术方案模板\n..."),
    ("tpl-tech-int", "integration-template.md", "# 跨端集成方案模板\n..."),
    ("tpl-tech-ov", "overview-template.md", "# 技术总览模板\n..."),
    ("tpl-tech-pc", "pc-template.md", "# PC技术方案模板\n..."),
    ("tpl-tech-web", "web-template.md", "# Web技术方案模板\n\n## 组件设计 (Vue3)\n..."),
)

AUTOTEST_TEMPLATES: tuple[tuple[str, str, str], ...] = (
    ("tpl-test-app", "app-template.md", "# App自动化测试模板"),
    ("tpl-test-be", "backend-template.md", "# 后端自动化测试模板"),
    ("tpl-test-fw", "firmware-template.md", "# 固件自动化测试模板"),
    ("tpl-test-int", "integration-template.md", "# 集成测试模板"),
    ("tpl-test-ov", "overview-template.md", "# 测试总览模板"),
    ("tpl-test-pc", "pc-template.md", "# PC自动化测试模板"),
    ("tpl-test-web", "web-template.md", "# Web自动化测试模板"),
)


def _files(entries: tuple[tuple[str, str, str], ...]) -> list[ArtifactNode]:
    return [make_file(name, content, node_id=node_id) for node_id, name, content in entries]


def _charters() -> ArtifactNode:
    children = [
        make_file(
            "00_constitution-core.md",
            "# 核心宪章 (Department Core)\n\n1. 规格驱动开发: 禁止口头需求开发\n"
            "2. 用户体验优先: 性能指标需小于 100ms\n3. 持续集成: 每日构建必须通过",
            node_id="ch-core",
        ),
        make_file("99_constitution-summary.md", "# 宪章索引 (Summary)\n\n各部门开发规范总览...", node_id="ch-summary"),
        make_folder(
            "Product",
            [make_file("constitution-product.md", PRODUCT_CHARTER, node_id="ch-product")],
            node_id="ch-folder-product",
        ),
    ]
    for folder_id, folder_name, files in DOMAIN_CHARTERS:
        expanded = None if folder_id != "ch-folder-web" else False
        children.append(make_folder(folder_name, _files(files), node_id=folder_id, is_expanded=expanded))
    return make_folder("memory/charters", children, node_id="sys-charters")


def build_default_library() -> ArtifactNode:
    """Fresh copy of the built-in system library tree."""
    commands = [
        make_file(name, f"# System Prompt: {title}\n\n{body}", node_id=node_id)
        for node_id, name, title, body in COMMANDS
    ]
    scripts = [
        make_file(name, f"#!/bin/bash\n\n# {body}", node_id=node_id)
        for node_id, name, body in SCRIPTS
    ]
    return make_folder(
        "System Config",
        [
            make_folder(".specify", [_charters()], node_id="sys-specify"),
            make_folder(
                ".claude",
                [make_folder("commands", commands, node_id="sys-commands")],
                node_id="sys-claude",
            ),
            make_folder("scripts", [make_folder("bash", scripts, node_id="sys-bash")], node_id="sys-scripts"),
            make_folder("standards", _files(STANDARDS), node_id=SYSTEM_STANDARDS_ID),
            make_folder(
                "templates",
                [
                    make_file("spec.md", SPEC_TEMPLATE, node_id="tpl-spec"),
                    make_folder("techdetail", _files(TECH_TEMPLATES), node_id="tpl-tech"),
                    make_folder("autotest", _files(AUTOTEST_TEMPLATES), node_id="tpl-auto", is_expanded=False),
                ],
                node_id="sys-templates",
            ),
        ],
        node_id=SYSTEM_ROOT_ID,
    )


DEFAULT_LIBRARY: ArtifactNode = build_default_library()
