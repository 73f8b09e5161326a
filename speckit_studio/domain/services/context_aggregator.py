"""Context aggregator - charters, standards and templates for a generation call.

The system library is an ArtifactNode tree; well-known nodes are addressed by id.
"""

from dataclasses import dataclass, field

from speckit_studio.domain.entities.artifact_tree import ArtifactNode, collect_files, find, find_content

CHARTERS_ROOT_ID = "sys-charters"
PRODUCT_FOLDER_NAME = "product"

# Command instruction documents
CMD_SPECIFY = "cmd-specify"
CMD_CHECKLIST = "cmd-checklist"
CMD_TECH = "cmd-tech"
CMD_AUTOTEST = "cmd-autotest"
CMD_TASKS = "cmd-tasks"
CMD_ANALYZE = "cmd-analyze"

# Standards
STD_SPEC = "std-spec"
STD_KB = "std-kb"
STD_MD = "std-md"
STD_TEST = "std-test"
STD_TEST_TABLE = "std-test-table"

# Template folders
TEMPLATES_ROOT_ID = "sys-templates"
TECH_TEMPLATES_ID = "tpl-tech"
AUTOTEST_TEMPLATES_ID = "tpl-auto"


@dataclass
class CollectedContext:
    """Labelled text blocks; later charters override earlier ones."""

    charters: list[str] = field(default_factory=list)
    templates: list[str] = field(default_factory=list)


def _is_relevant_template(name: str, platforms: list[str]) -> bool:
    lowered = name.lower()
    return (
        any(p.lower() in lowered for p in platforms)
        or "overview" in lowered
        or "integration" in lowered
        or name == "spec.md"
    )


def collect_context(
    system_files: ArtifactNode,
    command_id: str,
    template_folder_id: str,
    platforms: list[str],
) -> CollectedContext:
    """Collect charters and templates for an operation and a set of platforms.

    Charter order: command definition, root charter files, the Product folder,
    then one block per file of each matching platform folder.
    """
    ctx = CollectedContext()

    command = find_content(system_files, command_id)
    if command:
        ctx.charters.append(f"--- CURRENT COMMAND DEFINITION ---\n{command}")

    charters_root = find(system_files, CHARTERS_ROOT_ID)
    if charters_root is not None and charters_root.children:
        for node in charters_root.children:
            if node.is_file and node.content:
                ctx.charters.append(f"--- DEPARTMENT CORE CHARTER: {node.name} ---\n{node.content}")

        product = next(
            (n for n in charters_root.children if n.is_folder and n.name.lower() == PRODUCT_FOLDER_NAME),
            None,
        )
        if product is not None:
            for node in collect_files(product):
                if node.content:
                    ctx.charters.append(f"--- DEPARTMENT PRODUCT CHARTER: {node.name} ---\n{node.content}")

        for platform in platforms:
            folder = next(
                (n for n in charters_root.children if n.is_folder and n.name.lower() == platform.lower()),
                None,
            )
            if folder is None:
                continue
            for node in collect_files(folder):
                if node.content:
                    ctx.charters.append(
                        f"--- {platform.upper()} DOMAIN CHARTER ({node.name}) ---\n{node.content}"
                    )

    templates_root = find(system_files, template_folder_id)
    if templates_root is not None and templates_root.children:
        for child in templates_root.children:
            for node in collect_files(child):
                if _is_relevant_template(node.name, platforms):
                    ctx.templates.append(f"--- TEMPLATE: {node.name} ---\n{node.content or ''}")

    return ctx


def collect_product_charter(system_files: ArtifactNode) -> str:
    """Concatenated product charter text (Product folder or a single product file)."""
    charters_root = find(system_files, CHARTERS_ROOT_ID)
    if charters_root is None or not charters_root.children:
        return ""
    for node in charters_root.children:
        if node.is_folder and node.name.lower() == PRODUCT_FOLDER_NAME:
            return "".join(f"\n{f.content or ''}" for f in collect_files(node))
        if node.is_file and node.name == "constitution-product.md":
            return node.content or ""
    return ""


def collect_standards(system_files: ArtifactNode, standard_ids: list[str]) -> list[str]:
    """Contents of the given standard documents, skipping missing or empty ones."""
    standards = []
    for std_id in standard_ids:
        content = find_content(system_files, std_id)
        if content:
            standards.append(content)
    return standards


SYSTEM_CONTEXT_PREAMBLE = """You are SpecKit AI, an expert software architect and product manager.
Your goal is to generate high-quality technical documentation based on the provided Charters (Rules), Standards (Format/Tracking), and Templates (Structure).

STRICT TEMPLATE ADHERENCE RULES:
1. **MANDATORY**: You MUST use the provided Template as the EXACT skeleton of your output.
   - **Do NOT** change section titles defined in the template.
   - **Do NOT** change the order of sections defined in the template.
   - **Do NOT** omit sections defined in the template.
   - You MAY add content *inside* the sections, but the structure must match the template.

CHARTER SUPREMACY & CONFLICT RESOLUTION:
1. **Charter Authority**: The rules in the "CONSTITUTION / CHARTERS" section are ABSOLUTE LAWS.
2. **Keyword Matching**: If the requirement mentions a specific technology (e.g., "MQTT", "BLE", "Payment"), you MUST search the charters for rules regarding that technology.
3. **Sub-Charter Priority**: A Sub-Charter (e.g., "sub-payment-rules.md", "sub-mqtt-rules.md") overrides the Main Charter if there is a conflict.
4. **No Hallucination**: Do NOT invent a technical solution if a Charter explicitly mandates a different one (e.g., if Charter says "Use MQTT Topic format X", do NOT use format Y).

Output ONLY the file content (Markdown), no conversational filler.
**All output must be in Simplified Chinese (简体中文).**
**MARKDOWN STANDARD**: Do NOT use bold text (e.g. **text**) inside Markdown Tables. Keep table cells simple."""


def construct_system_context(
    charters: list[str],
    templates: list[str],
    standards: list[str] | None = None,
) -> str:
    """Single system prompt: preamble, then STANDARDS, CHARTERS and TEMPLATES sections."""
    return (
        f"{SYSTEM_CONTEXT_PREAMBLE}\n\n"
        f"--- STANDARDS (MUST FOLLOW) ---\n{_join(standards or [])}\n\n"
        f"--- CONSTITUTION / CHARTERS ---\n{_join(charters)}\n\n"
        f"--- TEMPLATES ---\n{_join(templates)}\n"
    )


def _join(blocks: list[str]) -> str:
    return "\n\n".join(blocks)
