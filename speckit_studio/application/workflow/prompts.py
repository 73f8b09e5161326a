"""Prompt templates for the generation backend."""

REFINEMENT_NOTE = (
    "\n[SYSTEM STATUS: Specification Document has been generated. "
    "User is providing feedback/refinement.]"
)

SPEC_PROMPT = """Target: Generate "Requirement Specification" (spec.md).
Input Requirement Context: {context}

INSTRUCTION:
1. Find the "spec.md" template in the provided TEMPLATES section of the context.
2. Output the full document using that EXACT structure.
3. Fill in Section 1, 2, 3 based on the Input Context.
4. Leave Section 4, 5, 6 as "Pending Generation" as defined in the template."""

REGENERATE_PROMPT = """Target: REGENERATE the "Requirement Specification" (spec.md) completely from scratch.
Input Requirement Context: {context}

INSTRUCTION:
1. Find the "spec.md" template in the context.
2. Output the FULL DOCUMENT filling ALL SECTIONS (1 through 6).
3. Do NOT leave anything as "Pending Generation". Fill Data Tracking, Acceptance Criteria, and KB based on the requirements."""

SLUG_SYSTEM = "You are a naming assistant. Output only the kebab-case string."

SLUG_PROMPT = """Analyze the following requirement context and extract the main feature or update topic.
Context: {context}

Output strictly a short filename suffix in English (kebab-case, max 5 words).
Example: "add-offline-mode", "payment-integration", "user-login-refactor".
Do NOT output markdown or file extensions."""

COMPLETE_SYSTEM = "You are a QA and Data Specialist."

COMPLETE_PROMPT = """Source Spec:
{spec}

Task:
Generate Section 4 (Data Tracking), Section 5 (Acceptance Criteria), and Section 6 (Glossary/KB) based on the source spec.

Standards:
{standards}

Output strictly Markdown starting with "## 4. 数据埋点设计"."""

CHECKLIST_PROMPT = "Check this spec against charters:\n{spec}"

TECH_PROMPT = """Requirement: {spec}
Target Platforms: {platforms}

Task: Generate a technical design document for EACH platform.

CRITICAL INSTRUCTIONS (CONSTRAINT ANALYSIS):
1. **SCAN CHARTERS FIRST**: Before writing a single line of code design, scan the provided "CONSTITUTION / CHARTERS" context for keywords found in the Requirement (e.g., "MQTT", "Bluetooth", "Payment", "Database").
2. **APPLY SUB-CHARTERS**: If a sub-charter exists (e.g., "sub-mqtt-rules.md"), you MUST follow its rules. For example, if the charter says "Use Protobuf for MQTT", do NOT propose JSON.
3. **TEMPLATE MATCHING**: For each platform, locate the specific template in the context (e.g. "web-template.md").
4. **STRICT OUTPUT**: Your output for that file MUST strictly follow the headers and structure of that specific template.

If you find a technical constraint in the charters (e.g. "Use Hive for local storage"), explicitly mention "As per Charter X..." in your design decision."""

AUTOTEST_PROMPT = """Requirement: {spec}
Platforms: {platforms}
Task: Generate Automation Test Plans.

INSTRUCTIONS:
1. Use the provided "autotest" templates matching the platforms.
2. Strictly follow the template structure."""

TASKS_PROMPT = "Generate Task List for:\n{spec}"

ANALYZE_PROMPT = """Target Platforms: {platforms}

Task: Run a cross-document consistency analysis of the project documents below.
1. List requirements from the spec that are missing from the technical designs, test plans or task list.
2. List statements that contradict each other between documents.
3. List design decisions that violate a charter, citing the charter file name.
Output a Markdown report with one table per category (no bold text inside tables).

{documents}"""


def format_documents(documents: list[tuple[str, str]]) -> str:
    """Label each (name, content) pair for a multi-document prompt."""
    return "\n\n".join(f"--- DOCUMENT: {name} ---\n{content}" for name, content in documents)
