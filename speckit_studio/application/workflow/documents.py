"""Where stage outputs live in the project tree, and the shared spec context."""

from speckit_studio.domain.entities.artifact_tree import (
    ArtifactNode,
    child_file,
    child_folder,
    find_by_predicate,
    upsert_file,
)
from speckit_studio.domain.services.context_aggregator import (
    CMD_SPECIFY,
    STD_SPEC,
    TEMPLATES_ROOT_ID,
    collect_context,
    collect_standards,
    construct_system_context,
)
from speckit_studio.domain.services.platform_detector import detect_platforms

SPECS_FOLDER = "specs"
TECH_FOLDER = "tech-design"
TEST_FOLDER = "test-plans"
PM_FOLDER = "project-management"

SPEC_FILE = "spec.md"
CHECKLIST_FILE = "checklist.md"
TASKS_FILE = "tasks.md"
ANALYSIS_FILE = "analysis.md"


def find_spec(files: ArtifactNode) -> ArtifactNode | None:
    """The working spec.md: specs/spec.md, else any file named spec.md."""
    folder = child_folder(files, SPECS_FOLDER)
    if folder is not None:
        node = child_file(folder, SPEC_FILE)
        if node is not None:
            return node
    return find_by_predicate(files, lambda n: n.is_file and n.name == SPEC_FILE)


def spec_system_context(system_files: ArtifactNode, requirement_context: str) -> str:
    """System prompt for spec generation: specify command, charters, spec template, writing standard."""
    platforms = detect_platforms(requirement_context)
    collected = collect_context(system_files, CMD_SPECIFY, TEMPLATES_ROOT_ID, platforms)
    standards = collect_standards(system_files, [STD_SPEC])
    return construct_system_context(collected.charters, collected.templates, standards)


def write_documents(
    files: ArtifactNode,
    folder_name: str,
    documents: dict[str, str],
) -> tuple[ArtifactNode, str | None]:
    """Upsert every document into folder_name. Returns (new_tree, id of the folder's first file)."""
    for name, content in documents.items():
        files, _ = upsert_file(files, folder_name, name, content)
    folder = child_folder(files, folder_name)
    first = next((c for c in (folder.children or []) if c.is_file), None) if folder is not None else None
    return files, first.id if first is not None else None


def project_documents(files: ArtifactNode) -> list[tuple[str, str]]:
    """(path, content) for every non-empty generated document, in tree order."""
    documents = []

    def _walk(node: ArtifactNode, prefix: str) -> None:
        for child in node.children or []:
            path = f"{prefix}{child.name}"
            if child.is_folder:
                _walk(child, f"{path}/")
            elif child.content and child.name != ANALYSIS_FILE:
                documents.append((path, child.content))

    _walk(files, "")
    return documents
