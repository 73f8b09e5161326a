"""Artifact tree - folders and files shared by the system library and project outputs.

Every mutating helper is pure: it returns a new root and copies only the nodes on
the path to the change, so callers can keep the previous snapshot and compare.
Unknown ids are a silent no-op (the same root object is returned).
"""

import uuid
from collections.abc import Callable
from typing import Literal

from pydantic import BaseModel, ConfigDict

NodeKind = Literal["file", "folder"]


class ArtifactNode(BaseModel):
    """Single node of an artifact tree."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    kind: NodeKind
    content: str | None = None  # file only
    children: list["ArtifactNode"] | None = None  # folder only
    is_expanded: bool | None = None  # UI only

    @property
    def is_file(self) -> bool:
        return self.kind == "file"

    @property
    def is_folder(self) -> bool:
        return self.kind == "folder"


def new_node_id(prefix: str) -> str:
    """Generate a fresh node id, e.g. ``tech-3f9a1c2b7``."""
    return f"{prefix}-{uuid.uuid4().hex[:9]}"


def make_file(name: str, content: str, node_id: str | None = None) -> ArtifactNode:
    """Create a file node."""
    return ArtifactNode(id=node_id or new_node_id("file"), name=name, kind="file", content=content)


def make_folder(
    name: str,
    children: list[ArtifactNode] | None = None,
    node_id: str | None = None,
    is_expanded: bool | None = True,
) -> ArtifactNode:
    """Create a folder node."""
    return ArtifactNode(
        id=node_id or new_node_id(f"folder-{name}"),
        name=name,
        kind="folder",
        children=list(children or []),
        is_expanded=is_expanded,
    )


# --- Lookup ---


def find_by_predicate(root: ArtifactNode, predicate: Callable[[ArtifactNode], bool]) -> ArtifactNode | None:
    """First node (depth-first, preorder) for which predicate holds."""
    if predicate(root):
        return root
    for child in root.children or []:
        found = find_by_predicate(child, predicate)
        if found is not None:
            return found
    return None


def find(root: ArtifactNode, node_id: str) -> ArtifactNode | None:
    """Find node by id."""
    return find_by_predicate(root, lambda n: n.id == node_id)


def find_content(root: ArtifactNode, node_id: str) -> str | None:
    """Content of the node with this id, or None when missing or empty."""
    node = find(root, node_id)
    return node.content if node is not None and node.content else None


def collect_files(node: ArtifactNode) -> list[ArtifactNode]:
    """Flatten to file nodes in depth-first preorder; folders are elided."""
    files: list[ArtifactNode] = []
    if node.is_file:
        files.append(node)
    for child in node.children or []:
        files.extend(collect_files(child))
    return files


def child_folder(folder: ArtifactNode, name: str) -> ArtifactNode | None:
    """Direct child folder with exactly this name."""
    for child in folder.children or []:
        if child.is_folder and child.name == name:
            return child
    return None


def child_file(folder: ArtifactNode, name: str) -> ArtifactNode | None:
    """Direct child file with exactly this name."""
    for child in folder.children or []:
        if child.is_file and child.name == name:
            return child
    return None


# --- Mutation (copy-on-write) ---


def _replace(root: ArtifactNode, node_id: str, fn: Callable[[ArtifactNode], ArtifactNode]) -> ArtifactNode:
    """Apply fn to the node with node_id; copy ancestors, share everything else."""
    if root.id == node_id:
        return fn(root)
    if not root.children:
        return root
    new_children: list[ArtifactNode] = []
    changed = False
    for child in root.children:
        updated = _replace(child, node_id, fn)
        changed = changed or updated is not child
        new_children.append(updated)
    if not changed:
        return root
    return root.model_copy(update={"children": new_children})


def update_file_content(root: ArtifactNode, file_id: str, content: str) -> ArtifactNode:
    """Set content of a file node."""
    return _replace(
        root,
        file_id,
        lambda n: n.model_copy(update={"content": content}) if n.is_file else n,
    )


def rename_node(root: ArtifactNode, node_id: str, name: str) -> ArtifactNode:
    """Rename any node."""
    return _replace(root, node_id, lambda n: n.model_copy(update={"name": name}))


def toggle_folder(root: ArtifactNode, folder_id: str) -> ArtifactNode:
    """Flip the UI expansion flag of a folder."""
    return _replace(
        root,
        folder_id,
        lambda n: n.model_copy(update={"is_expanded": not n.is_expanded}) if n.is_folder else n,
    )


def add_to_folder(root: ArtifactNode, folder_id: str, node: ArtifactNode) -> ArtifactNode:
    """Append node to a folder's children."""

    def _append(folder: ArtifactNode) -> ArtifactNode:
        if not folder.is_folder:
            return folder
        return folder.model_copy(update={"children": [*(folder.children or []), node]})

    return _replace(root, folder_id, _append)


def add_file_to_folder(
    root: ArtifactNode,
    folder_id: str,
    name: str,
    content: str,
    node_id: str | None = None,
) -> ArtifactNode:
    """Create a file and append it to a folder."""
    return add_to_folder(root, folder_id, make_file(name, content, node_id=node_id))


def delete_node(root: ArtifactNode, node_id: str) -> ArtifactNode:
    """Remove a node (and its subtree) anywhere below root. The root itself is never removed."""
    if not root.children:
        return root
    new_children: list[ArtifactNode] = []
    changed = False
    for child in root.children:
        if child.id == node_id:
            changed = True
            continue
        updated = delete_node(child, node_id)
        changed = changed or updated is not child
        new_children.append(updated)
    if not changed:
        return root
    return root.model_copy(update={"children": new_children})


def ensure_folder(root: ArtifactNode, name: str) -> tuple[ArtifactNode, ArtifactNode]:
    """Return (new_root, folder): the direct child folder of root named name, created if missing."""
    existing = child_folder(root, name)
    if existing is not None:
        return root, existing
    folder = make_folder(name)
    return add_to_folder(root, root.id, folder), folder


def upsert_file(
    root: ArtifactNode,
    folder_name: str,
    file_name: str,
    content: str,
    node_id: str | None = None,
) -> tuple[ArtifactNode, ArtifactNode]:
    """Write file_name into the top-level folder folder_name, replacing content of a same-named file.

    Returns (new_root, file_node). An existing file keeps its id.
    """
    root, folder = ensure_folder(root, folder_name)
    existing = child_file(folder, file_name)
    if existing is not None:
        root = update_file_content(root, existing.id, content)
        return root, existing.model_copy(update={"content": content})
    node = make_file(file_name, content, node_id=node_id)
    return add_to_folder(root, folder.id, node), node


def patch_missing(current: ArtifactNode, baseline: ArtifactNode) -> ArtifactNode:
    """Re-insert baseline nodes whose id is missing from current, recursively.

    Existing nodes (and user edits to them) are kept as-is; only absent defaults are added.
    """
    if not baseline.children or not current.is_folder:
        return current
    children = list(current.children or [])
    by_id = {c.id: i for i, c in enumerate(children)}
    changed = False
    for base_child in baseline.children:
        idx = by_id.get(base_child.id)
        if idx is None:
            children.append(base_child)
            changed = True
            continue
        patched = patch_missing(children[idx], base_child)
        if patched is not children[idx]:
            children[idx] = patched
            changed = True
    if not changed:
        return current
    return current.model_copy(update={"children": children})
