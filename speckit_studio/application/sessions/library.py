"""Library service - the shared system library and the personal saved-document library."""

import logging

from pydantic import ValidationError

from speckit_studio.application.sessions.dto import FilePatch
from speckit_studio.domain.entities.artifact_tree import (
    ArtifactNode,
    add_to_folder,
    delete_node,
    find,
    make_file,
    make_folder,
    new_node_id,
    patch_missing,
    rename_node,
    toggle_folder,
    update_file_content,
)
from speckit_studio.domain.ports.storage import BlobStorePort
from speckit_studio.infrastructure.library.default_library import build_default_library

logger = logging.getLogger(__name__)

SYSTEM_FILES_KEY = "system_files"
PERSONAL_LIBRARY_KEY = "library"
PERSONAL_ROOT_ID = "lib-root"


def apply_patch(tree: ArtifactNode, node_id: str, patch: FilePatch) -> ArtifactNode:
    """Rename / set content / toggle expansion of one node."""
    if patch.name is not None:
        tree = rename_node(tree, node_id, patch.name)
    if patch.content is not None:
        tree = update_file_content(tree, node_id, patch.content)
    if patch.toggle_expanded:
        tree = toggle_folder(tree, node_id)
    return tree


class LibraryService:
    """Loads, seeds and edits the two library trees kept in the blob store."""

    def __init__(self, store: BlobStorePort) -> None:
        self._store = store

    def _load_tree(self, key: str) -> ArtifactNode | None:
        raw = self._store.load(key)
        if raw is None:
            return None
        try:
            return ArtifactNode.model_validate(raw)
        except ValidationError:
            logger.warning("Stored tree %s is malformed, ignoring it", key, exc_info=True)
            return None

    def _save_tree(self, key: str, tree: ArtifactNode) -> ArtifactNode:
        if not self._store.save(key, tree.model_dump(mode="json")):
            logger.warning("Library tree %s was not persisted", key)
        return tree

    # --- System library ---

    def get_system_library(self) -> ArtifactNode:
        """Stored system library with any missing defaults re-inserted; seeded on first use."""
        default = build_default_library()
        stored = self._load_tree(SYSTEM_FILES_KEY)
        if stored is None:
            logger.info("Seeding default system library")
            return self._save_tree(SYSTEM_FILES_KEY, default)
        patched = patch_missing(stored, default)
        if patched is not stored:
            logger.info("System library patched with new default nodes")
            self._save_tree(SYSTEM_FILES_KEY, patched)
        return patched

    def replace_system_library(self, tree: ArtifactNode) -> ArtifactNode:
        return self._save_tree(SYSTEM_FILES_KEY, tree)

    def update_system_node(self, node_id: str, patch: FilePatch) -> ArtifactNode | None:
        """Apply patch; None when node_id does not exist."""
        tree = self.get_system_library()
        if find(tree, node_id) is None:
            return None
        return self._save_tree(SYSTEM_FILES_KEY, apply_patch(tree, node_id, patch))

    def add_system_file(self, folder_id: str, name: str, content: str) -> ArtifactNode | None:
        """Add a file to a folder; returns the new file, or None when the folder does not exist."""
        tree = self.get_system_library()
        folder = find(tree, folder_id)
        if folder is None or not folder.is_folder:
            return None
        node = make_file(name, content)
        self._save_tree(SYSTEM_FILES_KEY, add_to_folder(tree, folder_id, node))
        return node

    def delete_system_node(self, node_id: str) -> bool:
        tree = self.get_system_library()
        if node_id == tree.id or find(tree, node_id) is None:
            return False
        self._save_tree(SYSTEM_FILES_KEY, delete_node(tree, node_id))
        return True

    # --- Personal library ---

    def get_personal_library(self) -> ArtifactNode:
        stored = self._load_tree(PERSONAL_LIBRARY_KEY)
        if stored is None:
            return make_folder("My Library", node_id=PERSONAL_ROOT_ID)
        return stored

    def save_to_library(self, name: str, content: str) -> ArtifactNode:
        """Append a saved document to the personal library root."""
        tree = self.get_personal_library()
        node = make_file(name, content, node_id=new_node_id("lib"))
        self._save_tree(PERSONAL_LIBRARY_KEY, add_to_folder(tree, tree.id, node))
        return node
