"""Library API - shared system library (charters, standards, templates) and personal library."""

from fastapi import APIRouter, Depends, HTTPException, Request

from speckit_studio.api.dependencies import get_library_service, limiter
from speckit_studio.application.sessions.dto import FilePatch, NewFileRequest
from speckit_studio.application.sessions.library import LibraryService
from speckit_studio.domain.entities.artifact_tree import ArtifactNode

router = APIRouter(prefix="/library", tags=["library"])


@router.get("/system", response_model=ArtifactNode)
@limiter.limit("60/minute")
async def get_system_library(
    request: Request,
    service: LibraryService = Depends(get_library_service),
) -> ArtifactNode:
    """System library, seeded or patched with missing defaults."""
    return service.get_system_library()


@router.put("/system", response_model=ArtifactNode)
@limiter.limit("30/minute")
async def replace_system_library(
    request: Request,
    tree: ArtifactNode,
    service: LibraryService = Depends(get_library_service),
) -> ArtifactNode:
    return service.replace_system_library(tree)


@router.post("/system/folders/{folder_id}/files", response_model=ArtifactNode)
@limiter.limit("30/minute")
async def add_system_file(
    folder_id: str,
    request: Request,
    body: NewFileRequest,
    service: LibraryService = Depends(get_library_service),
) -> ArtifactNode:
    """Add a charter, standard or template file to a folder."""
    node = service.add_system_file(folder_id, body.name, body.content)
    if node is None:
        raise HTTPException(status_code=404, detail="Folder not found")
    return node


@router.patch("/system/files/{node_id}", response_model=ArtifactNode)
@limiter.limit("60/minute")
async def patch_system_node(
    node_id: str,
    request: Request,
    patch: FilePatch,
    service: LibraryService = Depends(get_library_service),
) -> ArtifactNode:
    tree = service.update_system_node(node_id, patch)
    if tree is None:
        raise HTTPException(status_code=404, detail="Node not found")
    return tree


@router.delete("/system/files/{node_id}")
@limiter.limit("30/minute")
async def delete_system_node(
    node_id: str,
    request: Request,
    service: LibraryService = Depends(get_library_service),
) -> dict:
    if not service.delete_system_node(node_id):
        raise HTTPException(status_code=404, detail="Node not found")
    return {"ok": True}


@router.get("/personal", response_model=ArtifactNode)
@limiter.limit("60/minute")
async def get_personal_library(
    request: Request,
    service: LibraryService = Depends(get_library_service),
) -> ArtifactNode:
    return service.get_personal_library()


@router.post("/personal", response_model=ArtifactNode)
@limiter.limit("30/minute")
async def save_to_library(
    request: Request,
    body: NewFileRequest,
    service: LibraryService = Depends(get_library_service),
) -> ArtifactNode:
    """Save a document (usually a generated file) to the personal library."""
    return service.save_to_library(body.name, body.content)
