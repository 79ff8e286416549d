"""Folder endpoints."""
from fastapi import APIRouter, Depends, Query

from imagehost.app.dependencies import get_context
from imagehost.core.context import StoreContext
from imagehost.schemas.images import FolderCreateRequest, FolderListResponse, FolderUpdateRequest
from imagehost.schemas.operation import CascadeResult
from imagehost.services import folders as folder_service


router = APIRouter()


@router.get('', response_model=FolderListResponse)
def list_folders(ctx: StoreContext = Depends(get_context)):
    return FolderListResponse(folders=folder_service.list_folders(ctx))


@router.post('')
def create_folder(body: FolderCreateRequest, ctx: StoreContext = Depends(get_context)):
    folder = folder_service.create_folder(ctx, body.name)
    return {"ok": True, "folder": folder}


@router.put('', response_model=CascadeResult, response_model_exclude_none=True)
def update_folder(body: FolderUpdateRequest, ctx: StoreContext = Depends(get_context)):
    """Rename a folder (target must be empty) or merge it into another."""
    return folder_service.rename_folder(ctx, body.from_folder, body.to_folder, mode=body.mode)


@router.delete('', response_model=CascadeResult, response_model_exclude_none=True)
def delete_folder(
    name: str = Query(..., min_length=1, description='Folder to trash'),
    ctx: StoreContext = Depends(get_context),
):
    return folder_service.delete_folder(ctx, name)
