"""Image lifecycle endpoints: list, delete, restore, move, rename."""
from typing import Optional

from fastapi import APIRouter, Depends, Query

from imagehost.app.config import settings
from imagehost.app.dependencies import get_context
from imagehost.core import keys as keyspace
from imagehost.core.context import StoreContext
from imagehost.schemas.images import (
    DeleteRequest,
    ImageItem,
    ImageListResponse,
    KeysRequest,
    MoveRequest,
    RenameRequest,
)
from imagehost.schemas.operation import CascadeResult
from imagehost.services import cascade


router = APIRouter()


@router.get('', response_model=ImageListResponse, response_model_by_alias=True)
def list_images(
    prefix: str = Query('', description='Folder prefix, e.g. "photos/" or "trash/"'),
    cursor: Optional[str] = Query(None, description='Continuation cursor from the previous page'),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, description='Page size, clamped to 1..1000'),
    ctx: StoreContext = Depends(get_context),
):
    """
    List one page of visible objects.

    Hidden and reserved keys are filtered out of the page, so a page may
    hold fewer than `limit` items while `hasMore` is still true.
    """
    page = ctx.meta.list_objects_page(keyspace.clean_key(prefix), cursor, limit)
    images = [
        ImageItem(key=obj.key, size=obj.size, uploaded=obj.uploaded)
        for obj in page.objects
        if not keyspace.is_reserved_key(obj.key) and not keyspace.is_hidden_object_key(obj.key)
    ]
    return ImageListResponse(images=images, cursor=page.cursor, has_more=page.has_more)


@router.post('/delete', response_model=CascadeResult, response_model_exclude_none=True)
def delete_images(body: DeleteRequest, ctx: StoreContext = Depends(get_context)):
    """Move images to the trash; trashed keys (or all keys with `permanent`) are deleted."""
    return cascade.delete_objects(ctx, body.keys, permanent=body.permanent)


@router.post('/restore', response_model=CascadeResult, response_model_exclude_none=True)
def restore_images(body: KeysRequest, ctx: StoreContext = Depends(get_context)):
    return cascade.restore_objects(ctx, body.keys)


@router.post('/move', response_model=CascadeResult, response_model_exclude_none=True)
def move_images(body: MoveRequest, ctx: StoreContext = Depends(get_context)):
    return cascade.move_objects(ctx, body.keys, body.target_folder)


@router.post('/rename', response_model=CascadeResult, response_model_exclude_none=True)
def rename_images(body: RenameRequest, ctx: StoreContext = Depends(get_context)):
    pairs = [(item.from_key, item.to_key) for item in body.renames]
    return cascade.rename_objects(ctx, pairs)
