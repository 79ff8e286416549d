"""Tag and favorite endpoints."""
from fastapi import APIRouter, Depends

from imagehost.app.dependencies import get_context
from imagehost.core.context import StoreContext
from imagehost.schemas.images import MetadataBatchRequest
from imagehost.schemas.meta import ImageMeta
from imagehost.schemas.operation import CascadeResult
from imagehost.services import cascade


router = APIRouter()


@router.get('', response_model=ImageMeta)
def get_image_metadata(ctx: StoreContext = Depends(get_context)):
    return ctx.meta.get_image_meta()


@router.post('/batch', response_model=CascadeResult, response_model_exclude_none=True)
def update_metadata_batch(body: MetadataBatchRequest, ctx: StoreContext = Depends(get_context)):
    """
    Add/remove tags and set the favorite flag on many images.

    Items whose entry ends up with no tags and no favorite are pruned.
    """
    return cascade.retag_objects(
        ctx,
        body.keys,
        add_tags=body.add_tags,
        remove_tags=body.remove_tags,
        favorite=body.favorite,
    )
