"""Maintenance endpoints."""
from fastapi import APIRouter, Depends, Query

from imagehost.app.dependencies import get_context
from imagehost.core.context import StoreContext
from imagehost.services.maintenance import (
    DEFAULT_HASH_LIMIT,
    BrokenLinksResult,
    DuplicateScanResult,
    OrphanCleanupResult,
    find_broken_links,
    find_duplicates,
    prune_orphan_metadata,
)

router = APIRouter()


@router.post('/orphans', response_model=OrphanCleanupResult)
def cleanup_orphan_metadata(ctx: StoreContext = Depends(get_context)):
    """Drop tag and hash entries for objects that no longer exist."""
    return prune_orphan_metadata(ctx)


@router.get('/broken-links', response_model=BrokenLinksResult)
def check_broken_links(ctx: StoreContext = Depends(get_context)):
    """List image, hash and share entries that point at missing objects."""
    return find_broken_links(ctx)


@router.get('/duplicates', response_model=DuplicateScanResult)
def scan_duplicates(
    compute: bool = Query(False, description="Hash objects missing from the hash index first"),
    limit: int = Query(DEFAULT_HASH_LIMIT, ge=0, description="Maximum objects to hash"),
    ctx: StoreContext = Depends(get_context),
):
    return find_duplicates(ctx, compute=compute, limit=limit)
