"""Application-wide dependencies: storage context and admin token check."""
import logging
import secrets
from functools import lru_cache
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from imagehost.app.config import Settings, settings
from imagehost.core.context import StoreContext
from imagehost.services.storage.base import BlobStore

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


def build_store(config: Settings) -> BlobStore:
    if config.STORAGE_BACKEND == "s3":
        from imagehost.services.storage.s3 import S3BlobStore
        return S3BlobStore(bucket_name=config.S3_BUCKET_NAME)

    from imagehost.services.storage.memory import MemoryBlobStore
    logger.warning("Using in-memory blob store; data is lost on restart")
    return MemoryBlobStore()


@lru_cache(maxsize=1)
def get_context() -> StoreContext:
    """One context per process so metadata write locks are shared by all requests."""
    return StoreContext(store=build_store(settings))


async def require_admin(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> None:
    """Check the static admin bearer token when one is configured."""
    if not settings.ADMIN_TOKEN:
        return
    if credentials is None or not secrets.compare_digest(credentials.credentials, settings.ADMIN_TOKEN):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
