from fastapi import APIRouter, Depends

from imagehost.app.dependencies import require_admin
from imagehost.api.v1.endpoints import folders, images, maintenance, metadata


api_router = APIRouter(dependencies=[Depends(require_admin)])

api_router.include_router(images.router, prefix="/images", tags=["images"])
api_router.include_router(metadata.router, prefix="/metadata", tags=["metadata"])
api_router.include_router(folders.router, prefix="/folders", tags=["folders"])
api_router.include_router(maintenance.router, prefix="/maintenance", tags=["maintenance"])
