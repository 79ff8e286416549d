"""Request/response schemas for the image and folder endpoints."""
from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from imagehost.app.config import settings


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class KeysRequest(ApiModel):
    """Batch request over object keys."""
    keys: list[str] = Field(..., min_length=1, max_length=settings.MAX_BATCH_ITEMS)


class DeleteRequest(KeysRequest):
    permanent: bool = Field(False, description="Skip the trash for live keys")


class MoveRequest(KeysRequest):
    target_folder: str = Field("", description="Destination folder, '' for the bucket root")


class RenameItem(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    from_key: str = Field(..., alias="from")
    to_key: str = Field(..., alias="to")


class RenameRequest(ApiModel):
    renames: list[RenameItem] = Field(..., min_length=1, max_length=settings.MAX_BATCH_ITEMS)


class MetadataBatchRequest(KeysRequest):
    add_tags: list[str] = Field(default_factory=list)
    remove_tags: list[str] = Field(default_factory=list)
    favorite: Optional[bool] = None


class ImageItem(ApiModel):
    key: str
    size: int
    uploaded: Optional[datetime] = None


class ImageListResponse(ApiModel):
    images: list[ImageItem]
    cursor: Optional[str] = None
    has_more: bool = False


class FolderCreateRequest(ApiModel):
    name: str


class FolderUpdateRequest(ApiModel):
    from_folder: str = Field(..., alias="from")
    to_folder: str = Field(..., alias="to")
    mode: Literal["rename", "merge"] = "rename"


class FolderListResponse(ApiModel):
    folders: list[str]
