"""Metadata document schemas (stored as JSON blobs under .config/)."""
from typing import ClassVar, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class MetaModel(BaseModel):
    """camelCase on the wire, snake_case in Python."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class MetaDocument(MetaModel):
    """Common envelope: version is bumped by every save."""
    BLOB_KEY: ClassVar[str] = ""

    version: int = 1
    updated_at: str = ""


class ImageMetaEntry(MetaModel):
    tags: list[str] = Field(default_factory=list)
    favorite: bool = False

    @property
    def is_empty(self) -> bool:
        return not self.tags and not self.favorite


class ImageMeta(MetaDocument):
    """Tags and favorites per object key."""
    BLOB_KEY: ClassVar[str] = ".config/image-meta.json"

    images: dict[str, ImageMetaEntry] = Field(default_factory=dict)

    def prune(self) -> int:
        """Drop entries with no tags that are not favorites. Returns the number removed."""
        empty = [key for key, entry in self.images.items() if entry.is_empty]
        for key in empty:
            del self.images[key]
        return len(empty)


class HashMetaEntry(MetaModel):
    hash: str = ""
    size: Optional[int] = None
    uploaded_at: Optional[str] = None


class HashMeta(MetaDocument):
    """Content-hash index used for duplicate detection."""
    BLOB_KEY: ClassVar[str] = ".config/image-hashes.json"

    hashes: dict[str, HashMetaEntry] = Field(default_factory=dict)


class ShareMetaEntry(MetaModel):
    id: str
    title: str = ""
    description: str = ""
    items: list[str] = Field(default_factory=list)
    created_at: str = ""
    updated_at: str = ""
    password_hash: Optional[str] = None
    password_salt: Optional[str] = None
    domain: str = ""
    folder: Optional[str] = None


class ShareMeta(MetaDocument):
    """Share / delivery definitions keyed by share id."""
    BLOB_KEY: ClassVar[str] = ".config/share-meta.json"

    shares: dict[str, ShareMetaEntry] = Field(default_factory=dict)


class FolderMeta(MetaDocument):
    """Explicit folders, including empty ones the object listing cannot show."""
    BLOB_KEY: ClassVar[str] = ".config/folders.json"

    folders: list[str] = Field(default_factory=list)


class MaintenanceMeta(MetaDocument):
    """Last run timestamp per maintenance job."""
    BLOB_KEY: ClassVar[str] = ".config/maintenance.json"

    last_runs: dict[str, str] = Field(default_factory=dict)
