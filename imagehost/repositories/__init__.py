from .meta_repo import MetadataStore, DocumentEdit, ObjectPage

__all__ = ["MetadataStore", "DocumentEdit", "ObjectPage"]
