"""Image host console: trash, metadata cascade and batch operations over a blob store."""

__version__ = "0.1.0"
