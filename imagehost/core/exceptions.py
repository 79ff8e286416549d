"""Error taxonomy for object lifecycle and metadata operations."""


class ImageHostError(Exception):
    """Base error. `retryable` tells batch callers whether resubmitting can help."""

    code = "error"
    retryable = False

    def __init__(self, message: str = ""):
        super().__init__(message or self.__class__.__doc__ or self.code)
        self.message = message or str(self.args[0])


class InvalidKeyError(ImageHostError):
    """Key failed namespace validation."""
    code = "invalid_key"


class ObjectNotFoundError(ImageHostError):
    """Object does not exist."""
    code = "not_found"

    def __init__(self, key: str):
        super().__init__(f"Object not found: {key}")
        self.key = key


class TargetExistsError(ImageHostError):
    """Rename or move target already exists."""
    code = "target_exists"

    def __init__(self, key: str):
        super().__init__(f"Target exists: {key}")
        self.key = key


class VersionConflictError(ImageHostError):
    """Metadata document advanced past the version the writer read."""
    code = "version_conflict"
    retryable = True

    def __init__(self, key: str):
        super().__init__(f"Version conflict writing {key}")
        self.key = key


class StoreUnavailableError(ImageHostError):
    """Transient blob store failure."""
    code = "store_unavailable"
    retryable = True
