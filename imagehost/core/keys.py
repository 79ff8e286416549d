"""
Object key namespace rules.

Pure functions shared by the lifecycle services and the HTTP layer: key
validation, folder and file-name normalisation, and trash/restore key
derivation.
"""
import re
from dataclasses import dataclass
from typing import Any, Optional

# ---------------------------------------------------------------------
# Namespace constants
# ---------------------------------------------------------------------

CONFIG_ROOT = ".config"
RESERVED_PREFIXES = (f"{CONFIG_ROOT}/",)
THUMBS_PREFIX = ".thumbs/"
TRASH_PREFIX = "trash/"

TRASH_ORIGINAL_KEY_ATTR = "trash-original-key"
TRASH_DELETED_AT_ATTR = "trash-deleted-at"

MAX_FILE_NAME_LENGTH = 255

_FOLDER_SEGMENT_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_-]*$")
_FOLDER_INVALID_CHARS_RE = re.compile(r"[^A-Za-z0-9_-]")
_FILE_NAME_INVALID_CHARS_RE = re.compile(r"[^A-Za-z0-9._-]")
_REPEATED_SLASHES_RE = re.compile(r"/{2,}")

# Matches the collision suffix appended by build_trash_key,
# including the optional counter added on a second collision.
_DELETED_SUFFIX_RE = re.compile(r"__deleted_[0-9TZ-]+(?:_\d+)?$")


@dataclass(frozen=True)
class KeyCheck:
    """Outcome of a key validation."""
    ok: bool
    key: str = ""
    reason: Optional[str] = None


def _as_string(value: Any) -> str:
    return value if isinstance(value, str) else ""


# ---------------------------------------------------------------------
# Basic shape
# ---------------------------------------------------------------------

def clean_key(value: Any) -> str:
    """Trim whitespace, strip leading slashes and collapse repeated slashes."""
    key = _as_string(value).strip().lstrip("/")
    return _REPEATED_SLASHES_RE.sub("/", key)


def is_reserved_key(key: str) -> bool:
    if key == CONFIG_ROOT:
        return True
    return any(key.startswith(prefix) for prefix in RESERVED_PREFIXES)


def is_hidden_object_key(key: str) -> bool:
    """True if any path segment starts with a dot."""
    return any(segment.startswith(".") for segment in key.split("/"))


def is_trash_key(key: str) -> bool:
    return key.startswith(TRASH_PREFIX)


def ensure_safe_object_key(value: Any) -> KeyCheck:
    """
    Validate a key for operations that must never touch internal or hidden objects.

    Rejects empty keys, path traversal, the reserved config root and any key
    with a hidden segment.
    """
    key = clean_key(value)
    if not key:
        return KeyCheck(ok=False, reason="Missing key")
    if ".." in key:
        return KeyCheck(ok=False, reason="Invalid key path")
    if is_reserved_key(key):
        return KeyCheck(ok=False, reason="Reserved key path")
    if is_hidden_object_key(key):
        return KeyCheck(ok=False, reason="Hidden key path")
    return KeyCheck(ok=True, key=key)


def ensure_safe_upload_key(value: Any, allow_thumbs: bool = False) -> KeyCheck:
    """
    Validate an upload target key.

    Same rules as ensure_safe_object_key, except that keys under the
    thumbnail prefix are accepted when the caller passes allow_thumbs.
    """
    key = clean_key(value)
    if not key:
        return KeyCheck(ok=False, reason="Missing key")
    if ".." in key:
        return KeyCheck(ok=False, reason="Invalid key path")
    if key.startswith(THUMBS_PREFIX):
        if not allow_thumbs:
            return KeyCheck(ok=False, reason="Hidden key path")
        if is_hidden_object_key(key[len(THUMBS_PREFIX):]):
            return KeyCheck(ok=False, reason="Hidden key path")
        return KeyCheck(ok=True, key=key)
    return ensure_safe_object_key(key)


# ---------------------------------------------------------------------
# Folders and file names
# ---------------------------------------------------------------------

def normalize_folder_segment(value: Any) -> str:
    return _FOLDER_INVALID_CHARS_RE.sub("-", _as_string(value).strip())


def is_valid_folder_segment(value: str) -> bool:
    return bool(_FOLDER_SEGMENT_RE.match(value))


def normalize_folder_path(value: Any) -> str:
    raw = _as_string(value).strip().strip("/")
    if not raw:
        return ""
    segments = [normalize_folder_segment(segment) for segment in raw.split("/")]
    return "/".join(segment for segment in segments if segment)


def is_valid_folder_path(value: str) -> bool:
    if value == "":
        return True
    return all(is_valid_folder_segment(segment) for segment in value.split("/"))


def normalize_file_name(value: Any) -> str:
    """Replace unsafe characters with '_', drop leading underscores, cap the length."""
    sanitized = _FILE_NAME_INVALID_CHARS_RE.sub("_", _as_string(value).strip())
    return sanitized.lstrip("_")[:MAX_FILE_NAME_LENGTH]


def base_name(key: str) -> str:
    return key.rsplit("/", 1)[-1] or key


def parent_folder(key: str) -> str:
    """Folder part of a key, '' for keys at the bucket root."""
    return key.rsplit("/", 1)[0] if "/" in key else ""


def file_ext_from_key(key: str) -> str:
    name = base_name(key)
    dot = name.rfind(".")
    return name[dot + 1:].lower() if dot >= 0 else ""


def _split_name(key: str) -> tuple[str, str, str]:
    """Split a key into (directory with trailing slash, stem, extension with dot)."""
    slash = key.rfind("/")
    directory = key[:slash + 1] if slash >= 0 else ""
    name = key[slash + 1:]
    dot = name.rfind(".")
    if dot > 0:
        return directory, name[:dot], name[dot:]
    return directory, name, ""


def _with_suffix(key: str, marker: str, suffix: str) -> str:
    directory, stem, ext = _split_name(key)
    return f"{directory}{stem}__{marker}_{suffix}{ext}"


# ---------------------------------------------------------------------
# Trash / restore derivation
# ---------------------------------------------------------------------

def build_trash_key(key: str, suffix: Optional[str] = None) -> str:
    """
    Trash key for a live key.

    photos/cat.png -> trash/photos/cat.png
    photos/cat.png, suffix -> trash/photos/cat__deleted_<suffix>.png
    """
    normalized = clean_key(key)
    if not suffix:
        return f"{TRASH_PREFIX}{normalized}"
    return f"{TRASH_PREFIX}{_with_suffix(normalized, 'deleted', suffix)}"


def derive_original_key(trash_key: str) -> str:
    """Strip the trash root and any deletion suffix from a trash key."""
    key = clean_key(trash_key)
    if is_trash_key(key):
        key = key[len(TRASH_PREFIX):]
    directory, stem, ext = _split_name(key)
    stem = _DELETED_SUFFIX_RE.sub("", stem)
    return f"{directory}{stem}{ext}"


def build_restore_key(original_key: str, suffix: Optional[str] = None) -> str:
    """Restore target for an original key, suffixed with __restored_<suffix> on collision."""
    normalized = clean_key(original_key)
    if not suffix:
        return normalized
    return _with_suffix(normalized, "restored", suffix)


def with_counter(key: str, counter: int) -> str:
    """Append a numeric counter to the stem: a__deleted_x.png -> a__deleted_x_2.png."""
    directory, stem, ext = _split_name(key)
    return f"{directory}{stem}_{counter}{ext}"
