"""Extension to MIME type lookup for imported assets."""

from types import MappingProxyType

DEFAULT_MIME_TYPE = "application/octet-stream"

MIME_TYPES = MappingProxyType({
    "png": "image/png",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "webp": "image/webp",
    "gif": "image/gif",
    "wav": "audio/wav",
    "mp3": "audio/mpeg",
    "ogg": "audio/ogg",
    "mp4": "video/mp4",
    "webm": "video/webm",
})


def get_mime_type(ext: str) -> str:
    """Return the MIME type for a file extension (with or without dot).

    Unknown extensions map to application/octet-stream.
    """
    return MIME_TYPES.get(ext.lower().lstrip('.'), DEFAULT_MIME_TYPE)


def split_extension(filename: str, default: str = "bin") -> str:
    """Lower-cased extension of a file name, or `default` when it has none."""
    base = filename.rsplit('/', 1)[-1]
    if '.' not in base:
        return default
    ext = base.rsplit('.', 1)[-1].lower()
    return ext or default
