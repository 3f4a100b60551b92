"""Filename sanitization and MIME type detection for task files.

Both the write path and the read path of TaskFileStorage go through
sanitize_filename, so a file saved under a logical name is always served
back under that same name.
"""
import re
from pathlib import PurePosixPath

DEFAULT_FILENAME = "file"
DEFAULT_MIME_TYPE = "application/octet-stream"

_SEPARATORS = re.compile(r"[/\\]")

_MIME_TYPES = {
    # Documents
    "pdf": "application/pdf",
    "doc": "application/msword",
    "docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "xls": "application/vnd.ms-excel",
    "xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "ppt": "application/vnd.ms-powerpoint",
    "pptx": "application/vnd.openxmlformats-officedocument.presentationml.presentation",
    # Text
    "txt": "text/plain",
    "csv": "text/csv",
    "json": "application/json",
    "xml": "application/xml",
    "html": "text/html",
    "htm": "text/html",
    "css": "text/css",
    "js": "application/javascript",
    "md": "text/markdown",
    # Images
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "gif": "image/gif",
    "webp": "image/webp",
    "svg": "image/svg+xml",
    "ico": "image/x-icon",
    # Audio
    "mp3": "audio/mpeg",
    "wav": "audio/wav",
    "m4a": "audio/mp4",
    # Video
    "mp4": "video/mp4",
    "mov": "video/quicktime",
    "avi": "video/x-msvideo",
    # Archives
    "zip": "application/zip",
    "tar": "application/x-tar",
    "gz": "application/gzip",
    "rar": "application/vnd.rar",
    # Code
    "swift": "text/x-swift",
    "py": "text/x-python",
    "rb": "text/x-ruby",
    "java": "text/x-java",
    "c": "text/x-c",
    "h": "text/x-c",
    "cpp": "text/x-c++",
    "hpp": "text/x-c++",
}


def sanitize_filename(filename: str) -> str:
    """Reduce a caller-supplied name to a safe final path segment.

    Keeps only the last component after splitting on '/' and '\\',
    strips leading dots, and falls back to "file" when nothing is left.

    Examples:
        "../../etc/passwd" -> "passwd"
        ".hidden"          -> "hidden"
        "..", "/", "\\\\"  -> "file"
    """
    basename = _SEPARATORS.split(filename)[-1]
    sanitized = basename.lstrip(".")
    return sanitized or DEFAULT_FILENAME


def mime_type_for(filename: str) -> str:
    """Map a filename to a MIME type by extension (never raises)"""
    suffix = PurePosixPath(_SEPARATORS.split(filename)[-1]).suffix
    return _MIME_TYPES.get(suffix[1:].lower(), DEFAULT_MIME_TYPE)
