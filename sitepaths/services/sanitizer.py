"""
Canonical form of path strings.

Stored paths are ASCII-safe: slash separated, no leading or trailing slash,
and every segment holding non-ASCII characters is punycode encoded behind an
``xn-`` prefix. The ``utf8`` form decodes those segments again for display.
"""

import logging
from typing import Optional

from sitepaths.core import config as app_config
from sitepaths.core.config import PathEncoding, Settings

logger = logging.getLogger(__name__)

ENCODED_SEGMENT_PREFIX = "xn-"


def sanitize(raw: Optional[str], target_encoding: Optional[PathEncoding] = None, lowercase: Optional[bool] = None) -> str:
    """
    Normalizes a raw path to its canonical comparable form.

    Args:
        raw: Path as received from a caller or built from page names.
        target_encoding: "ascii" (storage form) or "utf8" (display form).
            Defaults to "ascii"; storage never uses anything else.
        lowercase: Lowercase the path before encoding. Defaults to the
            LOWERCASE_PATHS setting.

    Returns:
        The sanitized path; "" stands for the root path.
    """
    if not raw:
        return ""
    if lowercase is None:
        lowercase = app_config.settings.LOWERCASE_PATHS

    segments = [segment.strip() for segment in str(raw).strip().split("/")]
    segments = [segment for segment in segments if segment]
    if lowercase:
        segments = [segment.lower() for segment in segments]

    if (target_encoding or "ascii") == "utf8":
        return "/".join(decode_segment(segment) for segment in segments)
    return "/".join(encode_segment(segment) for segment in segments)


def encode_segment(segment: str) -> str:
    if segment.isascii():
        return segment
    return ENCODED_SEGMENT_PREFIX + segment.encode("punycode").decode("ascii")


def decode_segment(segment: str) -> str:
    if not segment.startswith(ENCODED_SEGMENT_PREFIX):
        return segment
    try:
        decoded = segment[len(ENCODED_SEGMENT_PREFIX) :].encode("ascii").decode("punycode")
    except UnicodeError:
        logger.debug(f"Segment '{segment}' looks encoded but is not valid punycode; leaving as is.")
        return segment
    # A plain ASCII name that merely starts with the prefix is not an encoded segment.
    if decoded.isascii():
        return segment
    return decoded


def to_display(path: Optional[str], encoding: Optional[PathEncoding] = None) -> Optional[str]:
    """Applies the configured display encoding to a stored path; None passes through."""
    if path is None:
        return None
    if (encoding or app_config.settings.PATH_ENCODING) != "utf8":
        return path
    if path == "/":
        return path
    return "/".join(decode_segment(segment) for segment in path.split("/"))


def first_segment(path: Optional[str], lowercase: Optional[bool] = None) -> str:
    """First segment of a sanitized path, "" for the root."""
    return sanitize(path, lowercase=lowercase).split("/", 1)[0]


def join_path(parent_path: str, name: str, lowercase: Optional[bool] = None) -> str:
    """Appends a sanitized name to an already sanitized parent path."""
    segment = sanitize(name, lowercase=lowercase)
    if not parent_path:
        return segment
    if not segment:
        return parent_path
    return f"{parent_path}/{segment}"


class PathSanitizer:
    """The functions above, bound to one Settings instance instead of the module-level one."""

    def __init__(self, app_settings: Settings):
        self.settings = app_settings

    @property
    def lowercase(self) -> bool:
        return self.settings.LOWERCASE_PATHS

    def sanitize(self, raw: Optional[str], target_encoding: Optional[PathEncoding] = None) -> str:
        return sanitize(raw, target_encoding, lowercase=self.lowercase)

    def join(self, parent_path: str, name: str) -> str:
        return join_path(parent_path, name, lowercase=self.lowercase)

    def first_segment(self, path: Optional[str]) -> str:
        return first_segment(path, lowercase=self.lowercase)

    def to_display(self, path: Optional[str]) -> Optional[str]:
        return to_display(path, self.settings.PATH_ENCODING)
