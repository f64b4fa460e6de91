"""Include/exclude filtering of tracked file paths with regular expressions."""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

from repolister.exceptions import InvalidPatternError

if TYPE_CHECKING:
    from collections.abc import Iterable

MEDIA_EXTENSIONS: tuple[str, ...] = (
    "jpg",
    "jpeg",
    "png",
    "gif",
    "svg",
    "bmp",
    "webp",
    "mp3",
    "wav",
    "ogg",
    "mp4",
    "mov",
    "avi",
    "mkv",
)

DEFAULT_EXCLUDE_ALTERNATIVES: tuple[str, ...] = (
    r"^vendor/",
    r"^vendor$",
    r"\.mo$",
    r"\.gitignore$",
    r"LICENSE\.md$",
    r"composer.*",
    r"package.*",
    r"\.htaccess$",
    r"favicon\.ico$",
    *(rf"\.{ext}$" for ext in MEDIA_EXTENSIONS),
)

DEFAULT_EXCLUDE_TEXT = "(" + "|".join(DEFAULT_EXCLUDE_ALTERNATIVES) + ")"

DEFAULT_EXCLUDE_DESCRIPTION = (
    "vendor/, .gitignore, LICENSE.md, *.mo, composer*, package*, .htaccess, favicon.ico\n"
    f"and image/video/audio ({', '.join(MEDIA_EXTENSIONS)})"
)


def compile_pattern(pattern: str) -> re.Pattern[str]:
    """Compile a user supplied regular expression.

    Args:
        pattern (str): the regular expression source

    Raises:
        InvalidPatternError: if the expression does not compile

    Returns:
        re.Pattern[str]: the compiled expression
    """
    try:
        return re.compile(pattern)
    except re.error as e:
        raise InvalidPatternError(pattern=pattern, reason=str(e)) from e


DEFAULT_EXCLUDE = compile_pattern(DEFAULT_EXCLUDE_TEXT)


def is_default_exclude(pattern: re.Pattern[str] | None) -> bool:
    """Tell whether ``pattern`` is the built-in default exclusion set."""
    return pattern is not None and pattern.pattern == DEFAULT_EXCLUDE_TEXT


def filter_entries(
    entries: Iterable[str],
    include_pattern: re.Pattern[str] | None = None,
    exclude_pattern: re.Pattern[str] | None = None,
) -> list[str]:
    """Apply exclude then include filtering to tracked paths.

    - If `exclude_pattern` is provided, every path it matches anywhere is dropped.
    - If `include_pattern` is provided, only remaining paths it matches are kept.
    - Patterns use search semantics: they are anchored only if they anchor themselves.

    Args:
        entries (Iterable[str]): tracked paths, relative to the repository root
        include_pattern (re.Pattern[str] | None): paths to keep
        exclude_pattern (re.Pattern[str] | None): paths to drop

    Returns:
        list[str]: the surviving paths, in input order
    """
    out = list(entries)
    if exclude_pattern is not None and exclude_pattern.pattern:
        out = [e for e in out if not exclude_pattern.search(e)]
    if include_pattern is not None and include_pattern.pattern:
        out = [e for e in out if include_pattern.search(e)]
    return out


def describe(pattern: re.Pattern[str] | None) -> str:
    """Human readable text of a filter pattern, empty when there is none."""
    return pattern.pattern if pattern is not None else ""

