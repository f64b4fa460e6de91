from __future__ import annotations

import re
from datetime import datetime
from enum import StrEnum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from repolister.exceptions import UnknownFormatError
from repolister.filters import compile_pattern

APP_NAME = "RepoLister"

DEFAULT_BRANCH = "main"
FALLBACK_BRANCH = "master"
DEFAULT_PROFILE = "default"


class ExportFormat(StrEnum):
    """Output formats an export can be rendered to."""

    TEXT = "text"
    CSV = "csv"
    JSON = "json"
    HTML = "html"

    @property
    def extension(self) -> str:
        """File extension used for artifacts of this format."""
        return _EXTENSIONS[self]

    @classmethod
    def parse(cls, value: str | ExportFormat) -> ExportFormat:
        """Parse a user supplied format name.

        ``txt`` is accepted as an alias of ``text`` (older profiles use it).

        Args:
            value (str | ExportFormat): the format name

        Raises:
            UnknownFormatError: if the name is not a supported format

        Returns:
            ExportFormat: the parsed format
        """
        if isinstance(value, ExportFormat):
            return value
        name = str(value).strip().lower()
        name = _ALIASES.get(name, name)
        try:
            return cls(name)
        except ValueError:
            raise UnknownFormatError(format=str(value)) from None


_EXTENSIONS: dict[ExportFormat, str] = {
    ExportFormat.TEXT: "txt",
    ExportFormat.CSV: "csv",
    ExportFormat.JSON: "json",
    ExportFormat.HTML: "html",
}

_ALIASES: dict[str, str] = {"txt": "text"}


def _as_pattern(value: Any) -> re.Pattern[str] | None:  # noqa: ANN401
    if value is None or isinstance(value, re.Pattern):
        return value
    text = str(value)
    if not text:
        return None
    return compile_pattern(text)


class RepositoryRecord(BaseModel):
    """A stored identity for one remote repository.

    Attributes:
        id: Unique key of the record in the repository table.
        domain: Hosting domain (``github.com`` or a Gitea host).
        owner: User or organisation owning the repository.
        name: Repository name, also the name of the local working copy.
        default_branch: Branch used when none is requested explicitly.
        token: Optional token overriding every other token source.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1, description="Repository id")
    domain: str = Field(default="", description="Hosting domain")
    owner: str = Field(..., description="User or organisation")
    name: str = Field(..., min_length=1, description="Repository name")
    default_branch: str = Field(default="", description="Default branch")
    token: str = Field(default="", repr=False, description="Repository token")


class Profile(BaseModel):
    """A named bundle of export defaults.

    Patterns are compiled when the profile is loaded so an invalid regular
    expression fails before any clone happens.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    name: str = Field(default=DEFAULT_PROFILE, description="Profile name")
    domain: str = Field(default="github.com", description="Default domain")
    format: str = Field(default=ExportFormat.TEXT.value, description="Export format")
    output_dir: Path | None = Field(default=None, description="Exports directory")
    include_pattern: re.Pattern[str] | None = Field(default=None, description="Include regex")
    exclude_pattern: re.Pattern[str] | None = Field(
        default=None,
        description="Exclude regex; None means the built-in default set.",
    )
    keep_clone: bool = Field(default=False, description="Keep the working copy")
    token: str = Field(default="", repr=False, description="Lowest precedence token")
    strict_json: bool = Field(default=True, description="Emit a strictly valid JSON document")

    @field_validator("include_pattern", "exclude_pattern", mode="before")
    @classmethod
    def _compile(cls, value: Any) -> re.Pattern[str] | None:  # noqa: ANN401
        return _as_pattern(value)

    @field_validator("domain", "format", "token", mode="before")
    @classmethod
    def _none_as_empty(cls, value: Any) -> Any:  # noqa: ANN401
        return "" if value is None else value

    @field_validator("output_dir", mode="before")
    @classmethod
    def _blank_as_missing(cls, value: Any) -> Any:  # noqa: ANN401
        return None if isinstance(value, str) and not value.strip() else value


class ExportOverrides(BaseModel):
    """Per-run overrides supplied on the command line."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    branch: str | None = None
    format: str | None = None
    include_pattern: re.Pattern[str] | None = None
    exclude_pattern: re.Pattern[str] | None = None
    keep: bool | None = None
    no_exclude: bool = False

    @field_validator("include_pattern", "exclude_pattern", mode="before")
    @classmethod
    def _compile(cls, value: Any) -> re.Pattern[str] | None:  # noqa: ANN401
        return _as_pattern(value)


class EffectiveConfig(BaseModel):
    """Fully resolved settings for one export run. Never persisted."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    repository_id: str
    profile_name: str
    domain: str
    owner: str
    name: str
    branch: str
    branch_explicit: bool
    format: ExportFormat
    include_pattern: re.Pattern[str] | None
    exclude_pattern: re.Pattern[str] | None
    keep_clone: bool
    effective_token: str = Field(default="", repr=False)
    output_dir: Path
    strict_json: bool = True


class LastUsed(BaseModel):
    """Quick-start state: the profile and repository used by the last run."""

    model_config = ConfigDict(frozen=True)

    profile: str | None = None
    repository: str | None = None


class ExportHeader(BaseModel):
    """Metadata block written at the top of every export."""

    model_config = ConfigDict(frozen=True)

    repository: str
    domain: str
    branch: str
    format: ExportFormat
    generated_at: datetime
    profile: str
    exclude_pattern: str = ""

    @property
    def excluded(self) -> str:
        """The effective exclude pattern, or ``none`` when nothing is excluded."""
        return self.exclude_pattern or "none"


class ExportEntry(BaseModel):
    """One exported file: its tracked path and raw URL."""

    model_config = ConfigDict(frozen=True)

    filename: str
    url: str


class ExportArtifact(BaseModel):
    """A rendered export, optionally written to disk."""

    model_config = ConfigDict(frozen=True)

    format: ExportFormat
    header: ExportHeader
    entries: tuple[ExportEntry, ...]
    content: str
    path: Path | None = None
