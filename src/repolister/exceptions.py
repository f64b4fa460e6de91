from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class RepoListerError(Exception):
    """Base exception for errors in the repolister package."""

    @property
    def message(self) -> str:
        return "repolister failed."

    def __str__(self) -> str:
        return self.message


# ------------------------------ Configuration -------------------------------


@dataclass(frozen=True)
class ConfigError(RepoListerError):
    """Raised when the layered configuration cannot be resolved."""


@dataclass(frozen=True)
class MissingFieldError(ConfigError):
    """Raised when a required profile field is absent."""

    field: str
    source: str

    @property
    def message(self) -> str:
        return f"{self.field} must be set in profile {self.source}"


@dataclass(frozen=True)
class RepositoryNotFoundError(ConfigError):
    """Raised when a repository id has no record in the repository table."""

    repo_id: str

    @property
    def message(self) -> str:
        if not self.repo_id:
            return "No repositories defined yet. Add one first."
        return f"Repository '{self.repo_id}' not found"


@dataclass(frozen=True)
class DuplicateRepositoryError(ConfigError):
    """Raised when adding a repository whose id already exists."""

    repo_id: str

    @property
    def message(self) -> str:
        return f"Repository '{self.repo_id}' already exists"


@dataclass(frozen=True)
class ProfileNotFoundError(ConfigError):
    """Raised when a named profile has no file."""

    name: str
    path: Path

    @property
    def message(self) -> str:
        return f"Profile not found: {self.name} ({self.path})"


@dataclass(frozen=True)
class ProfileExistsError(ConfigError):
    """Raised when creating a profile whose file already exists."""

    name: str
    path: Path

    @property
    def message(self) -> str:
        return f"Profile already exists: {self.name} ({self.path})"


@dataclass(frozen=True)
class InvalidConfigFileError(ConfigError):
    """Raised when a persisted configuration file cannot be parsed."""

    path: Path
    detail: str

    @property
    def message(self) -> str:
        return f"Invalid configuration file {self.path}: {self.detail}"


# ------------------------------ Repository ----------------------------------


@dataclass(frozen=True)
class RepoError(RepoListerError):
    """Raised when the local working copy cannot be materialized or queried."""


@dataclass(frozen=True)
class GitCommandError(RepoError):
    """Raised when a git command fails."""

    command: str
    returncode: int
    stdout: str
    stderr: str

    @property
    def message(self) -> str:
        detail = self.stderr.strip() or self.stdout.strip()
        return f"`{self.command}` exited with {self.returncode}: {detail}"


@dataclass(frozen=True)
class CloneFailedError(RepoError):
    """Raised when cloning the remote repository fails."""

    url: str
    returncode: int
    stderr: str = ""

    @property
    def message(self) -> str:
        detail = f": {self.stderr.strip()}" if self.stderr.strip() else ""
        return f"Clone of {self.url} failed (exit {self.returncode}){detail}"


@dataclass(frozen=True)
class UpdateFailedError(RepoError):
    """Raised when updating an existing working copy fails."""

    folder: Path
    returncode: int
    stderr: str = ""

    @property
    def message(self) -> str:
        detail = f": {self.stderr.strip()}" if self.stderr.strip() else ""
        return f"Update of {self.folder} failed (exit {self.returncode}){detail}"


# ------------------------------ Filtering / rendering -----------------------


@dataclass(frozen=True)
class FilterError(RepoListerError):
    """Raised when a filter pattern cannot be used."""


@dataclass(frozen=True)
class InvalidPatternError(FilterError):
    """Raised when a regular expression fails to compile."""

    pattern: str
    reason: str

    @property
    def message(self) -> str:
        return f"Invalid pattern {self.pattern!r}: {self.reason}"


@dataclass(frozen=True)
class RenderError(RepoListerError):
    """Raised when an export cannot be rendered."""


@dataclass(frozen=True)
class UnknownFormatError(RenderError):
    """Raised when the requested export format is not supported."""

    format: str

    @property
    def message(self) -> str:
        return f"Unknown format: {self.format}"
