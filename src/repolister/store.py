"""Persisted state: repository table, token table, profiles and quick-start record."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Any

import tomlkit
import yaml
from dotenv import dotenv_values
from pydantic import ValidationError
from tomlkit.exceptions import TOMLKitError
from tomlkit.items import Table

from repolister.config import LastUsed, Profile, RepositoryRecord
from repolister.exceptions import (
    DuplicateRepositoryError,
    InvalidConfigFileError,
    ProfileExistsError,
    ProfileNotFoundError,
    RepositoryNotFoundError,
)
from repolister.logging import logger

if TYPE_CHECKING:
    from tomlkit.toml_document import TOMLDocument

PROFILE_SUFFIXES = (".yaml", ".yml")

REPOS_HEADER = """\
repos.toml - repositories to list, one table per repository id.
Example:
[mozgasnaplo]
domain = "github.com"
owner = "forreggbor"
name = "mozgasnaplo"
default_branch = "main"
token = ""   # optional; overrides tokens.env for this repository
"""

PROFILE_TEMPLATE = """\
# ------------------------------------------------------------
# Custom profile
# Purpose:
#   Predefine domain/format/output_dir, include/exclude, keep_clone, token.
# How to set:
#   Patterns are single regular expressions matched anywhere in the path.
#   An empty exclude_pattern means the built-in default exclusions.
# ------------------------------------------------------------
domain: github.com
format: text
output_dir: exports
include_pattern: ""
exclude_pattern: ""
keep_clone: false
token: ""
strict_json: true
"""


def _invalid(path: Path, exc: Exception) -> InvalidConfigFileError:
    lines = [line.strip() for line in str(exc).splitlines() if line.strip()]
    return InvalidConfigFileError(path=path, detail="; ".join(lines) or type(exc).__name__)


# ------------------------------ Repository table ----------------------------


class RepositoryTable:
    """The repository table, one TOML table per repository id.

    Edits go through a ``tomlkit`` document so comments and layout of
    ``repos.toml`` survive add/edit/delete round trips.
    """

    def __init__(self, path: Path, doc: TOMLDocument) -> None:
        self._path = path
        self._doc = doc

    @classmethod
    def load(cls, path: Path) -> RepositoryTable:
        """Load ``path``, or start an empty commented document if it is missing.

        Raises:
            InvalidConfigFileError: if the file is not valid TOML.
        """
        if not path.exists():
            doc = tomlkit.document()
            for line in REPOS_HEADER.splitlines():
                doc.add(tomlkit.comment(line))
            return cls(path, doc)
        try:
            doc = tomlkit.parse(path.read_text(encoding="utf-8"))
        except TOMLKitError as e:
            raise _invalid(path, e) from e
        return cls(path, doc)

    @property
    def path(self) -> Path:
        return self._path

    def ids(self) -> list[str]:
        """Repository ids in file order."""
        return [key for key, value in self._doc.items() if isinstance(value, Table)]

    def __contains__(self, repo_id: object) -> bool:
        return repo_id in self.ids()

    def get(self, repo_id: str) -> RepositoryRecord:
        """Read the record of ``repo_id``.

        Raises:
            RepositoryNotFoundError: if no table has this id.
            InvalidConfigFileError: if the table does not describe a repository.
        """
        if repo_id not in self:
            raise RepositoryNotFoundError(repo_id=repo_id)
        data: dict[str, Any] = self._doc[repo_id].unwrap()
        try:
            return RepositoryRecord.model_validate({**data, "id": repo_id})
        except ValidationError as e:
            raise _invalid(self._path, e) from e

    def records(self) -> list[RepositoryRecord]:
        return [self.get(repo_id) for repo_id in self.ids()]

    def first_id(self) -> str | None:
        ids = self.ids()
        return ids[0] if ids else None

    def upsert(self, record: RepositoryRecord) -> None:
        """Insert or replace the table of ``record.id``."""
        table = tomlkit.table()
        table["domain"] = record.domain
        table["owner"] = record.owner
        table["name"] = record.name
        table["default_branch"] = record.default_branch
        table["token"] = record.token
        if record.id in self:
            self._doc[record.id] = table
        else:
            self._doc.add(tomlkit.nl())
            self._doc.add(record.id, table)

    def add(self, record: RepositoryRecord) -> None:
        """Add a new record.

        Raises:
            DuplicateRepositoryError: if the id is already used.
        """
        if record.id in self:
            raise DuplicateRepositoryError(repo_id=record.id)
        self.upsert(record)

    def delete(self, repo_id: str) -> None:
        """Remove the record of ``repo_id``.

        Raises:
            RepositoryNotFoundError: if no table has this id.
        """
        if repo_id not in self:
            raise RepositoryNotFoundError(repo_id=repo_id)
        del self._doc[repo_id]

    def save(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(tomlkit.dumps(self._doc), encoding="utf-8")
        logger.info("repository table saved", path=str(self._path), repositories=len(self.ids()))


# ------------------------------ Token table ---------------------------------


def load_token_table(path: Path) -> dict[str, str]:
    """Read domain-wide tokens from a dotenv style ``domain=secret`` file.

    Args:
        path (Path): the token file; a missing file is an empty table

    Returns:
        dict[str, str]: non-empty tokens keyed by domain
    """
    if not path.exists():
        return {}
    values = dotenv_values(path)
    return {domain.strip(): token for domain, token in values.items() if token}


# ------------------------------ Profiles ------------------------------------


def profile_name(name: str) -> str:
    """Normalize a profile reference: ``default.yaml`` and ``default`` are the same."""
    stem = name.strip()
    for suffix in (*PROFILE_SUFFIXES, ".conf"):
        stem = stem.removesuffix(suffix)
    return stem


def profile_path(profiles_dir: Path, name: str) -> Path:
    stem = profile_name(name)
    for suffix in PROFILE_SUFFIXES:
        candidate = profiles_dir / f"{stem}{suffix}"
        if candidate.exists():
            return candidate
    return profiles_dir / f"{stem}{PROFILE_SUFFIXES[0]}"


def list_profiles(profiles_dir: Path) -> list[str]:
    """Names of the non-empty profiles, sorted."""
    if not profiles_dir.is_dir():
        return []
    names = {
        p.stem
        for p in profiles_dir.iterdir()
        if p.suffix in PROFILE_SUFFIXES and p.is_file() and p.stat().st_size > 0
    }
    return sorted(names, key=str.lower)


def load_profile(profiles_dir: Path, name: str) -> Profile:
    """Load a profile; its patterns are compiled on the way in.

    Args:
        profiles_dir (Path): the profiles directory
        name (str): profile name, with or without suffix

    Raises:
        ProfileNotFoundError: if no file holds this profile.
        InvalidConfigFileError: if the file is not a YAML mapping of profile fields.
        InvalidPatternError: if a pattern does not compile.

    Returns:
        Profile: the loaded profile
    """
    path = profile_path(profiles_dir, name)
    if not path.exists():
        raise ProfileNotFoundError(name=profile_name(name), path=path)
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise _invalid(path, e) from e
    if not isinstance(data, dict):
        raise InvalidConfigFileError(path=path, detail="expected a mapping of profile fields")
    data["name"] = profile_name(name)
    try:
        return Profile.model_validate(data)
    except ValidationError as e:
        raise _invalid(path, e) from e


def create_profile(profiles_dir: Path, name: str) -> Path:
    """Write a commented profile template.

    Raises:
        ProfileExistsError: if the profile already exists.

    Returns:
        Path: the created file
    """
    path = profile_path(profiles_dir, name)
    if path.exists():
        raise ProfileExistsError(name=profile_name(name), path=path)
    profiles_dir.mkdir(parents=True, exist_ok=True)
    path.write_text(PROFILE_TEMPLATE, encoding="utf-8")
    logger.info("profile created", path=str(path))
    return path


# ------------------------------ Quick-start state ---------------------------


def load_last_used(path: Path) -> LastUsed:
    """Read the quick-start record; a missing or unreadable file is an empty record."""
    if not path.exists():
        return LastUsed()
    try:
        return LastUsed.model_validate_json(path.read_text(encoding="utf-8"))
    except ValidationError as e:
        logger.warning("ignoring unreadable state file", path=str(path), error=str(e))
        return LastUsed()


def save_last_used(path: Path, state: LastUsed) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(state.model_dump_json(indent=2) + "\n", encoding="utf-8")


# ------------------------------ Exports -------------------------------------


def list_exports(output_dir: Path) -> list[Path]:
    """Existing artifacts of an exports directory, newest first."""
    if not output_dir.is_dir():
        return []
    files = [p for p in output_dir.iterdir() if p.is_file()]
    return sorted(files, key=lambda p: p.stat().st_mtime, reverse=True)
