"""Merge repository record, token table and profile into one effective configuration."""

from __future__ import annotations

from typing import TYPE_CHECKING

from repolister.config import DEFAULT_BRANCH, EffectiveConfig, ExportFormat, ExportOverrides
from repolister.exceptions import MissingFieldError
from repolister.filters import DEFAULT_EXCLUDE, DEFAULT_EXCLUDE_DESCRIPTION, is_default_exclude

if TYPE_CHECKING:
    import re
    from collections.abc import Callable, Mapping

    from repolister.config import Profile, RepositoryRecord

    Confirm = Callable[[str], bool]


def resolve_token(record: RepositoryRecord, tokens: Mapping[str, str], profile: Profile, domain: str) -> str:
    """Pick the token of a run: repository, then domain table, then profile.

    Args:
        record (RepositoryRecord): the repository record
        tokens (Mapping[str, str]): domain-wide tokens, keyed by domain
        profile (Profile): the active profile
        domain (str): the effective domain of the run

    Returns:
        str: the first non-empty token, or an empty string
    """
    return record.token or tokens.get(domain, "") or profile.token or ""


def exclude_question(candidate: re.Pattern[str]) -> str:
    """Confirmation text shown before applying ``candidate`` interactively."""
    if is_default_exclude(candidate):
        return (
            "By default, the following files/folders are excluded:\n\n"
            f"{DEFAULT_EXCLUDE_DESCRIPTION}.\n\nKeep this exclusion?"
        )
    return f"Use the custom EXCLUDE regex?\n\n{candidate.pattern}"


def resolve_exclude(
    profile: Profile,
    overrides: ExportOverrides,
    *,
    confirm: Confirm | None = None,
) -> re.Pattern[str] | None:
    """Resolve the exclude pattern of a run.

    The candidate is the override, else the profile pattern, else the
    built-in default set; it is never a union of them. Unattended runs
    (``confirm`` is None) drop it only on ``no_exclude``; interactive runs
    drop it when the user declines it.

    Args:
        profile (Profile): the active profile
        overrides (ExportOverrides): command line overrides
        confirm (Confirm | None): yes/no collaborator for interactive runs

    Returns:
        re.Pattern[str] | None: the pattern to exclude, or None for no filtering
    """
    candidate = overrides.exclude_pattern or profile.exclude_pattern or DEFAULT_EXCLUDE
    if confirm is None:
        return None if overrides.no_exclude else candidate
    return candidate if confirm(exclude_question(candidate)) else None


def resolve_config(
    record: RepositoryRecord,
    tokens: Mapping[str, str],
    profile: Profile,
    overrides: ExportOverrides | None = None,
    *,
    confirm: Confirm | None = None,
) -> EffectiveConfig:
    """Resolve the effective configuration of one export run.

    Args:
        record (RepositoryRecord): the repository to export
        tokens (Mapping[str, str]): domain-wide tokens
        profile (Profile): the active profile
        overrides (ExportOverrides | None): command line overrides
        confirm (Confirm | None): yes/no collaborator; None for unattended runs

    Raises:
        MissingFieldError: if the profile has no output directory.
        UnknownFormatError: if the resolved format is not supported.

    Returns:
        EffectiveConfig: a new configuration value; inputs are left untouched
    """
    overrides = overrides or ExportOverrides()
    if profile.output_dir is None:
        raise MissingFieldError(field="output_dir", source=profile.name)

    fmt = ExportFormat.parse(overrides.format or profile.format or ExportFormat.TEXT)
    domain = record.domain or profile.domain
    branch = overrides.branch or record.default_branch
    keep = overrides.keep if overrides.keep is not None else profile.keep_clone

    return EffectiveConfig(
        repository_id=record.id,
        profile_name=profile.name,
        domain=domain,
        owner=record.owner,
        name=record.name,
        branch=branch or DEFAULT_BRANCH,
        branch_explicit=bool(branch),
        format=fmt,
        include_pattern=overrides.include_pattern or profile.include_pattern,
        exclude_pattern=resolve_exclude(profile, overrides, confirm=confirm),
        keep_clone=keep,
        effective_token=resolve_token(record, tokens, profile, domain),
        output_dir=profile.output_dir,
        strict_json=profile.strict_json,
    )
