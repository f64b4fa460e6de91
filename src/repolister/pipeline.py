"""The export pipeline: resolve, materialize, filter, build URLs, render, write."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from repolister.config import DEFAULT_PROFILE, ExportHeader, ExportOverrides, LastUsed
from repolister.exceptions import RepositoryNotFoundError
from repolister.filters import describe, filter_entries
from repolister.logging import logger
from repolister.output_construction import render_export, write_artifact
from repolister.resolver import resolve_config
from repolister.store import (
    RepositoryTable,
    load_last_used,
    load_profile,
    load_token_table,
    profile_name,
    save_last_used,
)
from repolister.urls import build_prefix
from repolister.working_copy import ensure_local

if TYPE_CHECKING:
    from collections.abc import Callable

    from repolister.config import EffectiveConfig, ExportArtifact
    from repolister.settings import Settings
    from repolister.working_copy import WorkingCopy

    Confirm = Callable[[str], bool]
    Choose = Callable[[str, list[str]], str | None]


def load_config(
    settings: Settings,
    profile: str,
    repo_id: str,
    overrides: ExportOverrides | None = None,
    *,
    confirm: Confirm | None = None,
) -> EffectiveConfig:
    """Load the three persisted layers and resolve them.

    Raises:
        ProfileNotFoundError: if the profile does not exist.
        RepositoryNotFoundError: if the repository id has no record.
        MissingFieldError: if the profile has no output directory.
    """
    prof = load_profile(settings.profiles_dir, profile)
    record = RepositoryTable.load(settings.repos_file).get(repo_id)
    tokens = load_token_table(settings.tokens_file)
    return resolve_config(record, tokens, prof, overrides, confirm=confirm)


def pick_branch(wc: WorkingCopy, choose: Choose | None = None) -> str:
    """Let ``choose`` pick a remote branch, else resolve it from the working copy."""
    if choose is not None:
        branches = wc.list_remote_branches()
        picked = choose("Select branch:", branches) if branches else None
        if picked:
            logger.info("branch selected", path=str(wc.path), branch=picked)
            return picked
    return wc.resolve_branch()


def export_from_working_copy(
    config: EffectiveConfig,
    wc: WorkingCopy,
    *,
    settings: Settings,
    generated_at: datetime | None = None,
    choose: Choose | None = None,
) -> ExportArtifact:
    """Filter the tracked files of ``wc``, render them and write the artifact.

    When the branch was not requested explicitly, ``choose`` picks one of the
    remote branches; without a pick it is resolved from the working copy
    (checked-out branch, else ``main``/``master``).

    Returns:
        ExportArtifact: the written artifact
    """
    branch = config.branch if config.branch_explicit else pick_branch(wc, choose)
    files = wc.list_tracked_files()
    selected = filter_entries(files, config.include_pattern, config.exclude_pattern)
    logger.info(
        "filtered tracked files",
        repository=config.repository_id,
        tracked=len(files),
        selected=len(selected),
    )

    prefix = build_prefix(config.domain, config.owner, config.name, branch)
    header = ExportHeader(
        repository=config.name,
        domain=config.domain,
        branch=branch,
        format=config.format,
        generated_at=generated_at or datetime.now().astimezone(),
        profile=config.profile_name,
        exclude_pattern=describe(config.exclude_pattern),
    )
    artifact = render_export(config.format, header, selected, prefix, strict_json=config.strict_json)
    written = write_artifact(artifact, settings.resolve_output_dir(config.output_dir), config.name)
    logger.info("export written", path=str(written.path), entries=len(written.entries))
    return written


def run_export(
    settings: Settings,
    profile: str,
    repo_id: str,
    overrides: ExportOverrides | None = None,
    *,
    confirm: Confirm | None = None,
    choose: Choose | None = None,
) -> ExportArtifact:
    """Run one export end to end.

    ``confirm`` is None for unattended runs: existing working copies are
    updated, the exclude pattern is applied unless disabled, and the clone
    is removed unless kept. Interactive runs ask ``confirm`` at each of
    these steps instead, and ``choose`` picks the branch when none was
    requested explicitly.

    Args:
        settings (Settings): state locations
        profile (str): profile name
        repo_id (str): repository id
        overrides (ExportOverrides | None): command line overrides
        confirm (Confirm | None): yes/no collaborator for interactive runs
        choose (Choose | None): branch picker for interactive runs

    Returns:
        ExportArtifact: the written artifact
    """
    config = load_config(settings, profile, repo_id, overrides, confirm=confirm)
    save_last_used(settings.state_file, LastUsed(profile=profile_name(profile), repository=repo_id))

    wc = ensure_local(
        config.domain,
        config.owner,
        config.name,
        workdir=settings.clones_dir,
        token=config.effective_token,
        confirm=confirm,
    )
    artifact = export_from_working_copy(config, wc, settings=settings, choose=choose)

    if confirm is None:
        remove = not config.keep_clone
    else:
        remove = confirm(f"Export created:\n{artifact.path}\n\nDelete cloned repository folder now?")
    if remove:
        wc.teardown()
    return artifact


def quick_run(
    settings: Settings,
    state: LastUsed,
    *,
    profile: str | None = None,
    repo_id: str | None = None,
    confirm: Confirm | None = None,
    choose: Choose | None = None,
) -> ExportArtifact:
    """Export with the given, else the last used, profile and repository.

    Falls back to the ``default`` profile and the first repository of the
    table when nothing was given or used yet.

    Raises:
        RepositoryNotFoundError: if the repository table is empty.
    """
    profile = profile or state.profile or DEFAULT_PROFILE
    repo_id = repo_id or state.repository or RepositoryTable.load(settings.repos_file).first_id()
    if not repo_id:
        raise RepositoryNotFoundError(repo_id="")
    return run_export(settings, profile, repo_id, confirm=confirm, choose=choose)


def load_state(settings: Settings) -> LastUsed:
    return load_last_used(settings.state_file)
