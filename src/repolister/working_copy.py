"""Local working copies of remote repositories, driven through the git CLI."""

from __future__ import annotations

import os
import shutil
import subprocess  # noqa: S404
from typing import TYPE_CHECKING

from repolister.config import DEFAULT_BRANCH, FALLBACK_BRANCH
from repolister.exceptions import CloneFailedError, GitCommandError, UpdateFailedError
from repolister.logging import logger
from repolister.urls import build_clone_url

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path

    Confirm = Callable[[str], bool]

REMOTE_REFS_PREFIX = "refs/remotes/"


def git_env(token: str = "") -> dict[str, str]:
    """Build the environment of a git subprocess.

    The token travels as an ``http.extraHeader`` through git's
    ``GIT_CONFIG_*`` variables, appended after any entries already present,
    so it never shows up in the process arguments.

    Args:
        token (str): bearer token, empty for anonymous access

    Returns:
        dict[str, str]: the environment to pass to ``subprocess.run``
    """
    env = dict(os.environ)
    env["GIT_TERMINAL_PROMPT"] = "0"
    if token:
        idx = int(env.get("GIT_CONFIG_COUNT", "0") or "0")
        env[f"GIT_CONFIG_KEY_{idx}"] = "http.extraHeader"
        env[f"GIT_CONFIG_VALUE_{idx}"] = f"Authorization: Bearer {token}"
        env["GIT_CONFIG_COUNT"] = str(idx + 1)
    return env


def run_git(
    *args: str,
    cwd: Path,
    token: str = "",
) -> subprocess.CompletedProcess[str]:
    """Run a git command without raising on a non-zero exit.

    Args:
        *args (str): git arguments, without the leading ``git``
        cwd (Path): directory to run in
        token (str): optional bearer token for network operations

    Returns:
        subprocess.CompletedProcess[str]: the finished process
    """
    return subprocess.run(
        ["git", *args],  # noqa: S607
        cwd=str(cwd),
        text=True,
        capture_output=True,
        check=False,
        env=git_env(token),
    )


class WorkingCopy:
    """A local clone of a remote repository.

    Tracked files come from the git index, never from a filesystem walk, so
    ignored and untracked files are never candidates for export.
    """

    def __init__(self, path: Path, *, token: str = "") -> None:
        self._path = path
        self._token = token

    def __repr__(self) -> str:
        return f"WorkingCopy(path={self._path!r})"

    @property
    def path(self) -> Path:
        return self._path

    def exists(self) -> bool:
        return (self._path / ".git").exists()

    def _git(self, *args: str) -> str:
        out = run_git(*args, cwd=self._path, token=self._token)
        if out.returncode != 0:
            raise GitCommandError(
                command=" ".join(["git", *args]),
                returncode=out.returncode,
                stdout=out.stdout,
                stderr=out.stderr,
            )
        return out.stdout

    def _has_ref(self, ref: str) -> bool:
        out = run_git("rev-parse", "--verify", "--quiet", ref, cwd=self._path)
        return out.returncode == 0

    def update(self) -> None:
        """Fetch and fast-forward the tracking branch.

        Raises:
            UpdateFailedError: if ``git pull`` exits non-zero.
        """
        logger.info("updating working copy", path=str(self._path))
        out = run_git("pull", "--ff-only", "--quiet", cwd=self._path, token=self._token)
        if out.returncode != 0:
            raise UpdateFailedError(folder=self._path, returncode=out.returncode, stderr=out.stderr)

    def current_branch(self) -> str:
        """Name of the checked-out branch, empty when HEAD is detached."""
        return self._git("branch", "--show-current").strip()

    def resolve_branch(self) -> str:
        """Resolve the branch to export when none was requested.

        Returns:
            str: the checked-out branch; when detached, ``main`` if it exists
                as a local or remote-tracking ref, else ``master``.
        """
        branch = self.current_branch()
        if not branch:
            has_main = self._has_ref(DEFAULT_BRANCH) or DEFAULT_BRANCH in self.list_remote_branches()
            branch = DEFAULT_BRANCH if has_main else FALLBACK_BRANCH
        logger.info("resolved branch", path=str(self._path), branch=branch)
        return branch

    def list_remote_branches(self) -> list[str]:
        """List remote-tracking branches without their remote prefix.

        ``HEAD`` is excluded and a branch present on several remotes is
        listed once, at its first position.

        Returns:
            list[str]: branch names in ref order
        """
        out = self._git("for-each-ref", "--format=%(refname)", REMOTE_REFS_PREFIX)
        names: list[str] = []
        for line in out.splitlines():
            ref = line.strip()
            if not ref.startswith(REMOTE_REFS_PREFIX):
                continue
            _remote, _, branch = ref.removeprefix(REMOTE_REFS_PREFIX).partition("/")
            if not branch or branch == "HEAD":
                continue
            names.append(branch)
        return list(dict.fromkeys(names))

    def list_tracked_files(self) -> list[str]:
        """List the files tracked in the index, in ``git ls-files`` order.

        Returns:
            list[str]: paths relative to the repository root, POSIX separators
        """
        out = self._git("ls-files", "-z")
        return [p for p in out.split("\0") if p]

    def teardown(self) -> None:
        """Recursively remove the working copy."""
        logger.info("removing working copy", path=str(self._path))
        shutil.rmtree(self._path)


def ensure_local(
    domain: str,
    owner: str,
    name: str,
    *,
    workdir: Path,
    token: str = "",
    confirm: Confirm | None = None,
) -> WorkingCopy:
    """Make sure an up-to-date working copy of ``owner/name`` exists.

    A missing copy is cloned. An existing copy is updated unconditionally in
    unattended mode (``confirm`` is None), or when ``confirm`` agrees.

    Args:
        domain (str): hosting domain
        owner (str): user or organisation
        name (str): repository name, also the working copy directory name
        workdir (Path): directory holding the working copies
        token (str): optional bearer token
        confirm (Confirm | None): yes/no collaborator for interactive runs

    Raises:
        CloneFailedError: if ``git clone`` exits non-zero.
        UpdateFailedError: if the update of an existing copy fails.

    Returns:
        WorkingCopy: the ready working copy
    """
    wc = WorkingCopy(workdir / name, token=token)
    if not wc.exists():
        url = build_clone_url(domain, owner, name)
        workdir.mkdir(parents=True, exist_ok=True)
        logger.info("cloning repository", url=url, path=str(wc.path))
        out = run_git("clone", "--quiet", url, name, cwd=workdir, token=token)
        if out.returncode != 0:
            raise CloneFailedError(url=url, returncode=out.returncode, stderr=out.stderr)
        return wc

    if confirm is None or confirm(f"Repository '{name}' already exists. Update with 'git pull'?"):
        wc.update()
    return wc
