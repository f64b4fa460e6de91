"""Pytest configuration and fixtures."""

from __future__ import annotations

import shutil
import subprocess
from collections.abc import Callable
from pathlib import Path

import pytest

from repolister.config import RepositoryRecord
from repolister.settings import Settings
from repolister.store import RepositoryTable

DEFAULT_PROFILE_YAML = """\
domain: github.com
format: csv
output_dir: exports
include_pattern: ""
exclude_pattern: ""
keep_clone: false
token: "profile-token"
"""


def git(*args: str, cwd: Path) -> str:
    """Run git with a throwaway identity, failing the test on error."""
    out = subprocess.run(
        [
            "git",
            "-c",
            "user.name=Test",
            "-c",
            "user.email=test@example.org",
            "-c",
            "commit.gpgsign=false",
            *args,
        ],
        cwd=str(cwd),
        text=True,
        capture_output=True,
        check=True,
    )
    return out.stdout


def _make_repo(path: Path, files: dict[str, str], *, branch: str = "main") -> Path:
    """Create a git repository at ``path`` with one commit holding ``files``."""
    path.mkdir(parents=True, exist_ok=True)
    git("init", "--quiet", "-b", branch, cwd=path)
    for rel, content in files.items():
        f = path / rel
        f.parent.mkdir(parents=True, exist_ok=True)
        f.write_text(content, encoding="utf-8")
    git("add", "--all", cwd=path)
    git("commit", "--quiet", "-m", "init", cwd=path)
    return path


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings rooted in a fresh state directory with a default profile and one repository."""
    state = tmp_path / "state"
    profiles = state / "profiles"
    profiles.mkdir(parents=True)
    (profiles / "default.yaml").write_text(DEFAULT_PROFILE_YAML, encoding="utf-8")

    table = RepositoryTable.load(state / "repos.toml")
    table.add(
        RepositoryRecord(
            id="widgets",
            domain="git.example.org",
            owner="acme",
            name="widgets",
            default_branch="main",
        ),
    )
    table.save()
    return Settings(state_dir=state, workdir=tmp_path / "clones")


@pytest.fixture
def make_repo() -> Callable[..., Path]:
    """Factory creating committed git repositories; skips when git is missing."""
    if shutil.which("git") is None:
        pytest.skip("git is not installed")
    return _make_repo


@pytest.fixture
def run_git() -> Callable[..., str]:
    return git


REMOTE_HOST = "https://git.example.org/"


@pytest.fixture
def publish(tmp_path: Path, make_repo: Callable[..., Path], monkeypatch: pytest.MonkeyPatch) -> Callable[..., Path]:
    """Serve ``https://git.example.org/<owner>/<name>.git`` from local bare repositories.

    Git rewrites the remote host to a ``file://`` directory through
    ``url.<base>.insteadOf``, so clones and pulls never leave the machine.
    The returned factory publishes a repository and gives back its seed
    working tree, where later commits can be made and pushed.
    """
    root = tmp_path / "remote"
    root.mkdir()
    monkeypatch.setenv("GIT_CONFIG_COUNT", "1")
    monkeypatch.setenv("GIT_CONFIG_KEY_0", f"url.{root.as_uri()}/.insteadOf")
    monkeypatch.setenv("GIT_CONFIG_VALUE_0", REMOTE_HOST)

    def _publish(owner: str, name: str, files: dict[str, str], *, branches: tuple[str, ...] = ("main",)) -> Path:
        seed = make_repo(tmp_path / "seed" / owner / name, files)
        bare = root / owner / f"{name}.git"
        bare.mkdir(parents=True)
        git("init", "--quiet", "--bare", "-b", "main", cwd=bare)
        for branch in branches[1:]:
            git("branch", branch, cwd=seed)
        git("push", "--quiet", str(bare), *branches, cwd=seed)
        return seed

    return _publish
