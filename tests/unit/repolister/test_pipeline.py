from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING

import pytest

from repolister import pipeline
from repolister.config import ExportOverrides, LastUsed, RepositoryRecord
from repolister.exceptions import ProfileNotFoundError, RepositoryNotFoundError
from repolister.settings import Settings
from repolister.store import RepositoryTable, load_last_used

if TYPE_CHECKING:
    from pytest_mock import MockerFixture

TRACKED = ["README.md", "src/app.php", "assets/logo.png", "vendor/lib.php"]


class FakeWorkingCopy:
    def __init__(self, path: Path, files: list[str], branch: str = "main") -> None:
        self.path = path
        self.files = files
        self.branch = branch
        self.remote_branches = ["develop", "release"]
        self.torn_down = False

    def resolve_branch(self) -> str:
        return self.branch

    def list_tracked_files(self) -> list[str]:
        return list(self.files)

    def list_remote_branches(self) -> list[str]:
        return list(self.remote_branches)

    def teardown(self) -> None:
        self.torn_down = True


@pytest.fixture
def fake_wc(settings: Settings, mocker: MockerFixture) -> FakeWorkingCopy:
    wc = FakeWorkingCopy(settings.clones_dir / "widgets", TRACKED)
    mocker.patch.object(pipeline, "ensure_local", return_value=wc)
    return wc


def data_rows(path: Path) -> list[str]:
    lines = path.read_text(encoding="utf-8").splitlines()
    return [line for line in lines if not line.startswith("#")][1:]


def add_unbranched_repository(settings: Settings) -> None:
    table = RepositoryTable.load(settings.repos_file)
    table.add(RepositoryRecord(id="gadgets", domain="github.com", owner="acme", name="gadgets"))
    table.save()


@pytest.mark.unit
def test_unattended_export_writes_filtered_csv_and_removes_clone(
    settings: Settings,
    fake_wc: FakeWorkingCopy,
) -> None:
    artifact = pipeline.run_export(settings, "default", "widgets")

    assert artifact.path is not None
    assert artifact.path.parent == settings.state_dir / "exports"
    assert artifact.path.suffix == ".csv"
    assert data_rows(artifact.path) == [
        '"README.md","https://git.example.org/acme/widgets/raw/branch/main/README.md"',
        '"src/app.php","https://git.example.org/acme/widgets/raw/branch/main/src/app.php"',
    ]
    assert fake_wc.torn_down is True


@pytest.mark.unit
def test_working_copy_is_requested_with_resolved_token(
    settings: Settings,
    fake_wc: FakeWorkingCopy,  # noqa: ARG001
) -> None:
    pipeline.run_export(settings, "default", "widgets")

    pipeline.ensure_local.assert_called_once_with(  # type: ignore[attr-defined]
        "git.example.org",
        "acme",
        "widgets",
        workdir=settings.clones_dir,
        token="profile-token",
        confirm=None,
    )


@pytest.mark.unit
def test_domain_token_overrides_profile_token(settings: Settings, fake_wc: FakeWorkingCopy) -> None:  # noqa: ARG001
    settings.tokens_file.write_text("git.example.org=domain-token\n", encoding="utf-8")

    pipeline.run_export(settings, "default", "widgets")

    assert pipeline.ensure_local.call_args.kwargs["token"] == "domain-token"  # type: ignore[attr-defined]


@pytest.mark.unit
def test_keep_and_no_exclude_overrides(settings: Settings, fake_wc: FakeWorkingCopy) -> None:
    overrides = ExportOverrides(keep=True, no_exclude=True, format="text")

    artifact = pipeline.run_export(settings, "default", "widgets", overrides)

    assert artifact.path is not None
    assert artifact.path.suffix == ".txt"
    assert len(artifact.entries) == len(TRACKED)
    assert "# Excluded pattern: none" in artifact.content
    assert fake_wc.torn_down is False


@pytest.mark.unit
def test_last_used_is_recorded(settings: Settings, fake_wc: FakeWorkingCopy) -> None:  # noqa: ARG001
    pipeline.run_export(settings, "default.yaml", "widgets")

    assert load_last_used(settings.state_file) == LastUsed(profile="default", repository="widgets")


@pytest.mark.unit
def test_unresolved_branch_comes_from_working_copy(settings: Settings, fake_wc: FakeWorkingCopy) -> None:
    table = RepositoryTable.load(settings.repos_file)
    table.add(RepositoryRecord(id="gadgets", domain="github.com", owner="acme", name="gadgets"))
    table.save()
    fake_wc.branch = "develop"

    artifact = pipeline.run_export(settings, "default", "gadgets")

    assert artifact.header.branch == "develop"
    assert artifact.entries[0].url == "https://raw.githubusercontent.com/acme/gadgets/develop/README.md"


@pytest.mark.unit
def test_interactive_run_asks_before_exclusion_and_teardown(settings: Settings, fake_wc: FakeWorkingCopy) -> None:
    questions: list[str] = []

    def decline(question: str) -> bool:
        questions.append(question)
        return False

    artifact = pipeline.run_export(settings, "default", "widgets", confirm=decline)

    assert len(artifact.entries) == len(TRACKED)
    assert fake_wc.torn_down is False
    assert "Keep this exclusion?" in questions[0]
    assert "Delete cloned repository folder now?" in questions[-1]
    assert pipeline.ensure_local.call_args.kwargs["confirm"] is decline  # type: ignore[attr-defined]


@pytest.mark.unit
def test_export_from_working_copy_uses_given_timestamp(settings: Settings) -> None:
    config = pipeline.load_config(settings, "default", "widgets", ExportOverrides(format="json"))
    wc = FakeWorkingCopy(settings.clones_dir / "widgets", ["src/app.php"])

    artifact = pipeline.export_from_working_copy(
        config,
        wc,  # type: ignore[arg-type]
        settings=settings,
        generated_at=datetime(2024, 3, 1, 12, 30, 5),
    )

    assert artifact.path == settings.state_dir / "exports" / "widgets_2024-03-01_12-30-05.json"


@pytest.mark.unit
def test_unknown_profile_fails_before_touching_the_remote(settings: Settings, fake_wc: FakeWorkingCopy) -> None:  # noqa: ARG001
    with pytest.raises(ProfileNotFoundError):
        pipeline.run_export(settings, "nope", "widgets")

    pipeline.ensure_local.assert_not_called()  # type: ignore[attr-defined]
    assert not settings.state_file.exists()


@pytest.mark.unit
def test_quick_run_falls_back_to_default_profile_and_first_repository(
    settings: Settings,
    fake_wc: FakeWorkingCopy,  # noqa: ARG001
) -> None:
    artifact = pipeline.quick_run(settings, LastUsed(), confirm=lambda _q: True)

    assert artifact.header.repository == "widgets"
    assert artifact.header.profile == "default"


@pytest.mark.unit
def test_quick_run_without_repositories(settings: Settings, fake_wc: FakeWorkingCopy) -> None:  # noqa: ARG001
    table = RepositoryTable.load(settings.repos_file)
    table.delete("widgets")
    table.save()

    with pytest.raises(RepositoryNotFoundError) as exc_info:
        pipeline.quick_run(settings, LastUsed())

    assert str(exc_info.value) == "No repositories defined yet. Add one first."


@pytest.mark.unit
def test_interactive_run_picks_a_remote_branch(settings: Settings, fake_wc: FakeWorkingCopy) -> None:  # noqa: ARG001
    add_unbranched_repository(settings)
    offered: list[list[str]] = []

    def pick_release(_question: str, branches: list[str]) -> str | None:
        offered.append(branches)
        return "release"

    artifact = pipeline.run_export(settings, "default", "gadgets", confirm=lambda _q: False, choose=pick_release)

    assert offered == [["develop", "release"]]
    assert artifact.header.branch == "release"
    assert artifact.entries[0].url.startswith("https://raw.githubusercontent.com/acme/gadgets/release/")


@pytest.mark.unit
@pytest.mark.parametrize("remote_branches", [["develop", "release"], []])
def test_no_pick_falls_back_to_working_copy_branch(
    settings: Settings,
    fake_wc: FakeWorkingCopy,
    remote_branches: list[str],
) -> None:
    add_unbranched_repository(settings)
    fake_wc.branch = "trunk"
    fake_wc.remote_branches = remote_branches
    calls: list[list[str]] = []

    def no_answer(_question: str, branches: list[str]) -> str | None:
        calls.append(branches)
        return None

    artifact = pipeline.run_export(settings, "default", "gadgets", confirm=lambda _q: False, choose=no_answer)

    assert artifact.header.branch == "trunk"
    assert len(calls) == (1 if remote_branches else 0)


@pytest.mark.unit
def test_explicit_branch_is_never_offered_for_selection(
    settings: Settings,
    fake_wc: FakeWorkingCopy,  # noqa: ARG001
) -> None:
    def fail(_question: str, _branches: list[str]) -> str | None:
        raise AssertionError

    artifact = pipeline.run_export(settings, "default", "widgets", confirm=lambda _q: False, choose=fail)

    assert artifact.header.branch == "main"


@pytest.mark.unit
def test_quick_run_prefers_given_profile_and_repository(
    settings: Settings,
    fake_wc: FakeWorkingCopy,  # noqa: ARG001
) -> None:
    add_unbranched_repository(settings)
    state = LastUsed(profile="missing", repository="widgets")

    artifact = pipeline.quick_run(settings, state, profile="default", repo_id="gadgets", confirm=lambda _q: True)

    assert artifact.header.repository == "gadgets"
    assert load_last_used(settings.state_file) == LastUsed(profile="default", repository="gadgets")
