"""
repolister: export raw-content URLs of the files tracked in a Git repository.

Overview
--------
Lists every file tracked by a GitHub or Gitea repository as a raw URL, after
include/exclude filtering, and renders the list as text, CSV, JSON or HTML
with a metadata header.

Usage
-----
Unattended (cron friendly), both ``--profile`` and ``--repo`` required:
    repolister --profile=default --repo=widgets [--branch=main] \\
               [--format=text|csv|json|html] [--keep] [--no-exclude] \\
               [--include='\\.php$'] [--exclude='\\.css$']

Quick start with yes/no confirmations (last used or default profile, last
used or first repository):
    repolister

Management (global options such as --state-dir may come before or after
the sub-command):
    repolister repo list|add|edit|delete ...
    repolister profile list|show|create ...
    repolister exports [--profile=default]
    repolister branches --repo=widgets
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING

from repolister import __version__
from repolister.config import DEFAULT_PROFILE, ExportOverrides, RepositoryRecord
from repolister.exceptions import MissingFieldError, RepoListerError
from repolister.logging import setup_logging
from repolister.pipeline import load_state, quick_run, run_export
from repolister.resolver import resolve_token
from repolister.settings import Settings, env_default
from repolister.store import (
    RepositoryTable,
    create_profile,
    list_exports,
    list_profiles,
    load_profile,
    load_token_table,
    profile_path,
)
from repolister.working_copy import ensure_local

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    Handler = Callable[[argparse.Namespace, Settings], int]

SUBCOMMANDS = ("quick", "repo", "profile", "exports", "branches")

EXPORT_FLAGS = ("branch", "format", "keep", "include", "exclude", "no_exclude")

GLOBAL_VALUE_OPTIONS = ("--state-dir", "--workdir", "--log-file")
GLOBAL_SWITCHES = ("--verbose",)


# ------------------------------ Collaborators -------------------------------


def prompt_yes_no(question: str) -> bool:
    """Ask a yes/no question on stdin; an empty answer means yes."""
    sys.stdout.write(f"{question} [Y/n] ")
    sys.stdout.flush()
    answer = sys.stdin.readline().strip().lower()
    return answer in {"", "y", "yes"}


def prompt_choice(question: str, options: list[str]) -> str | None:
    """Ask for one of ``options`` by number; an empty or unknown answer picks nothing."""
    for idx, option in enumerate(options, start=1):
        sys.stdout.write(f"  {idx}) {option}\n")
    sys.stdout.write(f"{question} [1-{len(options)}, empty for default] ")
    sys.stdout.flush()
    answer = sys.stdin.readline().strip()
    if answer.isdigit() and 1 <= int(answer) <= len(options):
        return options[int(answer) - 1]
    return None


def assume_yes(_question: str) -> bool:
    return True


def out(text: str) -> None:
    sys.stdout.write(f"{text}\n")


# ------------------------------ Parsers -------------------------------------


def add_global_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--state-dir", type=Path, default=None, help="Directory holding repos/profiles/tokens.")
    p.add_argument("--workdir", type=Path, default=None, help="Directory holding working copies.")
    p.add_argument("--log-file", type=str, default="", help="Log file path.")
    p.add_argument("--verbose", action="store_true", help="Log progress events to stderr.")
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")


def build_export_parser() -> argparse.ArgumentParser:
    """Build the parser of the unattended export and of the no-argument quick start.

    Returns:
        argparse.ArgumentParser: Configured parser.
    """
    p = argparse.ArgumentParser(
        prog="repolister",
        description="Export raw URLs of the files tracked in a GitHub/Gitea repository.",
    )
    p.add_argument("--profile", type=str, default=None, help="Profile name (profiles/<name>.yaml).")
    p.add_argument("--repo", type=str, default=None, help="Repository id in repos.toml.")
    p.add_argument("--branch", type=str, default=None, help="Override the resolved branch.")
    p.add_argument("--format", type=str, default=None, help="text, csv, json or html.")
    p.add_argument("--keep", action="store_true", default=None, help="Keep the working copy after export.")
    p.add_argument("--include", type=str, default=None, help="Include regex (overrides profile).")
    p.add_argument("--exclude", type=str, default=None, help="Exclude regex (overrides profile).")
    p.add_argument("--no-exclude", action="store_true", help="Disable every exclude pattern.")
    add_global_args(p)
    return p


def build_command_parser() -> argparse.ArgumentParser:
    """Build the parser of the management sub-commands.

    Returns:
        argparse.ArgumentParser: Configured parser.
    """
    common = argparse.ArgumentParser(add_help=False)
    add_global_args(common)

    p = argparse.ArgumentParser(prog="repolister", description="Manage repolister state.")
    sub = p.add_subparsers(dest="command", required=True)

    quick = sub.add_parser("quick", parents=[common], help="Export with the last used profile and repository.")
    quick.add_argument("--yes", action="store_true", help="Answer yes to every confirmation.")
    quick.add_argument("--profile", default=None, help="Profile name (default: last used, else default).")
    quick.add_argument("--repo", default=None, help="Repository id (default: last used, else first).")

    repo = sub.add_parser("repo", help="Manage repositories.")
    repo_sub = repo.add_subparsers(dest="action", required=True)
    repo_sub.add_parser("list", parents=[common], help="List repositories.")
    for action in ("add", "edit"):
        rp = repo_sub.add_parser(action, parents=[common], help=f"{action.capitalize()} a repository.")
        rp.add_argument("--id", required=True, help="Repository id.")
        rp.add_argument("--domain", default=None, help="Hosting domain (default: github.com).")
        rp.add_argument("--owner", required=action == "add", default=None, help="User or organisation.")
        rp.add_argument("--name", required=action == "add", default=None, help="Repository name.")
        rp.add_argument("--branch", default=None, help="Default branch.")
        rp.add_argument("--token", default=None, help="Repository specific token.")
    rd = repo_sub.add_parser("delete", parents=[common], help="Delete a repository.")
    rd.add_argument("--id", required=True, help="Repository id.")

    profile = sub.add_parser("profile", help="Manage profiles.")
    profile_sub = profile.add_subparsers(dest="action", required=True)
    profile_sub.add_parser("list", parents=[common], help="List profiles.")
    for action in ("show", "create"):
        pp = profile_sub.add_parser(action, parents=[common], help=f"{action.capitalize()} a profile.")
        pp.add_argument("name", help="Profile name.")

    exports = sub.add_parser("exports", parents=[common], help="List existing exports, newest first.")
    exports.add_argument("--profile", default=DEFAULT_PROFILE, help="Profile whose output directory to list.")

    branches = sub.add_parser("branches", parents=[common], help="List the remote branches of a repository.")
    branches.add_argument("--repo", required=True, help="Repository id.")
    branches.add_argument("--profile", default=DEFAULT_PROFILE, help="Profile supplying the fallback token.")
    return p


def make_settings(args: argparse.Namespace) -> Settings:
    state_dir = args.state_dir or Path(env_default("REPOLISTER_STATE_DIR") or Path.cwd())
    workdir = args.workdir or (Path(w) if (w := env_default("REPOLISTER_WORKDIR")) else None)
    return Settings(state_dir=state_dir, workdir=workdir, log_file=args.log_file)


# ------------------------------ Handlers ------------------------------------


def cmd_export(args: argparse.Namespace, settings: Settings) -> int:
    overrides = ExportOverrides(
        branch=args.branch,
        format=args.format,
        include_pattern=args.include,
        exclude_pattern=args.exclude,
        keep=args.keep,
        no_exclude=args.no_exclude,
    )
    artifact = run_export(settings, args.profile, args.repo, overrides)
    out(f"Export: {artifact.path}")
    return 0


def cmd_quick(args: argparse.Namespace, settings: Settings) -> int:
    unattended = getattr(args, "yes", False)
    artifact = quick_run(
        settings,
        load_state(settings),
        profile=args.profile,
        repo_id=args.repo,
        confirm=assume_yes if unattended else prompt_yes_no,
        choose=None if unattended else prompt_choice,
    )
    out(f"Done.\n{artifact.path}")
    return 0


def cmd_repo(args: argparse.Namespace, settings: Settings) -> int:
    table = RepositoryTable.load(settings.repos_file)
    if args.action == "list":
        for rec in table.records():
            token = " (token)" if rec.token else ""
            branch = rec.default_branch or "-"
            out(f"{rec.id}\t{rec.domain}/{rec.owner}/{rec.name}\t{branch}{token}")
        return 0

    if args.action == "delete":
        table.delete(args.id)
        table.save()
        out(f"Repository '{args.id}' deleted.")
        return 0

    fields = {
        "domain": args.domain,
        "owner": args.owner,
        "name": args.name,
        "default_branch": args.branch,
        "token": args.token,
    }
    provided = {k: v for k, v in fields.items() if v is not None}
    if args.action == "add":
        provided.setdefault("domain", "github.com")
        table.add(RepositoryRecord(id=args.id, **provided))
        verb = "saved"
    else:
        table.upsert(table.get(args.id).model_copy(update=provided))
        verb = "updated"
    table.save()
    out(f"Repository '{args.id}' {verb}.")
    return 0


def cmd_profile(args: argparse.Namespace, settings: Settings) -> int:
    if args.action == "list":
        for name in list_profiles(settings.profiles_dir):
            out(name)
    elif args.action == "create":
        path = create_profile(settings.profiles_dir, args.name)
        out(f"Profile created: {path}")
    else:
        load_profile(settings.profiles_dir, args.name)
        out(profile_path(settings.profiles_dir, args.name).read_text(encoding="utf-8").rstrip())
    return 0


def cmd_exports(args: argparse.Namespace, settings: Settings) -> int:
    profile = load_profile(settings.profiles_dir, args.profile)
    if profile.output_dir is None:
        raise MissingFieldError(field="output_dir", source=profile.name)
    output_dir = settings.resolve_output_dir(profile.output_dir)
    files = list_exports(output_dir)
    if not files:
        out("No exports yet.")
    for f in files:
        out(str(f))
    return 0


def cmd_branches(args: argparse.Namespace, settings: Settings) -> int:
    record = RepositoryTable.load(settings.repos_file).get(args.repo)
    profile = load_profile(settings.profiles_dir, args.profile)
    domain = record.domain or profile.domain
    token = resolve_token(record, load_token_table(settings.tokens_file), profile, domain)
    wc = ensure_local(domain, record.owner, record.name, workdir=settings.clones_dir, token=token)
    for branch in wc.list_remote_branches():
        out(branch)
    return 0


HANDLERS: dict[str, Handler] = {
    "quick": cmd_quick,
    "repo": cmd_repo,
    "profile": cmd_profile,
    "exports": cmd_exports,
    "branches": cmd_branches,
}


# ------------------------------ Entry point ---------------------------------


def split_leading_globals(argv: list[str]) -> tuple[list[str], list[str]]:
    """Split the global options written before the first word from the rest.

    Returns:
        tuple[list[str], list[str]]: the leading global options and the remaining arguments
    """
    idx = 0
    while idx < len(argv):
        arg = argv[idx]
        if arg in GLOBAL_SWITCHES or ("=" in arg and arg.partition("=")[0] in GLOBAL_VALUE_OPTIONS):
            idx += 1
        elif arg in GLOBAL_VALUE_OPTIONS and idx + 1 < len(argv):
            idx += 2
        else:
            break
    return argv[:idx], argv[idx:]


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Parse the command line into a namespace with a ``command`` attribute.

    The first word selects a management sub-command; global options may come
    before it. Anything else is the unattended export form, or the quick
    start when no export flag is given.

    Args:
        argv (Sequence[str] | None): Optional CLI args.

    Returns:
        argparse.Namespace: the parsed arguments
    """
    argv = list(sys.argv[1:] if argv is None else argv)
    leading, rest = split_leading_globals(argv)
    if rest and rest[0] in SUBCOMMANDS:
        return build_command_parser().parse_args([*rest, *leading])

    parser = build_export_parser()
    args = parser.parse_args(argv)
    wants_export = args.profile is not None or args.repo is not None
    wants_export = wants_export or any(getattr(args, f) not in (None, False) for f in EXPORT_FLAGS)
    if not wants_export:
        args.command = "quick"
        return args
    if not args.profile:
        parser.error("unattended export requires --profile=<name>")
    if not args.repo:
        parser.error("unattended export requires --repo=<id>")
    args.command = "export"
    return args


def main(argv: Sequence[str] | None = None) -> int:
    """Run repolister.

    Args:
        argv (Sequence[str] | None): Optional CLI arguments.

    Returns:
        int: Process exit code; 1 on any repolister error, 130 on interrupt.
    """
    args = parse_args(argv)
    level = logging.INFO if (args.verbose or args.log_file) else logging.WARNING
    setup_logging(args.log_file or None, level=level)
    settings = make_settings(args)
    handler = cmd_export if args.command == "export" else HANDLERS[args.command]
    try:
        return handler(args, settings)
    except RepoListerError as e:
        sys.stderr.write(f"Error: {e}\n")
        return 1
    except KeyboardInterrupt:
        sys.stderr.write("Interrupted.\n")
        return 130


if __name__ == "__main__":
    raise SystemExit(main())
