"""Raw-content and clone URLs for GitHub and Gitea-compatible hosts."""

from __future__ import annotations

GITHUB_DOMAIN = "github.com"
GITHUB_RAW_HOST = "raw.githubusercontent.com"


def is_github(domain: str) -> bool:
    """Whether ``domain`` designates the public GitHub host."""
    return GITHUB_DOMAIN in domain


def build_prefix(domain: str, owner: str, name: str, branch: str) -> str:
    """Build the raw-content URL prefix of a repository branch.

    The parts are concatenated verbatim; a file URL is ``prefix + path``.

    Args:
        domain (str): hosting domain, e.g. ``github.com`` or ``git.example.org``
        owner (str): user or organisation
        name (str): repository name
        branch (str): branch name

    Returns:
        str: the prefix, always ending with ``/``
    """
    if is_github(domain):
        return f"https://{GITHUB_RAW_HOST}/{owner}/{name}/{branch}/"
    return f"https://{domain}/{owner}/{name}/raw/branch/{branch}/"


def build_clone_url(domain: str, owner: str, name: str) -> str:
    """Build the HTTPS clone URL of a repository."""
    return f"https://{domain}/{owner}/{name}.git"
