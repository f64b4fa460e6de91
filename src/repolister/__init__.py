"""Export raw-content URLs of the files tracked in a GitHub or Gitea repository."""

__version__ = "0.1.0"
