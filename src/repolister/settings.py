from __future__ import annotations

import os
from pathlib import Path

from dotenv import find_dotenv, load_dotenv
from pydantic import BaseModel, ConfigDict, Field

ENV_FILE = find_dotenv(usecwd=True)

PROFILES_DIRNAME = "profiles"
REPOS_FILENAME = "repos.toml"
TOKENS_FILENAME = "tokens.env"
STATE_FILENAME = ".repolister.json"
CLONES_DIRNAME = "clones"


def env_default(name: str) -> str:
    """Read a default from the environment, after loading the nearest ``.env``."""
    if ENV_FILE:
        load_dotenv(ENV_FILE, override=False)
    return os.environ.get(name, "")


class Settings(BaseModel):
    """Locations of the persisted state and the working copies."""

    model_config = ConfigDict(frozen=True)

    state_dir: Path = Field(default_factory=Path.cwd, description="Directory holding repolister state.")
    workdir: Path | None = Field(default=None, description="Directory holding working copies.")
    log_file: str = Field(default="", description="Log file path.")

    @property
    def profiles_dir(self) -> Path:
        return self.state_dir / PROFILES_DIRNAME

    @property
    def repos_file(self) -> Path:
        return self.state_dir / REPOS_FILENAME

    @property
    def tokens_file(self) -> Path:
        return self.state_dir / TOKENS_FILENAME

    @property
    def state_file(self) -> Path:
        return self.state_dir / STATE_FILENAME

    @property
    def clones_dir(self) -> Path:
        return self.workdir if self.workdir is not None else self.state_dir / CLONES_DIRNAME

    def resolve_output_dir(self, output_dir: Path) -> Path:
        """Anchor a relative profile output directory at the state directory."""
        return output_dir if output_dir.is_absolute() else self.state_dir / output_dir
