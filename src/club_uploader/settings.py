from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()


def _require_env(name: str) -> str:
    value = os.getenv(name)
    if value is None or value == "":
        raise ValueError(f"Environment variable {name} is required")
    return value


@dataclass(frozen=True)
class UploaderSettings:
    base_url: str
    access_token: str
    state_dir: Path


def load_settings() -> UploaderSettings:
    return UploaderSettings(
        base_url=_require_env("CLUB_UPLOADER_BASE_URL"),
        access_token=_require_env("CLUB_UPLOADER_ACCESS_TOKEN"),
        state_dir=Path(
            os.getenv("CLUB_UPLOADER_STATE_DIR")
            or Path.home() / ".club_uploader"
        ),
    )
