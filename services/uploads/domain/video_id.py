"""Tagged representation of the platform video identifier held by a session."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Union

PLACEHOLDER_PREFIX = "placeholder_"


@dataclass(frozen=True)
class NoVideoId:
    @property
    def stored(self) -> str:
        return ""


@dataclass(frozen=True)
class PlaceholderVideoId:
    token: str

    @classmethod
    def new(cls) -> "PlaceholderVideoId":
        return cls(token=str(int(time.time() * 1000)))

    @property
    def stored(self) -> str:
        return f"{PLACEHOLDER_PREFIX}{self.token}"


@dataclass(frozen=True)
class RealVideoId:
    value: str

    @property
    def stored(self) -> str:
        return self.value


VideoId = Union[NoVideoId, PlaceholderVideoId, RealVideoId]


def parse_video_id(raw: str | None) -> VideoId:
    value = (raw or "").strip()
    if not value:
        return NoVideoId()
    if value.startswith(PLACEHOLDER_PREFIX):
        return PlaceholderVideoId(token=value[len(PLACEHOLDER_PREFIX) :])
    return RealVideoId(value=value)


def is_real(video_id: VideoId) -> bool:
    return isinstance(video_id, RealVideoId)
