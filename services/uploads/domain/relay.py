from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping

STRIPPED_HEADER_PREFIXES = ("access-control", "x-")
STRIPPED_HEADERS = frozenset({"server"})
# recomputed by the serving framework for the forwarded body
HOP_BY_HOP_HEADERS = frozenset(
    {"content-length", "transfer-encoding", "connection", "keep-alive", "content-encoding"}
)
EMPTY_BODY_STATUSES = frozenset({204, 308})


@dataclass(frozen=True)
class ChunkRequest:
    upload_url: str
    session_id: str
    content_range: str | None
    content_type: str
    body: bytes


@dataclass(frozen=True)
class PlatformResponse:
    status_code: int
    reason: str
    headers: Mapping[str, str]
    content: bytes


@dataclass(frozen=True)
class RelayedResponse:
    status_code: int
    headers: Mapping[str, str] = field(default_factory=dict)
    body: Any = None


def filter_platform_headers(headers: Mapping[str, str]) -> dict[str, str]:
    forwarded: dict[str, str] = {}
    for key, value in headers.items():
        lowered = key.lower()
        if lowered.startswith(STRIPPED_HEADER_PREFIXES):
            continue
        if lowered in STRIPPED_HEADERS or lowered in HOP_BY_HOP_HEADERS:
            continue
        forwarded[key] = value
    return forwarded
