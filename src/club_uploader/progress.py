from __future__ import annotations

import math
from collections import deque
from dataclasses import dataclass
from datetime import datetime
from typing import Deque, Iterable

SPEED_WINDOW = 10
STALL_MIN_SAMPLES = 5
STALL_SPEED_THRESHOLD = 1000.0  # bytes per second


@dataclass(frozen=True)
class UploadProgress:
    percentage: float
    uploaded_bytes: int
    total_bytes: int
    speed: float
    eta: float
    is_stalled: bool
    last_update: datetime


def average_speed(samples: Iterable[float]) -> float:
    values = list(samples)
    if not values:
        return 0.0
    return sum(values) / len(values)


def estimate_eta(uploaded_bytes: int, total_bytes: int, speed: float) -> float:
    if speed <= 0:
        return math.inf
    return (total_bytes - uploaded_bytes) / speed


def is_stalled(samples: Iterable[float]) -> bool:
    values = list(samples)
    return len(values) > STALL_MIN_SAMPLES and all(
        value < STALL_SPEED_THRESHOLD for value in values
    )


class SpeedTracker:
    """Moving average over the most recent chunk throughput samples."""

    def __init__(self, window: int = SPEED_WINDOW) -> None:
        self._samples: Deque[float] = deque(maxlen=window)

    @property
    def samples(self) -> list[float]:
        return list(self._samples)

    def record(self, byte_count: int, elapsed_seconds: float) -> None:
        if elapsed_seconds > 0:
            self._samples.append(byte_count / elapsed_seconds)

    def snapshot(self, uploaded_bytes: int, total_bytes: int, now: datetime) -> UploadProgress:
        speed = average_speed(self._samples)
        return UploadProgress(
            percentage=(uploaded_bytes / total_bytes) * 100 if total_bytes else 0.0,
            uploaded_bytes=uploaded_bytes,
            total_bytes=total_bytes,
            speed=speed,
            eta=estimate_eta(uploaded_bytes, total_bytes, speed),
            is_stalled=is_stalled(self._samples),
            last_update=now,
        )
