"""
Shared dataclasses used across the now/next refresh engine.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from tuner_guide.errors import GuideError
from tuner_guide.models import ChannelType, Program


@dataclass(frozen=True, slots=True)
class NowNextPair:
    """Currently airing and immediately following program for a service."""
    now: Program | None = None
    next: Program | None = None

    @property
    def is_empty(self) -> bool:
        return self.now is None and self.next is None


EMPTY_PAIR = NowNextPair()


@dataclass(frozen=True, slots=True)
class CacheEntry:
    """Cached now/next pair with the time after which it is stale."""
    pair: NowNextPair
    refresh_after: int

    def is_fresh(self, reference_time: int) -> bool:
        return self.refresh_after > reference_time


@dataclass(frozen=True, slots=True)
class DedupGroupKey:
    channel_type: ChannelType | None
    network_id: int
    remote_control_key_id: int


@dataclass(frozen=True, slots=True)
class DedupIdentity:
    group: DedupGroupKey
    title: str
    start_at: int
    duration_ms: int


@dataclass(slots=True)
class ReloadOutcome:
    """Result of a service list reload."""
    status: Literal["fetched", "cached", "superseded", "failed"]
    services: int = 0
    unique_services: int = 0
    duplicate_candidates: int = 0
    error: GuideError | None = None

    @property
    def ok(self) -> bool:
        return self.status != "failed"

    def to_dict(self) -> dict:
        payload = {
            "status": self.status,
            "services": self.services,
            "unique_services": self.unique_services,
            "duplicate_candidates": self.duplicate_candidates,
        }
        if self.error:
            payload["error"] = str(self.error)
        return payload


__all__ = [
    "NowNextPair",
    "EMPTY_PAIR",
    "CacheEntry",
    "DedupGroupKey",
    "DedupIdentity",
    "ReloadOutcome",
]
