from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional, Tuple


class WatcherState(str, Enum):
    UNCONFIGURED = "unconfigured"
    CONFIGURED = "configured"


class ReconfigureOutcome(str, Enum):
    APPLIED = "applied"
    NOOP = "noop"
    REJECTED = "rejected"


class RefreshOutcome(str, Enum):
    REFRESHED = "refreshed"
    UNCHANGED = "unchanged"
    FAILED = "failed"


class LoadOutcome(str, Enum):
    LOADED = "loaded"
    ABSENT = "absent"
    UNUSABLE = "unusable"


@dataclass(frozen=True, slots=True)
class WatcherSettings:
    """Complete settings snapshot a watcher operates under.

    Replaced as a whole on reconfiguration, never mutated in place.
    """

    auth_url: str
    credential_payload: str
    resource_url: str
    polling_interval_ms: int
    timeout_ms: int

    def fetcher_key(self) -> Tuple[str, str, int]:
        return self.auth_url, self.credential_payload, self.timeout_ms


@dataclass(slots=True)
class CycleSummary:
    watcher: str
    startup: LoadOutcome
    reconfigure: ReconfigureOutcome
    refresh: RefreshOutcome
    cache_path: str
    resource_url: Optional[str] = None
    last_refresh: Optional[datetime] = None
