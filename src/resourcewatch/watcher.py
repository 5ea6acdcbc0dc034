from __future__ import annotations

import dataclasses
import json
import logging
import threading
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Protocol, Tuple

from .config import DEFAULT_POLLING_INTERVAL_MS, DEFAULT_TIMEOUT_MS, parse_watcher_config
from .credentials import CredentialSource
from .errors import ConfigResolutionError, ConsumerRejected, FetchError, PersistenceError
from .ingest.cache import CacheStore
from .ingest.fetcher import ConditionalFetcher
from .models import LoadOutcome, ReconfigureOutcome, RefreshOutcome, WatcherSettings, WatcherState
from .util.time import now_utc

LOGGER = logging.getLogger(__name__)

Consumer = Callable[[bytes], bool]
ScheduleListener = Callable[[int, str], None]


class Fetcher(Protocol):
    def fetch(self, url: str, since: Optional[float] = None) -> Optional[bytes]:  # pragma: no cover - structural contract
        ...

    def close(self) -> None:  # pragma: no cover - structural contract
        ...


FetcherFactory = Callable[[str, str, int], Fetcher]


def accept_json(raw: bytes) -> bool:
    try:
        json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, ValueError):
        return False
    return True


class ResourceWatcher:
    """Keeps one cached remote resource in step with its authenticated source.

    ``reconfigure`` commits a complete :class:`WatcherSettings` snapshot or
    nothing at all, and only rebuilds the fetcher when the login endpoint,
    credentials or timeout change. ``refresh_cycle`` never disturbs the
    cached copy unless a complete new payload has been fetched.

    The external scheduler serializes ``refresh_cycle`` calls; ``reconfigure``
    may run concurrently from another thread.
    """

    def __init__(
        self,
        name: str,
        cache: CacheStore,
        credentials: CredentialSource,
        *,
        default_url: str,
        config_prefix: Optional[str] = None,
        polling_interval_ms: int = DEFAULT_POLLING_INTERVAL_MS,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        consumer: Consumer = accept_json,
        fetcher_factory: FetcherFactory = ConditionalFetcher,
        on_schedule_change: Optional[ScheduleListener] = None,
    ) -> None:
        self.name = name
        self.cache = cache
        self.credentials = credentials
        self.config_prefix = config_prefix or name
        self.consumer = consumer
        self.fetcher_factory = fetcher_factory
        self.on_schedule_change = on_schedule_change
        self._default_url = default_url
        self._default_interval_ms = polling_interval_ms
        self._default_timeout_ms = timeout_ms
        self._lock = threading.Lock()
        self._settings: Optional[WatcherSettings] = None
        self._fetcher: Optional[Fetcher] = None
        self._retired: List[Fetcher] = []
        self._last_refresh: Optional[datetime] = None

    @property
    def state(self) -> WatcherState:
        with self._lock:
            return WatcherState.CONFIGURED if self._settings is not None else WatcherState.UNCONFIGURED

    @property
    def settings(self) -> Optional[WatcherSettings]:
        with self._lock:
            return self._settings

    @property
    def fetcher(self) -> Optional[Fetcher]:
        with self._lock:
            return self._fetcher

    @property
    def resource_url(self) -> str:
        with self._lock:
            return self._settings.resource_url if self._settings else self._default_url

    @property
    def last_refresh(self) -> Optional[datetime]:
        return self._last_refresh

    def get_polling_interval_ms(self) -> int:
        with self._lock:
            return self._settings.polling_interval_ms if self._settings else self._default_interval_ms

    def set_polling_interval_ms(self, interval_ms: int, url: str) -> None:
        if interval_ms <= 0:
            raise ValueError(f"polling interval must be positive, got {interval_ms}")
        with self._lock:
            if self._settings is None:
                self._default_interval_ms = interval_ms
                self._default_url = url
            else:
                self._settings = dataclasses.replace(
                    self._settings, polling_interval_ms=interval_ms, resource_url=url
                )
        self._notify_schedule(interval_ms, url)

    def reconfigure(self, raw_config: Optional[Dict[str, Any]] = None) -> ReconfigureOutcome:
        with self._lock:
            outcome = self._reconfigure_locked(raw_config or {})
            committed = self._settings
        # listeners may re-enter the watcher
        if outcome is ReconfigureOutcome.APPLIED:
            self._notify_schedule(committed.polling_interval_ms, committed.resource_url)
        return outcome

    def _reconfigure_locked(self, raw_config: Dict[str, Any]) -> ReconfigureOutcome:
        current = self._settings
        try:
            auth_url, credentials = self._resolve_credentials()
        except ConfigResolutionError as exc:
            LOGGER.warning(
                "[%s] Failed to update authorization URL or credentials, keeping previous values: %s",
                self.name,
                exc,
            )
            auth_url = current.auth_url if current else None
            credentials = current.credential_payload if current else None

        if not auth_url or not credentials:
            LOGGER.warning("[%s] Invalid authorization URL or credentials, not updating configuration", self.name)
            return ReconfigureOutcome.REJECTED

        overrides = parse_watcher_config(self.config_prefix, raw_config, self.credentials)
        candidate = WatcherSettings(
            auth_url=auth_url,
            credential_payload=credentials,
            resource_url=overrides.url or (current.resource_url if current else self._default_url),
            polling_interval_ms=overrides.interval_ms
            or (current.polling_interval_ms if current else self._default_interval_ms),
            timeout_ms=overrides.timeout_ms or (current.timeout_ms if current else self._default_timeout_ms),
        )

        if candidate == current:
            LOGGER.info("[%s] Nothing changed in configuration", self.name)
            return ReconfigureOutcome.NOOP

        fetcher = self._fetcher
        if current is None or fetcher is None or candidate.fetcher_key() != current.fetcher_key():
            if fetcher is not None:
                # a running cycle may still hold it; closed when the next cycle starts
                self._retired.append(fetcher)
            fetcher = self.fetcher_factory(candidate.auth_url, candidate.credential_payload, candidate.timeout_ms)
            LOGGER.info("[%s] Fetcher bound to %s (timeout %dms)", self.name, candidate.auth_url, candidate.timeout_ms)

        self._settings = candidate
        self._fetcher = fetcher
        LOGGER.info("[%s] Watching %s every %dms", self.name, candidate.resource_url, candidate.polling_interval_ms)
        return ReconfigureOutcome.APPLIED

    def refresh_cycle(self) -> RefreshOutcome:
        with self._lock:
            settings, fetcher = self._settings, self._fetcher
            retired, self._retired = self._retired, []
        for old in retired:
            old.close()

        if settings is None or fetcher is None:
            LOGGER.warning(
                "[%s] Waiting for configuration to be processed, unable to download from '%s'",
                self.name,
                self._default_url,
            )
            return RefreshOutcome.FAILED

        url = self.credentials.interpolate(settings.resource_url)
        try:
            since = self.cache.last_modified()
        except OSError as exc:
            LOGGER.warning(
                "[%s] Unable to inspect cached copy %s before fetching '%s': %s", self.name, self.cache.path, url, exc
            )
            return RefreshOutcome.FAILED
        try:
            data = fetcher.fetch(url, since)
        except FetchError as exc:
            LOGGER.warning("[%s] Failed to fetch data from '%s': %s", self.name, url, exc)
            return RefreshOutcome.FAILED

        if data is None:
            LOGGER.debug("[%s] '%s' not modified, keeping cached copy", self.name, url)
            self._last_refresh = now_utc()
            return RefreshOutcome.UNCHANGED

        try:
            self.cache.write_atomically(data)
        except OSError as exc:
            error = PersistenceError(self.cache.path, str(exc))
            LOGGER.warning("[%s] Failed to store data received from '%s': %s", self.name, url, error)
            return RefreshOutcome.FAILED

        self._last_refresh = now_utc()
        LOGGER.info("[%s] Stored %d bytes from '%s'", self.name, len(data), url)
        self._deliver(data, url)
        return RefreshOutcome.REFRESHED

    def startup_load(self) -> LoadOutcome:
        path = self.cache.path
        if not self.cache.exists():
            LOGGER.info("[%s] No cached copy at %s", self.name, path)
            return LoadOutcome.ABSENT
        try:
            data = self.cache.read()
        except OSError as exc:
            LOGGER.warning("[%s] Unable to read cached copy %s: %s", self.name, path, exc)
            return LoadOutcome.ABSENT
        if self._deliver(data, str(path)):
            LOGGER.info("[%s] Loaded cached copy from %s", self.name, path)
            return LoadOutcome.LOADED
        return LoadOutcome.UNUSABLE

    def _resolve_credentials(self) -> Tuple[str, str]:
        try:
            return self.credentials.get_auth_url(), self.credentials.get_auth_credentials()
        except ConfigResolutionError:
            raise
        except Exception as exc:
            raise ConfigResolutionError(str(exc)) from exc

    def _notify_schedule(self, interval_ms: int, url: str) -> None:
        if self.on_schedule_change is not None:
            self.on_schedule_change(interval_ms, url)

    def _deliver(self, data: bytes, origin: str) -> bool:
        try:
            accepted = bool(self.consumer(data))
        except Exception as exc:  # consumer is caller supplied
            LOGGER.warning("[%s] Consumer raised while handling data from '%s': %s", self.name, origin, exc)
            accepted = False
        if not accepted:
            LOGGER.warning("[%s] %s", self.name, ConsumerRejected(f"data from '{origin}' was not applied"))
        return accepted
