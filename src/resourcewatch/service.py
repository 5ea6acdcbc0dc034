from __future__ import annotations

import functools
import logging
from typing import Any, Dict, Optional

from .config import AppSettings, load_raw_config
from .credentials import TrafficOpsCredentials
from .ingest.cache import CacheStore
from .ingest.fetcher import ConditionalFetcher
from .models import CycleSummary
from .scheduler import PollingScheduler
from .util.logging import setup_logging
from .watcher import Consumer, ResourceWatcher, accept_json

LOGGER = logging.getLogger(__name__)


def build_watcher(settings: AppSettings, consumer: Consumer = accept_json) -> ResourceWatcher:
    return ResourceWatcher(
        settings.name,
        CacheStore(settings.cache_dir, settings.resource_name),
        TrafficOpsCredentials(settings.traffic_ops),
        default_url=settings.default_url,
        config_prefix=settings.prefix,
        polling_interval_ms=settings.polling_interval_ms,
        timeout_ms=settings.timeout_ms,
        consumer=consumer,
        fetcher_factory=functools.partial(ConditionalFetcher, user_agent=settings.user_agent),
    )


def _raw_config(settings: AppSettings) -> Dict[str, Any]:
    try:
        return load_raw_config(settings.config_file)
    except (OSError, ValueError) as exc:
        LOGGER.warning("Unable to read watcher configuration %s: %s", settings.config_file, exc)
        return {}


def run_once(settings: AppSettings, watcher: Optional[ResourceWatcher] = None) -> CycleSummary:
    watcher = watcher or build_watcher(settings)
    startup = watcher.startup_load()
    reconfigured = watcher.reconfigure(_raw_config(settings))
    refreshed = watcher.refresh_cycle()
    return CycleSummary(
        watcher=watcher.name,
        startup=startup,
        reconfigure=reconfigured,
        refresh=refreshed,
        cache_path=str(watcher.cache.path),
        resource_url=watcher.credentials.interpolate(watcher.resource_url),
        last_refresh=watcher.last_refresh,
    )


def run_forever(settings: AppSettings) -> None:
    setup_logging(settings.logs_dir, settings.log_level)
    watcher = build_watcher(settings)
    scheduler = PollingScheduler(
        watcher,
        before_tick=lambda: watcher.reconfigure(_raw_config(settings)),
        name=settings.name,
    )
    watcher.on_schedule_change = scheduler.reschedule
    scheduler.start()
    LOGGER.info("Watcher %s running; press Ctrl+C to stop", settings.name)
    try:
        scheduler.wait()
    except KeyboardInterrupt:
        LOGGER.info("Shutting down %s", settings.name)
    finally:
        scheduler.stop(timeout=settings.timeout_ms / 1000.0 + 1)
