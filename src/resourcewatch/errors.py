from __future__ import annotations

from pathlib import Path


class WatcherError(Exception):
    """Base class for every error raised by the watcher and its collaborators."""


class ConfigResolutionError(WatcherError):
    """Authorization endpoint or credentials could not be resolved."""


class FetchError(WatcherError):
    def __init__(self, url: str, message: str, status: int | None = None) -> None:
        self.url = url
        self.status = status
        detail = f"{message} (HTTP {status})" if status is not None else message
        super().__init__(f"{url}: {detail}")


class PersistenceError(WatcherError):
    def __init__(self, path: Path, message: str) -> None:
        self.path = path
        super().__init__(f"{path}: {message}")


class ConsumerRejected(WatcherError):
    """Payload was cached but the consumer refused to apply it."""
