from __future__ import annotations

import json
from typing import Protocol

from .config import TrafficOpsSettings
from .errors import ConfigResolutionError


class CredentialSource(Protocol):
    def get_auth_url(self) -> str:  # pragma: no cover - structural contract
        ...

    def get_auth_credentials(self) -> str:  # pragma: no cover - structural contract
        ...

    def interpolate(self, url: str) -> str:  # pragma: no cover - structural contract
        ...


class TrafficOpsCredentials:
    """Login endpoint, login body and URL tokens derived from Traffic Ops settings."""

    def __init__(self, settings: TrafficOpsSettings) -> None:
        self.settings = settings

    def get_auth_url(self) -> str:
        if not self.settings.host:
            raise ConfigResolutionError("Traffic Ops host is not configured")
        path = self.settings.login_path
        if not path.startswith("/"):
            path = f"/{path}"
        return f"{self.settings.scheme}://{self.settings.host}{path}"

    def get_auth_credentials(self) -> str:
        if not self.settings.username or not self.settings.password:
            raise ConfigResolutionError("Traffic Ops username and password must both be configured")
        return json.dumps({"u": self.settings.username, "p": self.settings.password}, sort_keys=True)

    def interpolate(self, url: str) -> str:
        tokens = dict(self.settings.tokens)
        if self.settings.host:
            tokens["toHostname"] = self.settings.host
        for key, value in tokens.items():
            url = url.replace(f"${{{key}}}", value)
        return url
