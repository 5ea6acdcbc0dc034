from __future__ import annotations

import contextlib
import logging
import socket
import threading
from time import monotonic
from typing import Optional

import requests
import urllib3

from ..errors import FetchError
from ..util.http import create_session
from ..util.time import http_date

LOGGER = logging.getLogger(__name__)
DEFAULT_USER_AGENT = "ResourceWatch/1.0"
CHUNK_SIZE = 64 * 1024
_REAUTH_STATUSES = (401, 403)


class _TransferWatchdog:
    """Shuts the response socket down once the fetch budget is spent.

    A blocked socket read wakes up with EOF, so a server trickling bytes
    cannot stretch the transfer past the deadline.
    """

    def __init__(self, resp: requests.Response, seconds: float) -> None:
        self.fired = False
        self._resp = resp
        self._timer = threading.Timer(seconds, self._expire)
        self._timer.daemon = True

    def start(self) -> None:
        self._timer.start()

    def cancel(self) -> None:
        self._timer.cancel()

    def _expire(self) -> None:
        self.fired = True
        connection = getattr(getattr(self._resp, "raw", None), "connection", None)
        sock = getattr(connection, "sock", None)
        with contextlib.suppress(OSError):
            if sock is not None:
                sock.shutdown(socket.SHUT_RDWR)
            else:
                self._resp.close()


class ConditionalFetcher:
    """Authenticated ``If-Modified-Since`` GET bound to one login endpoint.

    The login cookie lives in the session, so an instance should be reused
    for as long as the endpoint, credentials and timeout stay the same.
    ``timeout_ms`` bounds the whole fetch, login and body transfer included.
    """

    def __init__(
        self,
        auth_url: str,
        credential_payload: str,
        timeout_ms: int,
        session: Optional[requests.Session] = None,
        user_agent: str = DEFAULT_USER_AGENT,
    ) -> None:
        self.auth_url = auth_url
        self.credential_payload = credential_payload
        self.timeout_ms = timeout_ms
        self.session = session or create_session(user_agent, timeout=timeout_ms / 1000.0)
        self._authenticated = False

    @property
    def authenticated(self) -> bool:
        return self._authenticated

    def fetch(self, url: str, since: Optional[float] = None) -> Optional[bytes]:
        """Return the new body, or ``None`` when the remote copy is not newer than ``since``.

        Raises:
            FetchError: on transport failure, failed login, timeout or a
                non-success status.
        """
        deadline = monotonic() + self.timeout_ms / 1000.0
        try:
            if not self._authenticated:
                self._authenticate(deadline)
            resp = self._get(url, since, deadline)
            if resp.status_code in _REAUTH_STATUSES:
                resp.close()
                LOGGER.info("Session rejected by %s (HTTP %s); logging in again", url, resp.status_code)
                self._authenticated = False
                self._authenticate(deadline)
                resp = self._get(url, since, deadline)
            try:
                if resp.status_code == 304:
                    return None
                if not 200 <= resp.status_code < 300:
                    raise FetchError(url, "unexpected response", resp.status_code)
                return self._read_body(url, resp, deadline)
            finally:
                resp.close()
        except requests.RequestException as exc:
            raise FetchError(url, str(exc)) from exc

    def close(self) -> None:
        self.session.close()

    def _remaining(self, url: str, deadline: float) -> float:
        remaining = deadline - monotonic()
        if remaining <= 0:
            raise FetchError(url, f"timed out after {self.timeout_ms}ms")
        return remaining

    def _authenticate(self, deadline: float) -> None:
        resp = self.session.post(
            self.auth_url,
            data=self.credential_payload,
            headers={"Content-Type": "application/json"},
            timeout=self._remaining(self.auth_url, deadline),
        )
        try:
            if not 200 <= resp.status_code < 300:
                raise FetchError(self.auth_url, "authentication failed", resp.status_code)
        finally:
            resp.close()
        self._authenticated = True
        LOGGER.debug("Authenticated against %s", self.auth_url)

    def _get(self, url: str, since: Optional[float], deadline: float) -> requests.Response:
        headers: dict[str, str] = {"Accept": "application/json"}
        if since is not None:
            headers["If-Modified-Since"] = http_date(since)
        return self.session.get(
            url,
            headers=headers,
            timeout=self._remaining(url, deadline),
            stream=True,
        )

    def _read_body(self, url: str, resp: requests.Response, deadline: float) -> bytes:
        watchdog = _TransferWatchdog(resp, self._remaining(url, deadline))
        watchdog.start()
        chunks: list[bytes] = []
        try:
            for chunk in resp.iter_content(chunk_size=CHUNK_SIZE):
                if chunk:
                    chunks.append(chunk)
                self._remaining(url, deadline)
        except (requests.RequestException, urllib3.exceptions.HTTPError, OSError) as exc:
            if watchdog.fired:
                raise FetchError(url, f"timed out after {self.timeout_ms}ms") from exc
            raise FetchError(url, str(exc)) from exc
        finally:
            watchdog.cancel()
        # a body without Content-Length ends cleanly when the socket is shut down
        if watchdog.fired:
            raise FetchError(url, f"timed out after {self.timeout_ms}ms")
        return b"".join(chunks)
