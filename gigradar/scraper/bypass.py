"""Client for a FlareSolverr-compatible bot-challenge bypass service.

The service takes a target URL, renders it in a real browser that solves the
challenge page, and returns the final HTML. A browser session can be created
up front and reused for a whole crawl, which makes every fetch after the first
one much cheaper.

Protocol: ``POST {base}/v1`` with ``{cmd, url?, session?, maxTimeout?}``;
response ``{status, message, solution?: {response, status, cookies, userAgent}}``.
"""
from __future__ import annotations

import time
from contextlib import contextmanager
from typing import Any, Iterator

import requests

from gigradar.errors import BypassServiceError, TransportError
from gigradar.log import get_logger

log = get_logger(__name__)

DEFAULT_TIMEOUT_MS = 60_000
# Extra seconds on top of the solver's own timeout before we give up on HTTP.
_HTTP_GRACE_SECONDS = 15.0


class BypassClient:
    def __init__(
        self,
        base_url: str = "http://localhost:8191",
        *,
        default_timeout_ms: int = DEFAULT_TIMEOUT_MS,
        http: requests.Session | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.default_timeout_ms = default_timeout_ms
        self.http = http or requests.Session()

    def _command(self, payload: dict[str, Any], timeout_ms: int) -> dict[str, Any]:
        try:
            r = self.http.post(
                f"{self.base_url}/v1",
                json=payload,
                timeout=timeout_ms / 1000.0 + _HTTP_GRACE_SECONDS,
            )
        except requests.Timeout as exc:
            raise TransportError(f"bypass service timed out ({payload['cmd']})") from exc
        except requests.RequestException as exc:
            raise TransportError(f"bypass service unreachable: {exc}") from exc

        if not r.ok:
            raise TransportError(f"bypass service HTTP {r.status_code} {r.reason}")

        try:
            data = r.json()
        except ValueError as exc:
            raise BypassServiceError("bypass service returned invalid JSON") from exc

        if data.get("status") != "ok":
            raise BypassServiceError(data.get("message") or f"status {data.get('status')!r}")
        return data

    def create_session(self, session_id: str) -> str:
        log.info("Creating bypass session %s", session_id)
        self._command({"cmd": "sessions.create", "session": session_id}, self.default_timeout_ms)
        return session_id

    def fetch(
        self,
        url: str,
        session_id: str | None = None,
        timeout_ms: int | None = None,
    ) -> str:
        """Return the rendered HTML for ``url``."""
        timeout_ms = timeout_ms or self.default_timeout_ms
        payload: dict[str, Any] = {"cmd": "request.get", "url": url, "maxTimeout": timeout_ms}
        if session_id:
            payload["session"] = session_id

        started = time.monotonic()
        data = self._command(payload, timeout_ms)
        solution = data.get("solution")
        if not solution:
            raise BypassServiceError("bypass service returned no solution")

        log.debug(
            "Solved %s in %.2fs (upstream status %s)",
            url,
            time.monotonic() - started,
            solution.get("status"),
        )
        return solution.get("response") or ""

    def destroy_session(self, session_id: str) -> None:
        """Best-effort: a failure here is logged and never raised."""
        try:
            self._command({"cmd": "sessions.destroy", "session": session_id}, self.default_timeout_ms)
            log.info("Destroyed bypass session %s", session_id)
        except (TransportError, BypassServiceError) as exc:
            log.warning("Could not destroy bypass session %s: %s", session_id, exc)

    def health(self) -> bool:
        try:
            r = self.http.get(f"{self.base_url}/health", timeout=10)
            return r.ok
        except requests.RequestException as exc:
            log.warning("Bypass service health check failed: %s", exc)
            return False

    @contextmanager
    def session(self, prefix: str = "crawl") -> Iterator[str]:
        """Create a session for the duration of the block; always destroy it."""
        session_id = f"{prefix}-{int(time.time() * 1000)}"
        try:
            # A create that times out may still leave a browser behind.
            self.create_session(session_id)
            yield session_id
        finally:
            self.destroy_session(session_id)
