"""HTTP request/response logging for debugging provider calls.

Provides millisecond-precision timing and logs to a separate file.
Strips credentials from headers and query parameters.
"""

import logging
import time
from datetime import datetime
from pathlib import Path
from typing import Optional

import requests

# Create a dedicated logger for HTTP traffic
http_logger = logging.getLogger("pulsechart.http")

# Headers and params to redact from logs
SENSITIVE_HEADERS = {"authorization", "cookie", "set-cookie"}
SENSITIVE_PARAMS = {"token", "access_token", "client_secret"}


def setup_http_logging(
    log_file: Optional[Path] = None,
    console: bool = False,
) -> None:
    """Configure HTTP request/response logging.

    Args:
        log_file: Path to log file. Defaults to pulsechart_http.log
        console: Also log to console (very verbose!)
    """
    if http_logger.handlers:
        return

    log_file = log_file or Path("pulsechart_http.log")

    # Create formatter with millisecond precision
    formatter = logging.Formatter(
        "%(asctime)s.%(msecs)03d [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    file_handler = logging.FileHandler(log_file, mode="a")
    file_handler.setFormatter(formatter)
    file_handler.setLevel(logging.DEBUG)
    http_logger.addHandler(file_handler)

    if console:
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(formatter)
        console_handler.setLevel(logging.DEBUG)
        http_logger.addHandler(console_handler)

    http_logger.setLevel(logging.DEBUG)
    http_logger.propagate = False  # Don't bubble up to root logger

    http_logger.info(f"=== HTTP logging started at {datetime.now().isoformat()} ===")


def _sanitize(mapping: Optional[dict], sensitive: set[str]) -> dict:
    """Replace sensitive values with a marker."""
    return {
        k: ("***REDACTED***" if k.lower() in sensitive else v)
        for k, v in (mapping or {}).items()
    }


def _truncate(text: str, max_len: int = 2000) -> str:
    """Truncate long response bodies."""
    if len(text) <= max_len:
        return text
    return text[:max_len] + f"... [truncated, {len(text)} total chars]"


class TimedRequestsSession:
    """Wrapper around requests.Session that logs all HTTP calls with timing."""

    def __init__(self, session: requests.Session):
        self._session = session
        self._request_counter = 0

    def request(self, method: str, url: str, **kwargs) -> requests.Response:
        """Make a request and log it with timing."""
        self._request_counter += 1
        req_id = self._request_counter

        safe_headers = _sanitize(kwargs.get("headers"), SENSITIVE_HEADERS)
        safe_params = _sanitize(kwargs.get("params"), SENSITIVE_PARAMS)

        http_logger.debug(
            f"[REQ-{req_id}] --> {method} {url}\n"
            f"    Params: {safe_params}\n"
            f"    Headers: {safe_headers}"
        )

        start = time.perf_counter()
        try:
            response = self._session.request(method, url, **kwargs)
            elapsed_ms = (time.perf_counter() - start) * 1000

            resp_headers = _sanitize(dict(response.headers), SENSITIVE_HEADERS)
            http_logger.debug(
                f"[REQ-{req_id}] <-- {response.status_code} {response.reason} "
                f"({elapsed_ms:.1f}ms)\n"
                f"    Headers: {resp_headers}\n"
                f"    Body: {_truncate(response.text)}"
            )

            return response

        except Exception as e:
            elapsed_ms = (time.perf_counter() - start) * 1000
            http_logger.error(
                f"[REQ-{req_id}] <-- ERROR after {elapsed_ms:.1f}ms: {e}"
            )
            raise

    # Delegate all other attributes to the wrapped session
    def __getattr__(self, name):
        return getattr(self._session, name)


def patch_requests_session(session: requests.Session) -> TimedRequestsSession:
    """Wrap a requests Session so every call is logged."""
    if isinstance(session, TimedRequestsSession):
        return session
    return TimedRequestsSession(session)


def patch_spotipy_client(spotify_client) -> None:
    """Patch a spotipy.Spotify client to log all HTTP requests.

    Args:
        spotify_client: A spotipy.Spotify instance
    """
    if hasattr(spotify_client, "_http_logging_patched"):
        return  # Already patched

    # Spotipy uses _session internally
    if hasattr(spotify_client, "_session"):
        spotify_client._session = TimedRequestsSession(spotify_client._session)
        spotify_client._http_logging_patched = True
        http_logger.info("Patched spotipy client for HTTP logging")
