"""Typed SDK client for tracker endpoints."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from pt_tracker.errors import TrackerAuthError, TrackerResponseError, TrackerUnavailableError
from pt_tracker.types import TokenInfo

DEFAULT_TRACKER_BASE = "https://www.pivotaltracker.com/services/v5"
TOKEN_HEADER = "X-TrackerToken"

logger = logging.getLogger(__name__)


@dataclass
class TrackerClient:
    base_url: str = DEFAULT_TRACKER_BASE
    timeout: float = 10.0
    retries: int = 0

    def __post_init__(self) -> None:
        try:
            import requests
            from requests.adapters import HTTPAdapter
            from urllib3.util.retry import Retry
        except Exception as exc:  # pragma: no cover
            raise TrackerUnavailableError(f"requests stack unavailable: {exc}") from exc

        self._requests = requests
        self._session = requests.Session()
        retry = Retry(
            total=max(0, int(self.retries)),
            connect=max(0, int(self.retries)),
            read=max(0, int(self.retries)),
            status=0,
            allowed_methods=("GET",),
            raise_on_status=False,
        )
        adapter = HTTPAdapter(max_retries=retry)
        self._session.mount("http://", adapter)
        self._session.mount("https://", adapter)

    def _url(self, path: str) -> str:
        return f"{self.base_url.rstrip('/')}/{path.lstrip('/')}"

    def _request(self, method: str, path: str, *, api_token: str) -> object:
        url = self._url(path)
        logger.debug("%s %s (timeout=%ss)", method, url, self.timeout)
        try:
            response = self._session.request(
                method,
                url,
                headers={TOKEN_HEADER: api_token},
                timeout=self.timeout,
            )
        except self._requests.Timeout as exc:
            raise TrackerUnavailableError(
                f"tracker request timed out after {self.timeout}s: {url}"
            ) from exc
        except Exception as exc:
            raise TrackerUnavailableError(f"tracker request failed: {exc}") from exc

        logger.debug("%s %s -> %s", method, url, response.status_code)
        if not 200 <= response.status_code < 300:
            body: object | None = None
            detail: object | None = None
            try:
                body = response.json()
            except Exception:
                body = None
            if isinstance(body, dict):
                detail = body.get("error") or body.get("detail") or body.get("general_problem")
            message = f"tracker rejected the API token (status {response.status_code})"
            if isinstance(detail, str):
                message = f"{message}: {detail}"
            raise TrackerAuthError(
                message,
                status_code=response.status_code,
                detail=detail,
                body=body,
            )

        try:
            return response.json()
        except Exception as exc:
            raise TrackerResponseError(
                f"tracker returned a non-JSON response ({response.status_code})"
            ) from exc

    def resolve_identity(self, api_token: str) -> TokenInfo:
        payload = self._request("GET", "/me", api_token=api_token)
        return TokenInfo.from_payload(payload, fallback_token=api_token)

    def close(self) -> None:
        self._session.close()


__all__ = ["TrackerClient", "DEFAULT_TRACKER_BASE", "TOKEN_HEADER"]
