from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterable
from types import TracebackType
from typing import Any, cast

import httpx

from .errors import HttpError

logger = logging.getLogger(__name__)


class HttpClient:
    """httpx wrapper that injects a bearer token, retries transient failures and raises HttpError."""

    def __init__(
        self,
        base_url: str,
        token_getter: Callable[[], str] | None = None,
        default_headers: dict[str, str] | None = None,
        timeout: float = 60.0,
        max_retries: int = 2,
        retry_statuses: Iterable[int] | None = None,
        backoff_factor: float = 0.5,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._token_getter = token_getter
        self._client = httpx.Client(timeout=timeout)
        self._default_headers = default_headers or {}
        self._max_retries = max_retries
        self._retry_statuses: set[int] = set(retry_statuses or {429, 500, 502, 503, 504})
        self._backoff_factor = backoff_factor

    def _auth_header(self) -> dict[str, str]:
        if not self._token_getter:
            return {}
        token = self._token_getter()
        return {"Authorization": f"Bearer {token}"} if token else {}

    def _url(self, path: str) -> str:
        if path.startswith(("http://", "https://")):
            return path
        return f"{self.base_url}/{path.lstrip('/')}"

    def request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any | None = None,
        headers: dict[str, str] | None = None,
        data: dict[str, Any] | None = None,
    ) -> httpx.Response:
        url = self._url(path)
        merged_headers = {**self._default_headers, **(headers or {}), **self._auth_header()}
        attempt = 0
        while True:
            request_kwargs: dict[str, Any] = {"params": params, "headers": merged_headers}
            if json is not None:
                request_kwargs["json"] = json
            if data is not None:
                request_kwargs["data"] = data
            try:
                resp = self._client.request(method, url, **request_kwargs)
            except httpx.TransportError as e:
                if attempt < self._max_retries:
                    logger.debug("Transport error on %s %s, retrying: %s", method, url, e)
                    time.sleep(self._backoff_factor * (2**attempt))
                    attempt += 1
                    continue
                raise HttpError(0, f"Transport error: {e}") from e

            if resp.status_code in self._retry_statuses and attempt < self._max_retries:
                ra = resp.headers.get("Retry-After")
                delay = float(ra) if ra and ra.isdigit() else self._backoff_factor * (2**attempt)
                logger.debug(
                    "%s %s returned %s, retrying in %.1fs", method, url, resp.status_code, delay
                )
                time.sleep(delay)
                attempt += 1
                continue

            if resp.status_code >= 400:
                try:
                    detail = resp.json()
                except ValueError:
                    detail = resp.text
                raise HttpError(resp.status_code, resp.reason_phrase, details=detail)
            return resp

    def get(self, path: str, **kwargs: Any) -> httpx.Response:
        return self.request("GET", path, **kwargs)

    def get_optional(self, path: str, **kwargs: Any) -> httpx.Response | None:
        """Issue a GET and return ``None`` instead of raising on 404."""

        try:
            return self.get(path, **kwargs)
        except HttpError as exc:
            if exc.status_code == 404:
                return None
            raise

    def post(self, path: str, **kwargs: Any) -> httpx.Response:
        return self.request("POST", path, **kwargs)

    def put(self, path: str, **kwargs: Any) -> httpx.Response:
        return self.request("PUT", path, **kwargs)

    def patch(self, path: str, **kwargs: Any) -> httpx.Response:
        return self.request("PATCH", path, **kwargs)

    def delete(self, path: str, **kwargs: Any) -> httpx.Response:
        return self.request("DELETE", path, **kwargs)

    def close(self) -> None:
        """Close the underlying :class:`httpx.Client`."""

        self._client.close()

    def __enter__(self) -> HttpClient:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()


def json_dict(resp: httpx.Response) -> dict[str, Any]:
    """Return the decoded JSON object of ``resp`` or an empty dict for empty bodies."""

    if not resp.content:
        return {}
    data = resp.json()
    return cast(dict[str, Any], data) if isinstance(data, dict) else {}
