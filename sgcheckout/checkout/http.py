"""HTTP access for the checkout flow.

`ApiClient` wraps an `httpx.AsyncClient` and attaches the session's auth
headers. `EndpointFallback` tries an ordered list of candidate paths, moving
on after any failure except a terminal one (401).
"""

import logging
from dataclasses import dataclass, field
from typing import Optional, Sequence

import httpx

from sgcheckout.checkout.errors import AuthenticationRequired, EndpointError
from sgcheckout.checkout.session import SessionStore

logger = logging.getLogger(__name__)

TERMINAL_STATUSES = frozenset({401})


class ApiClient:
    def __init__(
        self,
        base_url: str,
        session: SessionStore,
        *,
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.session = session
        self._client = httpx.AsyncClient(base_url=base_url, timeout=timeout, transport=transport)

    async def request(
        self,
        method: str,
        path: str,
        json: Optional[dict] = None,
        headers: Optional[dict] = None,
    ) -> httpx.Response:
        merged = {"Accept": "application/json", **self.session.auth_headers()}
        if headers:
            merged.update(headers)
        return await self._client.request(method, path, json=json, headers=merged)

    async def aclose(self):
        await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        await self.aclose()


def json_body(response: httpx.Response) -> dict:
    """The response body as a dict; empty when it is not a JSON object."""
    try:
        payload = response.json()
    except ValueError:
        return {}
    return payload if isinstance(payload, dict) else {}


def error_from_response(path: str, response: httpx.Response) -> EndpointError:
    payload = json_body(response)

    message = (
        payload.get("detail")
        or payload.get("message")
        or payload.get("error")
        or f"HTTP {response.status_code}"
    )
    if not isinstance(message, str):
        message = str(message)

    error_cls = AuthenticationRequired if response.status_code in TERMINAL_STATUSES else EndpointError
    return error_cls(path, response.status_code, message, payload)


@dataclass
class EndpointFallback:
    """Ordered candidate endpoints for one logical operation.

    Each path is tried in turn. A 2xx answer wins. A terminal status raises
    immediately (retrying an auth failure would only hide it). Any other
    failure, including a transport error, moves on to the next path. When
    every path fails the last error is raised.
    """

    paths: Sequence[str]
    terminal_statuses: frozenset = field(default=TERMINAL_STATUSES)

    def is_terminal(self, status_code: Optional[int]) -> bool:
        return status_code in self.terminal_statuses

    async def send(
        self,
        api: ApiClient,
        method: str,
        json: Optional[dict] = None,
        headers: Optional[dict] = None,
    ) -> httpx.Response:
        last_error = None
        for path in self.paths:
            try:
                response = await api.request(method, path, json=json, headers=headers)
            except httpx.HTTPError as exc:
                logger.warning("%s %s failed: %s", method, path, exc)
                last_error = EndpointError(path, None, f"Could not reach {path}")
                continue

            if response.is_success:
                return response

            error = error_from_response(path, response)
            if self.is_terminal(response.status_code):
                logger.info("%s %s returned %s, not retrying", method, path, response.status_code)
                raise error

            logger.warning("%s %s returned %s: %s", method, path, response.status_code, error.message)
            last_error = error

        if last_error is None:
            raise EndpointError("", None, "No endpoints configured")
        raise last_error
