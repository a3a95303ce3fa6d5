"""
ApiClient — the shared HTTP client every auth/account call goes through.

Base URL and a 15 s timeout come from ``config``; the ``x-auth-token``
header is attached to each outgoing request whenever the session store
holds a token. Nothing here retries.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional

import httpx

from auth.session_store import BaseSessionStore
from client.errors import ApiError, NetworkError
from client.url_config import api_base_url
from config.settings import config

logger = logging.getLogger(__name__)


class ApiClient:
    """Thin async JSON wrapper over ``httpx.AsyncClient``."""

    def __init__(
        self,
        store: BaseSessionStore,
        *,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.store = store
        self._unauthorized_hooks: List[Callable[[ApiError], None]] = []
        self._client = httpx.AsyncClient(
            base_url=base_url or api_base_url(),
            timeout=timeout if timeout is not None else config.request_timeout_seconds,
            transport=transport,
            event_hooks={"request": [self._attach_token]},
        )

    async def _attach_token(self, request: httpx.Request) -> None:
        token = self.store.get_token()
        if token:
            request.headers[config.auth_header_name] = token

    def on_unauthorized(self, hook: Callable[[ApiError], None]) -> None:
        """Register a callback fired when an authenticated request gets a 401."""
        self._unauthorized_hooks.append(hook)

    # ── Verbs ───────────────────────────────────────────────────────────

    async def get(self, path: str, **kwargs: Any) -> Any:
        return await self.request("GET", path, **kwargs)

    async def post(self, path: str, json: Any = None, **kwargs: Any) -> Any:
        return await self.request("POST", path, json=json, **kwargs)

    async def put(self, path: str, json: Any = None, **kwargs: Any) -> Any:
        return await self.request("PUT", path, json=json, **kwargs)

    async def delete(self, path: str, **kwargs: Any) -> Any:
        return await self.request("DELETE", path, **kwargs)

    async def request(
        self, method: str, path: str, *, token_auth: bool = True, **kwargs: Any
    ) -> Any:
        """
        Send a request and return the decoded JSON body (``None`` if empty).

        Raises ``ApiError`` on non-2xx and ``NetworkError`` on transport
        failure. Pass ``token_auth=False`` for credential checks, where a 401
        means wrong credentials rather than a rejected token; the
        ``on_unauthorized`` hooks are then skipped.
        """
        had_token = token_auth and self.store.has_token()
        try:
            resp = await self._client.request(method, path, **kwargs)
        except httpx.TimeoutException as exc:
            logger.warning("%s %s timed out: %s", method, path, exc)
            raise NetworkError("The server took too long to respond.") from exc
        except httpx.TransportError as exc:
            logger.warning("%s %s failed: %s", method, path, exc)
            raise NetworkError() from exc

        logger.debug("%s %s → %d", method, path, resp.status_code)
        body = _decode(resp)

        if resp.is_success:
            return body

        err = ApiError.from_payload(resp.status_code, body)
        if err.is_unauthorized and had_token:
            for hook in self._unauthorized_hooks:
                hook(err)
        raise err

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "ApiClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()


def _decode(resp: httpx.Response) -> Any:
    if not resp.content:
        return None
    try:
        return resp.json()
    except ValueError:
        return resp.text


def as_dict(body: Any) -> Dict[str, Any]:
    """Response bodies the auth endpoints promise to be objects."""
    return body if isinstance(body, dict) else {}
