"""
Remote Authority client — HTTP calls to the authentication/persistence backend.

Endpoints:
    GET  /api/auth/nonce?address=      → {"nonce": ...}
    POST /api/auth/verify              → {"token": ..., "expiresAt": ...}
    GET  /api/user/dashboard  (Bearer) → user dashboard snapshot
    POST /api/user/dashboard  (Bearer) ← user dashboard snapshot

Security Note:
    Never log tokens or signatures. Only log endpoints, addresses and status codes.
"""
import asyncio
import logging
from typing import Any, Optional

import orjson
import aiohttp

from . import conf
from .exceptions import NetworkError, NonceError, VerificationFailed

logger = logging.getLogger("wallet_session.remote")

# status codes meaning "the authority looked at the signature and said no"
_REJECTED = frozenset({400, 401, 403, 409, 410, 422})


def _json_dumps(obj: Any) -> str:
    return orjson.dumps(obj).decode("utf-8")


class RemoteAuthority:
    """aiohttp client for the remote authority.

    The underlying ``ClientSession`` is created lazily on first use and
    re-created if it was closed.
    """

    def __init__(
        self,
        base_url: str,
        timeout: Optional[float] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._session = session

    @property
    def base_url(self) -> str:
        return self._base_url

    def _url(self, endpoint: str) -> str:
        return f"{self._base_url}{endpoint}"

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=self._timeout,
                json_serialize=_json_dumps,
            )
        return self._session

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    async def _request(
        self,
        method: str,
        endpoint: str,
        token: Optional[str] = None,
        **kwargs,
    ) -> tuple[int, Any]:
        """Perform a request and return ``(status, decoded_json_or_None)``.

        Raises:
            NetworkError: On connection errors, timeouts or undecodable bodies.
        """
        headers = kwargs.pop("headers", {})
        if token is not None:
            headers["Authorization"] = f"Bearer {token}"
        session = await self._get_session()
        try:
            async with session.request(
                method, self._url(endpoint), headers=headers, **kwargs
            ) as response:
                status = response.status
                body = await response.read()
        except (aiohttp.ClientError, asyncio.TimeoutError) as err:
            logger.warning("%s %s failed: %s", method, endpoint, err)
            raise NetworkError(f"{method} {endpoint} failed: {err}") from err
        payload = None
        if body:
            try:
                payload = orjson.loads(body)
            except orjson.JSONDecodeError as err:
                if status < 300:
                    raise NetworkError(
                        f"{method} {endpoint} returned invalid JSON", status
                    ) from err
        logger.debug("%s %s -> %d", method, endpoint, status)
        return status, payload

    async def request_nonce(self, address: str) -> str:
        """Ask the authority for a single-use nonce bound to ``address``.

        Raises:
            NetworkError: If the authority is unreachable or errors out.
            NonceError: If the response carries no nonce.
        """
        status, payload = await self._request(
            "GET", conf.NONCE_ENDPOINT, params={"address": address}
        )
        if status != 200:
            raise NetworkError(
                f"Nonce request for {address} failed with status {status}", status
            )
        nonce = payload.get("nonce") if isinstance(payload, dict) else None
        if not nonce:
            raise NonceError(f"Authority returned no nonce for {address}")
        return str(nonce)

    async def verify(
        self, address: str, signature: str, nonce: str
    ) -> tuple[str, Any]:
        """Submit a signed challenge.

        Returns:
            Tuple of (token, expiresAt) as returned by the authority.

        Raises:
            VerificationFailed: If the authority rejects the signature or nonce.
            NetworkError: On transport failures or unexpected status codes.
        """
        status, payload = await self._request(
            "POST",
            conf.VERIFY_ENDPOINT,
            json={"address": address, "signature": signature, "nonce": nonce},
        )
        if status in _REJECTED:
            reason = None
            if isinstance(payload, dict):
                reason = payload.get("error") or payload.get("message")
            raise VerificationFailed(
                f"Authority rejected signature for {address}: "
                f"{reason or status}"
            )
        if status != 200:
            raise NetworkError(
                f"Verification for {address} failed with status {status}", status
            )
        if not isinstance(payload, dict) or not payload.get("token"):
            raise VerificationFailed(
                f"Authority returned no token for {address}"
            )
        return payload["token"], payload.get("expiresAt")

    async def fetch_dashboard(self, token: str) -> dict:
        """Fetch the remote dashboard snapshot.

        Raises:
            NetworkError: On any failure, including a non-object body.
        """
        status, payload = await self._request(
            "GET", conf.DASHBOARD_ENDPOINT, token=token
        )
        if status != 200:
            raise NetworkError(
                f"Dashboard fetch failed with status {status}", status
            )
        if not isinstance(payload, dict):
            raise NetworkError("Dashboard fetch returned a non-object body", status)
        return payload

    async def store_dashboard(self, token: str, data: dict) -> None:
        """Replace the remote dashboard snapshot (last writer wins).

        Raises:
            NetworkError: If the write was not accepted.
        """
        status, _ = await self._request(
            "POST", conf.DASHBOARD_ENDPOINT, token=token, json=data
        )
        if not 200 <= status < 300:
            raise NetworkError(
                f"Dashboard store failed with status {status}", status
            )
