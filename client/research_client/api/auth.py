"""Bearer credential providers for the research backend."""

from __future__ import annotations

import time
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx

from research_client.core.errors import CredentialError
from research_client.core.settings import Settings

CredentialProvider = Callable[[str], Awaitable[str]]


async def acquire_token(provider: CredentialProvider, audience: str) -> str:
    """Ask ``provider`` for a token, normalising every failure to CredentialError."""

    try:
        token = await provider(audience)
    except CredentialError:
        raise
    except Exception as exc:  # noqa: BLE001 - the identity collaborator is opaque
        raise CredentialError(f"Credential acquisition failed: {exc}") from exc
    if not isinstance(token, str) or not token:
        raise CredentialError("Credential provider returned an empty token")
    return token


class StaticTokenProvider:
    """Hands out a pre-issued token regardless of audience."""

    def __init__(self, token: str) -> None:
        self._token = token

    async def __call__(self, audience: str) -> str:
        if not self._token:
            raise CredentialError("No access token configured")
        return self._token


class ClientCredentialsProvider:
    """OAuth2 client-credentials grant against ``https://{domain}/oauth/token``.

    Tokens are cached per audience until shortly before they expire.
    """

    EXPIRY_MARGIN_SEC = 60

    def __init__(
        self,
        domain: str,
        client_id: str,
        client_secret: str,
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.domain = domain
        self.client_id = client_id
        self.client_secret = client_secret
        self._timeout = timeout
        self._transport = transport
        self._clock = clock
        self._cache: Dict[str, Dict[str, Any]] = {}

    @property
    def token_url(self) -> str:
        return f"https://{self.domain}/oauth/token"

    async def __call__(self, audience: str) -> str:
        cached = self._cache.get(audience)
        if cached and cached["expires_at"] > self._clock():
            return cached["token"]

        payload = {
            "grant_type": "client_credentials",
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "audience": audience,
        }
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                rsp = await client.post(self.token_url, json=payload)
                rsp.raise_for_status()
                out = rsp.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise CredentialError(f"Token request failed: {exc}") from exc
        if not isinstance(out, dict) or not out.get("access_token"):
            raise CredentialError("Invalid token response.")

        expires_in = int(out.get("expires_in", 0) or 0)
        self._cache[audience] = {
            "token": out["access_token"],
            "expires_at": self._clock() + max(0, expires_in - self.EXPIRY_MARGIN_SEC),
        }
        return out["access_token"]


def provider_from_settings(settings: Settings) -> CredentialProvider:
    if settings.access_token:
        return StaticTokenProvider(settings.access_token)
    if settings.auth_domain and settings.auth_client_id and settings.auth_client_secret:
        return ClientCredentialsProvider(
            settings.auth_domain,
            settings.auth_client_id,
            settings.auth_client_secret,
            timeout=settings.request_timeout,
        )
    return StaticTokenProvider("")
