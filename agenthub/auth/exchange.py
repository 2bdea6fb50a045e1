"""
auth/exchange.py — Provider token exchange extension point.

The connect flow only ever talks to a ``TokenExchanger``. It is called after
the state token has been consumed and must turn the provider's callback
payload into a ``ProviderIdentity`` or raise ``UpstreamError``.
"""
from __future__ import annotations

import abc
import logging
from typing import Any, Callable, Mapping, Optional

import httpx
from authlib.common.errors import AuthlibBaseError
from authlib.integrations.httpx_client import AsyncOAuth2Client

from ..config import ProviderConfig
from ..exceptions import UnsupportedProviderError, UpstreamError, ValidationError
from .models import ProviderIdentity

logger = logging.getLogger(__name__)


class TokenExchanger(abc.ABC):
    @abc.abstractmethod
    async def exchange_token(self, provider: str, payload: Mapping[str, str]) -> ProviderIdentity:
        """
        Exchange the callback payload (``code`` and friends) for the
        provider-side identity of the user.

        Raises:
            UpstreamError: provider unreachable or its answer unusable.
            ValidationError: the payload lacks what the exchange needs.
        """


class OAuth2CodeExchanger(TokenExchanger):
    """
    RFC 6749 authorization-code exchange followed by a userinfo request.

    Every HTTP call shares one client-wide timeout; the caller adds its own
    overall deadline on top.
    """

    def __init__(
        self,
        providers: Mapping[str, ProviderConfig],
        *,
        redirect_uri_for: Callable[[str], str],
        timeout: float,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._providers = providers
        self._redirect_uri_for = redirect_uri_for
        self._timeout = timeout
        self._transport = transport

    async def exchange_token(self, provider: str, payload: Mapping[str, str]) -> ProviderIdentity:
        config = self._providers.get(provider)
        if config is None:
            raise UnsupportedProviderError()
        if payload.get("error"):
            logger.info("Provider %s returned error=%s", provider, payload.get("error"))
            raise ValidationError.for_field("error", "The provider did not grant access.")
        code = payload.get("code")
        if not code:
            raise ValidationError.for_field("code", "Missing authorization code.")
        if not config.userinfo_url:
            logger.error("Provider %s has no userinfo endpoint configured", provider)
            raise UpstreamError()

        try:
            async with AsyncOAuth2Client(
                client_id=config.client_id,
                client_secret=config.client_secret,
                redirect_uri=self._redirect_uri_for(provider),
                timeout=self._timeout,
                transport=self._transport,
            ) as client:
                await client.fetch_token(config.token_url, code=code)
                resp = await client.get(config.userinfo_url)
                resp.raise_for_status()
                info = resp.json()
        except (httpx.HTTPError, AuthlibBaseError, ValueError) as exc:
            logger.warning("Token exchange with %s failed: %s", provider, type(exc).__name__)
            raise UpstreamError() from exc

        return identity_from_userinfo(provider, info)


def identity_from_userinfo(provider: str, info: Any) -> ProviderIdentity:
    """Map an OpenID Connect (``sub``) or GitHub-style (``id``) profile to an identity."""
    if not isinstance(info, dict):
        raise UpstreamError()
    subject = info.get("sub") or info.get("id")
    if subject is None or str(subject) == "":
        raise UpstreamError()
    email = info.get("email")
    name = info.get("name") or info.get("login")
    return ProviderIdentity(
        provider=provider,
        provider_user_id=str(subject),
        email=email.lower() if isinstance(email, str) else None,
        display_name=name if isinstance(name, str) else None,
    )
