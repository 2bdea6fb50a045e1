"""
auth/oauth.py — OAuth provider-connect flow.

    NotStarted -> StateIssued -> Consumed
                       |-> Expired / Mismatched   (terminal failures)

``start_connect`` issues a state bound to (session, provider) and builds the
provider authorization URL. ``handle_callback`` consumes that state exactly
once and only then hands the payload to the TokenExchanger.
"""
from __future__ import annotations

import asyncio
import logging
import sqlite3
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Mapping
from urllib.parse import urlparse

from authlib.oauth2.rfc6749.parameters import prepare_grant_uri

from ..config import ProviderConfig
from ..exceptions import ConflictError, StateMismatchError, UnsupportedProviderError, UpstreamError
from .exchange import TokenExchanger
from .models import LinkedAccount, ProviderIdentity
from .sqlite_db import get_conn, to_db, utcnow
from .token_utils import consume_state_token, generate_state_token

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConnectStart:
    provider: str
    redirect_url: str
    state: str
    expires_at: datetime


def _is_https(url: str) -> bool:
    parsed = urlparse(url or "")
    return parsed.scheme == "https" and bool(parsed.netloc)


class OAuthConnectFlow:
    def __init__(
        self,
        db_path: str,
        providers: Mapping[str, ProviderConfig],
        exchanger: TokenExchanger,
        *,
        redirect_uri_for: Callable[[str], str],
        state_ttl: timedelta,
        exchange_timeout: float,
        clock: Callable = utcnow,
    ) -> None:
        self._db_path = db_path
        self._providers = providers
        self._exchanger = exchanger
        self._redirect_uri_for = redirect_uri_for
        self._state_ttl = state_ttl
        self._exchange_timeout = exchange_timeout
        self._clock = clock

    def resolve_provider(self, provider: str) -> ProviderConfig:
        """Return the allow-listed provider or raise UnsupportedProviderError."""
        config = self._providers.get((provider or "").lower())
        if config is None:
            raise UnsupportedProviderError()
        endpoints = [config.authorize_url, config.token_url]
        if config.userinfo_url:
            endpoints.append(config.userinfo_url)
        if not all(_is_https(url) for url in endpoints):
            logger.error("Provider %s has a non-HTTPS endpoint; refusing to connect", config.name)
            raise UnsupportedProviderError()
        return config

    def start_connect(self, session_id: str, provider: str) -> ConnectStart:
        config = self.resolve_provider(provider)
        raw_state, expires_at = generate_state_token(
            self._db_path,
            session_id,
            config.name,
            ttl=self._state_ttl,
            now=self._clock(),
        )
        redirect_url = prepare_grant_uri(
            config.authorize_url,
            config.client_id,
            "code",
            redirect_uri=self._redirect_uri_for(config.name),
            scope=config.scope or None,
            state=raw_state,
        )
        logger.info("OAuth connect started provider=%s", config.name)
        return ConnectStart(
            provider=config.name,
            redirect_url=redirect_url,
            state=raw_state,
            expires_at=expires_at,
        )

    async def handle_callback(
        self,
        session_id: str,
        provider: str,
        received_state: str,
        payload: Mapping[str, str],
    ) -> LinkedAccount:
        """
        Consume the state and link the provider identity to the session's user.

        Raises:
            StateMismatchError: state unknown, expired, reused, or issued for
                another session/provider. The exchanger is not called.
            UpstreamError: the exchange failed or exceeded its deadline.
            ConflictError: the identity is already linked to another user.
        """
        provider = (provider or "").lower()
        state = consume_state_token(
            self._db_path,
            received_state,
            session_id,
            provider,
            now=self._clock(),
        )
        if state is None:
            logger.info("OAuth state rejected provider=%s", provider)
            raise StateMismatchError()

        try:
            identity = await asyncio.wait_for(
                self._exchanger.exchange_token(provider, payload),
                timeout=self._exchange_timeout,
            )
        except asyncio.TimeoutError as exc:
            logger.warning("Token exchange with %s timed out after %.1fs", provider, self._exchange_timeout)
            raise UpstreamError() from exc

        return self._link(self._session_user_id(state.session_id), identity)

    def linked_accounts(self, user_id: str) -> list[LinkedAccount]:
        with get_conn(self._db_path) as conn:
            rows = conn.execute(
                "SELECT * FROM linked_accounts WHERE user_id = ? ORDER BY linked_at",
                (user_id,),
            ).fetchall()
        return [LinkedAccount.from_row(r) for r in rows]

    # ── Private helpers ───────────────────────────────────────────────────────

    def _session_user_id(self, session_id: str) -> str:
        with get_conn(self._db_path) as conn:
            row = conn.execute("SELECT user_id FROM sessions WHERE id = ?", (session_id,)).fetchone()
        if not row:
            raise StateMismatchError()
        return row["user_id"]

    def _link(self, user_id: str, identity: ProviderIdentity) -> LinkedAccount:
        now = to_db(self._clock())
        with get_conn(self._db_path) as conn:
            try:
                conn.execute(
                    """
                    INSERT INTO linked_accounts
                      (id, user_id, provider, provider_user_id, email, display_name, linked_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        str(uuid.uuid4()), user_id, identity.provider, identity.provider_user_id,
                        identity.email, identity.display_name, now,
                    ),
                )
                conn.commit()
            except sqlite3.IntegrityError:
                conn.rollback()
            row = conn.execute(
                "SELECT * FROM linked_accounts WHERE provider = ? AND provider_user_id = ?",
                (identity.provider, identity.provider_user_id),
            ).fetchone()

        account = LinkedAccount.from_row(row)
        if account.user_id != user_id:
            logger.info("OAuth identity already linked to another user provider=%s", identity.provider)
            raise ConflictError("This account is already connected to another user.")
        logger.info("OAuth account linked user_id=%s provider=%s", user_id, identity.provider)
        return account
