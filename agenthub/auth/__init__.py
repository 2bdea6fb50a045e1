from .sqlite_db import init_db, get_conn
from .models import User, Session, OAuthState, LinkedAccount, ProviderIdentity, IssuedSession
from .passwords import PasswordHasher
from .users import CredentialStore
from .sessions import SessionStore
from .cookies import SessionCookieCodec, SessionCredentials
from .guard import AuthGuard, AuthResult
from .exchange import TokenExchanger, OAuth2CodeExchanger
from .oauth import OAuthConnectFlow, ConnectStart

__all__ = [
    "init_db",
    "get_conn",
    "User",
    "Session",
    "OAuthState",
    "LinkedAccount",
    "ProviderIdentity",
    "IssuedSession",
    "PasswordHasher",
    "CredentialStore",
    "SessionStore",
    "SessionCookieCodec",
    "SessionCredentials",
    "AuthGuard",
    "AuthResult",
    "TokenExchanger",
    "OAuth2CodeExchanger",
    "OAuthConnectFlow",
    "ConnectStart",
]
