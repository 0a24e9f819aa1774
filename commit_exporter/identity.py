"""
Signed-in identity and GitHub OAuth sign-in.

The export pipeline never talks to the auth provider directly. It asks an
IdentityProvider for the current identity (to prefill the username and to
authenticate GitHub calls) and may subscribe to identity changes.

Sessions live in process memory only; a restart signs everyone out.
"""

import logging
import secrets
from typing import Callable, Protocol
from urllib.parse import urlencode

import httpx
from pydantic import BaseModel

from commit_exporter.config import (
    GITHUB_API_BASE,
    GITHUB_CLIENT_ID,
    GITHUB_CLIENT_SECRET,
    GITHUB_OAUTH_AUTHORIZE_URL,
    GITHUB_OAUTH_TOKEN_URL,
    GITHUB_REQUEST_TIMEOUT,
    OAUTH_REDIRECT_URI,
    OAUTH_SCOPES,
)

logger = logging.getLogger(__name__)

IdentityListener = Callable[["Identity | None"], None]


class AuthError(Exception):
    """Raised when sign-in or profile lookup fails."""

    def __init__(self, message: str, status_code: int = 401):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class Identity(BaseModel):
    """The signed-in GitHub account."""

    user_id: str
    github_username: str | None = None
    avatar_url: str | None = None


class IdentityProvider(Protocol):
    access_token: str | None

    def get_current_identity(self) -> Identity | None: ...

    def subscribe(self, listener: IdentityListener) -> Callable[[], None]: ...


# ── Providers ─────────────────────────────────────────────────────────


class AnonymousIdentity:
    """Provider for requests without a session: nobody is signed in."""

    access_token: str | None = None

    def get_current_identity(self) -> Identity | None:
        return None

    def subscribe(self, listener: IdentityListener) -> Callable[[], None]:
        return lambda: None


ANONYMOUS = AnonymousIdentity()


class SessionIdentity:
    """One browser session, signed in until ``sign_out``."""

    def __init__(self, identity: Identity, access_token: str | None = None):
        self._identity: Identity | None = identity
        self.access_token = access_token
        self._listeners: list[IdentityListener] = []

    def get_current_identity(self) -> Identity | None:
        return self._identity

    def subscribe(self, listener: IdentityListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def sign_out(self) -> None:
        self._identity = None
        self.access_token = None
        for listener in list(self._listeners):
            listener(None)


class SessionStore:
    """In-memory map of session id → SessionIdentity."""

    def __init__(self):
        self._sessions: dict[str, SessionIdentity] = {}

    def create(self, identity: Identity, access_token: str | None = None) -> tuple[str, SessionIdentity]:
        session_id = secrets.token_urlsafe(32)
        session = SessionIdentity(identity, access_token)
        self._sessions[session_id] = session
        return session_id, session

    def get(self, session_id: str | None) -> SessionIdentity | None:
        if not session_id:
            return None
        return self._sessions.get(session_id)

    def end(self, session_id: str | None) -> bool:
        session = self._sessions.pop(session_id, None) if session_id else None
        if session is None:
            return False
        session.sign_out()
        return True


# ── GitHub OAuth ──────────────────────────────────────────────────────


class GitHubOAuth:
    """GitHub OAuth web flow: authorize redirect, code exchange, profile lookup."""

    def __init__(
        self,
        client_id: str = GITHUB_CLIENT_ID,
        client_secret: str = GITHUB_CLIENT_SECRET,
        scopes: str = OAUTH_SCOPES,
        redirect_uri: str = OAUTH_REDIRECT_URI,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.scopes = scopes
        self.redirect_uri = redirect_uri

    def _require_credentials(self) -> None:
        if not self.client_id or not self.client_secret:
            raise AuthError(
                "GitHub sign-in is not configured. "
                "Set GITHUB_CLIENT_ID and GITHUB_CLIENT_SECRET.",
                status_code=500,
            )

    def authorize_url(self, state: str) -> str:
        self._require_credentials()
        query = urlencode({
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "scope": self.scopes,
            "state": state,
        })
        return f"{GITHUB_OAUTH_AUTHORIZE_URL}?{query}"

    async def exchange_code(self, client: httpx.AsyncClient, code: str) -> str:
        """Trade an authorization code for an access token."""
        self._require_credentials()
        try:
            response = await client.post(
                GITHUB_OAUTH_TOKEN_URL,
                data={
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                    "code": code,
                    "redirect_uri": self.redirect_uri,
                },
                headers={"Accept": "application/json"},
                timeout=GITHUB_REQUEST_TIMEOUT,
            )
        except httpx.RequestError as exc:
            raise AuthError(f"Could not reach GitHub to sign in: {exc}", status_code=502)

        if response.status_code != 200:
            raise AuthError(
                f"GitHub sign-in failed with status {response.status_code}.",
                status_code=502,
            )

        data = response.json()
        token = data.get("access_token")
        if not token:
            # GitHub reports bad codes as 200 with an error field
            raise AuthError(
                data.get("error_description") or "GitHub did not return an access token.",
            )
        return token

    async def fetch_identity(self, client: httpx.AsyncClient, access_token: str) -> Identity:
        """Look up the profile behind ``access_token``."""
        try:
            response = await client.get(
                f"{GITHUB_API_BASE}/user",
                headers={
                    "Accept": "application/vnd.github.v3+json",
                    "Authorization": f"Bearer {access_token}",
                },
                timeout=GITHUB_REQUEST_TIMEOUT,
            )
        except httpx.RequestError as exc:
            raise AuthError(f"Could not reach GitHub for the profile: {exc}", status_code=502)

        if response.status_code != 200:
            raise AuthError(
                f"GitHub profile lookup failed with status {response.status_code}.",
            )

        data = response.json()
        return Identity(
            user_id=str(data["id"]),
            github_username=data.get("login"),
            avatar_url=data.get("avatar_url"),
        )

    async def sign_in(self, code: str) -> tuple[Identity, str]:
        """Complete the OAuth callback: returns the identity and its access token."""
        async with httpx.AsyncClient() as client:
            token = await self.exchange_code(client, code)
            identity = await self.fetch_identity(client, token)
        logger.info("Signed in as %s", identity.github_username)
        return identity, token
