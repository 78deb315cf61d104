"""
Session / identity adapter over the Supabase Auth (GoTrue) REST API.

One ``IdentityService`` holds the session of one browser session (see
``AuthoringShell``). Remote calls go through ``httpx``; the public API key is
sent as ``apikey`` and, when no user token applies, as the bearer token.

Every sign-in and every auth-state transition upserts the user's row in the
``profiles`` table. A failing profile write is logged and swallowed so it can
never fail the sign-in itself.

Public API
----------
IdentityService.sign_up(email, password)
IdentityService.sign_in(email, password)                   -> User
IdentityService.request_password_reset(email, redirect_to)
IdentityService.sign_in_with_oauth(provider, redirect_to)  -> str (authorize URL)
IdentityService.sign_out()
IdentityService.get_current_user()                         -> Optional[User]
IdentityService.get_session() / get_access_token()
IdentityService.refresh_session()                          -> AuthSession
IdentityService.update_password_using_recovery(token, pw)
IdentityService.handle_session_from_url(url)               -> Optional[AuthSession]
IdentityService.on_auth_state_change(callback)             -> unsubscribe()
"""
from __future__ import annotations

import enum
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional
from urllib.parse import urlencode

import httpx

from docugen.config import settings
from docugen.exceptions import AuthError, StoreError
from docugen.models.schemas import AuthSession, User
from docugen.services.profiles import ProfileStore
from docugen.utils.helpers import parse_url_fragment

logger = logging.getLogger(__name__)

AuthChangeCallback = Callable[[Optional[User]], Awaitable[None]]


class AuthEvent(str, enum.Enum):
    SIGNED_IN = "SIGNED_IN"
    SIGNED_OUT = "SIGNED_OUT"
    TOKEN_REFRESHED = "TOKEN_REFRESHED"
    USER_UPDATED = "USER_UPDATED"
    PASSWORD_RECOVERY = "PASSWORD_RECOVERY"


def map_provider_user(raw: Optional[Dict[str, Any]]) -> Optional[User]:
    """
    Normalize a provider user record into the application's ``User``.

    Display name falls back through metadata ``full_name`` → metadata
    ``name`` → email → ``"User"``.
    """
    if not raw or not raw.get("id"):
        return None
    metadata = raw.get("user_metadata") or {}
    email = raw.get("email") or ""
    name = metadata.get("full_name") or metadata.get("name") or email or "User"
    return User(id=raw["id"], name=name, email=email)


def _error_message(resp: httpx.Response) -> str:
    """Pull the human-readable message out of a GoTrue error body."""
    try:
        body = resp.json()
    except ValueError:
        return resp.text[:300] or f"HTTP {resp.status_code}"
    if isinstance(body, dict):
        for key in ("error_description", "msg", "message", "error"):
            if body.get(key):
                return str(body[key])
    return f"HTTP {resp.status_code}"


class IdentityService:
    """Auth operations plus the locally held session for one client."""

    def __init__(
        self,
        profiles: ProfileStore,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.profiles = profiles
        self.base_url = (settings.SUPABASE_URL if base_url is None else base_url).rstrip("/")
        self.api_key = settings.SUPABASE_ANON_KEY if api_key is None else api_key
        self.timeout = httpx.Timeout(float(settings.AUTH_TIMEOUT), connect=10.0)
        self._transport = transport
        self._session: Optional[AuthSession] = None
        self._listeners: List[AuthChangeCallback] = []

    # ------------------------------------------------------------------
    # Sign-up / sign-in
    # ------------------------------------------------------------------

    async def sign_up(self, email: str, password: str) -> Dict[str, Any]:
        """Register a new account; the provider may require e-mail confirmation."""
        return await self._request(
            "POST", "/signup", json={"email": email, "password": password}
        )

    async def sign_in(self, email: str, password: str) -> User:
        """Password sign-in. Any failure, including network errors, raises AuthError."""
        data = await self._request(
            "POST",
            "/token",
            params={"grant_type": "password"},
            json={"email": email, "password": password},
        )
        session = self._store_session(data)
        user = map_provider_user(session.user)
        if user is None:
            raise AuthError("Identity provider returned no user")

        logger.info("User %s signed in", user.id)
        await self._emit(AuthEvent.SIGNED_IN)
        return user

    def sign_in_with_oauth(
        self, provider: Optional[str] = None, redirect_to: Optional[str] = None
    ) -> str:
        """
        Build the provider authorize URL. The browser follows it; the
        provider later redirects back with tokens in the URL fragment.
        """
        self._require_configured()
        query = urlencode({
            "provider": provider or settings.OAUTH_PROVIDER,
            "redirect_to": redirect_to or settings.APP_URL,
        })
        return f"{self.base_url}/auth/v1/authorize?{query}"

    async def request_password_reset(
        self, email: str, redirect_to: Optional[str] = None
    ) -> None:
        await self._request(
            "POST",
            "/recover",
            params={"redirect_to": redirect_to or settings.password_reset_redirect()},
            json={"email": email},
        )
        logger.info("Password reset requested for %s", email)

    async def sign_out(self) -> None:
        """Clear the local session. A failing remote logout is only logged."""
        token = self.get_access_token()
        if token:
            try:
                await self._request("POST", "/logout", token=token)
            except AuthError as exc:
                logger.warning("Remote sign-out failed (session cleared locally): %s", exc)
        self._session = None
        await self._emit(AuthEvent.SIGNED_OUT)

    # ------------------------------------------------------------------
    # Session queries
    # ------------------------------------------------------------------

    def get_session(self) -> Optional[AuthSession]:
        return self._session

    def get_access_token(self) -> Optional[str]:
        return self._session.access_token if self._session else None

    async def get_current_user(self) -> Optional[User]:
        """Current user from the provider, enriched from the profile row when possible."""
        token = self.get_access_token()
        if not token:
            return None
        try:
            raw = await self._request("GET", "/user", token=token)
        except AuthError as exc:
            logger.warning("Could not load current user: %s", exc)
            return None
        user = map_provider_user(raw)
        if user is None:
            return None
        return await self._enrich_from_profile(user)

    async def refresh_session(self) -> AuthSession:
        if not self._session or not self._session.refresh_token:
            raise AuthError("No session to refresh")
        data = await self._request(
            "POST",
            "/token",
            params={"grant_type": "refresh_token"},
            json={"refresh_token": self._session.refresh_token},
        )
        session = self._store_session(data)
        await self._emit(AuthEvent.TOKEN_REFRESHED)
        return session

    # ------------------------------------------------------------------
    # Redirect flows
    # ------------------------------------------------------------------

    async def handle_session_from_url(self, url: str) -> Optional[AuthSession]:
        """
        Adopt the session the provider deposited in a redirect URL fragment.

        Must run once at startup, before other session queries. Returns None
        when the URL carries no token or the token cannot be resolved.
        """
        params = parse_url_fragment(url)
        access_token = params.get("access_token")
        if not access_token:
            return None
        try:
            raw_user = await self._request("GET", "/user", token=access_token)
        except AuthError as exc:
            logger.warning("Session from URL rejected: %s", exc)
            return None

        expires_in = params.get("expires_in")
        self._session = AuthSession(
            access_token=access_token,
            refresh_token=params.get("refresh_token"),
            expires_in=int(expires_in) if expires_in and expires_in.isdigit() else None,
            token_type=params.get("token_type") or "bearer",
            user=raw_user,
        )
        event = (
            AuthEvent.PASSWORD_RECOVERY
            if params.get("type") == "recovery"
            else AuthEvent.SIGNED_IN
        )
        await self._emit(event)
        return self._session

    async def update_password_using_recovery(self, access_token: str, new_password: str) -> None:
        """Set a new password with the short-lived recovery token from the reset link."""
        raw_user = await self._request(
            "PUT", "/user", token=access_token, json={"password": new_password}
        )
        if self._session and self._session.access_token == access_token and raw_user:
            self._session = self._session.model_copy(update={"user": raw_user})
        logger.info("Password updated via recovery token")
        await self._emit(AuthEvent.USER_UPDATED)

    # ------------------------------------------------------------------
    # Auth-state observers
    # ------------------------------------------------------------------

    def on_auth_state_change(self, callback: AuthChangeCallback) -> Callable[[], None]:
        """
        Register *callback* for every auth event. Returns the disposer that
        removes it; the owner calls it on teardown.
        """
        self._listeners.append(callback)

        def unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    async def _emit(self, event: AuthEvent) -> None:
        logger.debug("Auth event %s", event.value)
        user = map_provider_user(self._session.user) if self._session else None
        if user is not None:
            await self._upsert_profile_quietly(user)
        if not self._listeners:
            return
        if user is not None:
            user = await self._enrich_from_profile(user)
        for callback in list(self._listeners):
            await callback(user)

    # ------------------------------------------------------------------
    # Profile side effects
    # ------------------------------------------------------------------

    async def _upsert_profile_quietly(self, user: User) -> None:
        try:
            await self.profiles.upsert_profile(user)
        except StoreError as exc:
            logger.warning("Failed to upsert profile for %s: %s", user.id, exc)

    async def _enrich_from_profile(self, user: User) -> User:
        try:
            profile = await self.profiles.get_profile(user.id)
        except StoreError as exc:
            logger.warning("Failed to load profile for %s: %s", user.id, exc)
            return user
        if profile is None:
            return user
        return user.model_copy(update={
            "name": profile.full_name or user.name,
            "email": profile.email or user.email,
        })

    # ------------------------------------------------------------------
    # HTTP plumbing
    # ------------------------------------------------------------------

    def _require_configured(self) -> None:
        if not self.base_url or not self.api_key:
            raise AuthError("Identity provider is not configured")

    def _store_session(self, data: Dict[str, Any]) -> AuthSession:
        if not data.get("access_token"):
            raise AuthError("Identity provider returned no session")
        self._session = AuthSession.model_validate(data)
        return self._session

    async def _request(
        self,
        method: str,
        path: str,
        token: Optional[str] = None,
        params: Optional[Dict[str, str]] = None,
        json: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Call ``/auth/v1{path}`` and return the decoded JSON body.

        Non-2xx responses and transport errors both raise AuthError; the
        caller cannot tell a bad password from an unreachable provider.
        """
        self._require_configured()
        headers = {
            "apikey": self.api_key,
            "Authorization": f"Bearer {token or self.api_key}",
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await client.request(
                    method,
                    f"{self.base_url}/auth/v1{path}",
                    headers=headers,
                    params=params,
                    json=json,
                )
        except httpx.HTTPError as exc:
            logger.error("Identity provider unreachable (%s %s): %s", method, path, exc)
            raise AuthError(f"Identity provider unreachable: {exc}") from exc

        if resp.status_code >= 400:
            message = _error_message(resp)
            logger.warning("Identity provider rejected %s %s: %s", method, path, message)
            raise AuthError(message)

        if not resp.content:
            return {}
        try:
            body = resp.json()
        except ValueError as exc:
            raise AuthError("Identity provider returned invalid JSON") from exc
        return body if isinstance(body, dict) else {}
