"""
Shared OAuth credential and token state.

There is exactly one TokenStore per process. The transport reads the
access token on every request; the OAuth callback listener and the token
refresher write it. Writers take exclusive access, readers share it.

State machine:

    UNCONFIGURED --set_credentials--> CONFIGURED --configure--> AWAITING_CODE
    AWAITING_CODE --authorize(code)--> AUTHORIZED_FRESH
    AUTHORIZED_FRESH --(time passes)--> AUTHORIZED_STALE --refresh()--> AUTHORIZED_FRESH
    any --reset()--> UNCONFIGURED

Token exchange talks directly to the accounts service with requests:

    POST https://accounts.spotify.com/api/token
        grant_type=authorization_code | refresh_token

Persistence:
    The token is written as JSON to the cache file (owner read/write only)
    after every successful write. On startup a parseable cache file puts
    the store into an AUTHORIZED state; a missing or corrupt file simply
    means "no token".
"""

import json
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Iterator
from urllib.parse import urlencode

import requests

from spot_browser.core.exceptions import AuthError, ConfigError
from spot_browser.core.logger import get_logger
from spot_browser.spotify.scopes import BROWSER_SCOPES, Scope

logger = get_logger(__name__)


AUTHORIZE_URL = "https://accounts.spotify.com/authorize"
TOKEN_URL = "https://accounts.spotify.com/api/token"
REQUEST_TIMEOUT = 30

# A token this close to expiry is reported as stale
EXPIRY_MARGIN_SECONDS = 60


class AuthState(Enum):
    UNCONFIGURED = "unconfigured"
    CONFIGURED = "configured"
    AWAITING_CODE = "awaiting_code"
    AUTHORIZED_FRESH = "authorized_fresh"
    AUTHORIZED_STALE = "authorized_stale"

    @property
    def is_authorized(self) -> bool:
        return self in (AuthState.AUTHORIZED_FRESH, AuthState.AUTHORIZED_STALE)


@dataclass(frozen=True)
class Token:
    """
    OAuth token as persisted in the cache file.

    Attributes:
        access: Bearer token sent with every API request.
        refresh: Refresh token, None if the grant did not include one.
        expires_at: Unix timestamp after which access is invalid.
        scopes: Granted scopes.
    """
    access: str
    refresh: str | None
    expires_at: float
    scopes: frozenset[str] = field(default_factory=frozenset)

    def is_expired(self, now: float | None = None, margin: float = EXPIRY_MARGIN_SECONDS) -> bool:
        if now is None:
            now = time.time()
        return now >= self.expires_at - margin

    @classmethod
    def from_token_response(
        cls,
        data: dict[str, Any],
        now: float,
        previous_refresh: str | None = None
    ) -> "Token":
        """
        Build a token from the accounts service response.

        The refresh grant may omit refresh_token, in which case the
        previous one stays valid.
        """
        return cls(
            access=data["access_token"],
            refresh=data.get("refresh_token") or previous_refresh,
            expires_at=now + int(data.get("expires_in", 3600)),
            scopes=Scope.parse(data.get("scope")),
        )

    def to_json(self) -> dict[str, Any]:
        return {
            "access": self.access,
            "refresh": self.refresh,
            "expires_at": self.expires_at,
            "scopes": sorted(self.scopes),
        }

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> "Token":
        access = data["access"]
        if not isinstance(access, str) or not access:
            raise ValueError("access token must be a non-empty string")
        refresh = data.get("refresh")
        if refresh is not None and not isinstance(refresh, str):
            raise ValueError("refresh token must be a string")
        return cls(
            access=access,
            refresh=refresh,
            expires_at=float(data["expires_at"]),
            scopes=Scope.parse(data.get("scopes")),
        )


class ReadWriteLock:
    """
    Many concurrent readers or one writer.

    Writers are preferred: once a writer is waiting, new readers queue
    behind it so a steady stream of transport reads cannot starve a
    token refresh.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            self._writers_waiting += 1
            while self._writer or self._readers:
                self._cond.wait()
            self._writers_waiting -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


class TokenStore:
    """
    Process-wide OAuth credentials and token.

    Args:
        cache_file: JSON file the token is persisted to.
        scopes: Scopes requested in the consent URL.
        http_post: Callable with the requests.post signature, used for
                   the token endpoint.
        clock: Returns the current unix time.
    """

    def __init__(
        self,
        cache_file: Path | None,
        scopes: tuple[Scope, ...] = BROWSER_SCOPES,
        http_post: Callable[..., requests.Response] = requests.post,
        clock: Callable[[], float] = time.time
    ) -> None:
        self._cache_file = cache_file
        self._scopes = scopes
        self._http_post = http_post
        self._clock = clock
        self._lock = ReadWriteLock()

        self._client_id = ""
        self._client_secret = ""
        self._redirect_uri: str | None = None
        self._awaiting_code = False
        self._token: Token | None = self._load_cache()

    # -- readers -------------------------------------------------------

    def read_access(self) -> str | None:
        """Current access token or None. Never blocks unless a writer is active."""
        with self._lock.read():
            return self._token.access if self._token else None

    @property
    def token(self) -> Token | None:
        with self._lock.read():
            return self._token

    @property
    def redirect_uri(self) -> str | None:
        with self._lock.read():
            return self._redirect_uri

    @property
    def state(self) -> AuthState:
        with self._lock.read():
            if self._awaiting_code:
                return AuthState.AWAITING_CODE
            if self._token is not None:
                if self._token.is_expired(self._clock()):
                    return AuthState.AUTHORIZED_STALE
                return AuthState.AUTHORIZED_FRESH
            if self._client_id and self._client_secret:
                return AuthState.CONFIGURED
            return AuthState.UNCONFIGURED

    # -- writers -------------------------------------------------------

    def set_credentials(self, client_id: str, client_secret: str) -> None:
        """Install client credentials without starting an authorization."""
        client_id = (client_id or "").strip()
        client_secret = (client_secret or "").strip()
        if not client_id or not client_secret:
            raise ConfigError(
                "Both client id and client secret are required",
                details={"client_id_set": bool(client_id), "client_secret_set": bool(client_secret)}
            )
        with self._lock.write():
            self._client_id = client_id
            self._client_secret = client_secret

    def set_redirect_uri(self, url: str) -> None:
        """Called by the callback listener once it knows its bound port."""
        with self._lock.write():
            self._redirect_uri = url
        logger.debug(f"Redirect URI set to {url}")

    def configure(self, client_id: str, client_secret: str) -> str:
        """
        Install credentials and produce the user-facing consent URL.

        Returns:
            The authorize URL the user has to open in a browser.

        Raises:
            ConfigError: If a credential is empty or no redirect URI is known
                         yet (the listener has not bound a port).
        """
        self.set_credentials(client_id, client_secret)
        with self._lock.write():
            if not self._redirect_uri:
                raise ConfigError(
                    "No redirect URI: the OAuth callback listener is not running",
                )
            query = urlencode({
                "client_id": self._client_id,
                "response_type": "code",
                "redirect_uri": self._redirect_uri,
                "scope": Scope.stringify(self._scopes),
                "show_dialog": "false",
            })
            self._awaiting_code = True
        return f"{AUTHORIZE_URL}?{query}"

    def authorize(self, code: str) -> None:
        """
        Exchange an authorization code for a token.

        Raises:
            AuthError: If credentials/redirect URI are missing or the
                       accounts service rejects the code.
        """
        if not code:
            raise AuthError("Empty authorization code")

        with self._lock.read():
            client_id, client_secret = self._client_id, self._client_secret
            redirect_uri = self._redirect_uri
        if not client_id or not client_secret or not redirect_uri:
            raise AuthError(
                "Cannot exchange authorization code: client is not configured",
                details={"has_credentials": bool(client_id and client_secret), "redirect_uri": redirect_uri}
            )

        now = self._clock()
        data = self._request_token(
            {
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": redirect_uri,
            },
            client_id,
            client_secret,
        )
        token = _parse_token(data, now, grant_type="authorization_code")

        with self._lock.write():
            self._token = token
            self._awaiting_code = False
        self._save_cache(token)
        logger.info("Authorization successful")

    def refresh(self) -> None:
        """
        Obtain a new access token using the stored refresh token.

        Raises:
            AuthError: No token, no refresh token, no credentials, or the
                       accounts service rejected the refresh.
        """
        with self._lock.read():
            token = self._token
            client_id, client_secret = self._client_id, self._client_secret

        if token is None or not token.refresh:
            raise AuthError("No refresh token available, please log in again")
        if not client_id or not client_secret:
            raise AuthError("Cannot refresh token: client id/secret are not set")

        now = self._clock()
        data = self._request_token(
            {"grant_type": "refresh_token", "refresh_token": token.refresh},
            client_id,
            client_secret,
        )
        new_token = _parse_token(data, now, grant_type="refresh_token", previous_refresh=token.refresh)

        with self._lock.write():
            self._token = new_token
        self._save_cache(new_token)
        logger.debug("Access token refreshed")

    def reset(self) -> None:
        """Forget credentials and token, and remove the cache file."""
        with self._lock.write():
            self._token = None
            self._client_id = ""
            self._client_secret = ""
            self._awaiting_code = False
        if self._cache_file is not None:
            try:
                self._cache_file.unlink(missing_ok=True)
            except OSError as e:
                logger.warning(f"Failed to remove token cache {self._cache_file}: {e}")

    # -- internals -----------------------------------------------------

    def _request_token(self, payload: dict[str, str], client_id: str, client_secret: str) -> dict[str, Any]:
        try:
            response = self._http_post(
                TOKEN_URL,
                data=payload,
                auth=(client_id, client_secret),
                headers={"Content-Type": "application/x-www-form-urlencoded"},
                timeout=REQUEST_TIMEOUT,
            )
        except requests.exceptions.RequestException as e:
            raise AuthError(
                f"Token request failed: {e}",
                details={"grant_type": payload["grant_type"], "original_error": str(e)}
            ) from e

        if response.status_code != 200:
            description = _error_description(response)
            raise AuthError(
                f"Token request rejected: {description}",
                details={"grant_type": payload["grant_type"], "http_status": response.status_code}
            )

        try:
            data = response.json()
            if not isinstance(data, dict) or not data.get("access_token"):
                raise ValueError("missing access_token")
        except ValueError as e:
            raise AuthError(
                f"Malformed token response: {e}",
                details={"grant_type": payload["grant_type"]}
            ) from e
        return data

    def _load_cache(self) -> Token | None:
        if self._cache_file is None or not self._cache_file.exists():
            return None
        try:
            with open(self._cache_file, "r", encoding="utf-8") as f:
                token = Token.from_json(json.load(f))
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.warning(f"Ignoring unreadable token cache {self._cache_file}: {e}")
            return None
        logger.debug(f"Loaded cached token from {self._cache_file}")
        return token

    def _save_cache(self, token: Token) -> None:
        if self._cache_file is None:
            return
        try:
            self._cache_file.parent.mkdir(parents=True, exist_ok=True)
            with open(self._cache_file, "w", encoding="utf-8") as f:
                json.dump(token.to_json(), f, indent=2)
            try:
                self._cache_file.chmod(0o600)
            except OSError:
                pass
        except OSError as e:
            logger.warning(f"Failed to save token cache {self._cache_file}: {e}")


def _parse_token(
    data: dict[str, Any],
    now: float,
    grant_type: str,
    previous_refresh: str | None = None
) -> Token:
    try:
        return Token.from_token_response(data, now, previous_refresh=previous_refresh)
    except (KeyError, TypeError, ValueError) as e:
        raise AuthError(
            f"Malformed token response: {e}",
            details={"grant_type": grant_type}
        ) from e


def _error_description(response: requests.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return f"HTTP {response.status_code}"
    if isinstance(body, dict):
        return body.get("error_description") or body.get("error") or f"HTTP {response.status_code}"
    return f"HTTP {response.status_code}"
