"""
Google OAuth 2.0 token endpoint calls.

Covers the parts of the authorization code flow this package needs:
1. Build the authorization URL (consent redirect itself is the caller's job)
2. Exchange the authorization code for access + refresh tokens
3. Look up the account e-mail with the access token
4. Refresh an access token with the refresh token
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional
from urllib.parse import urlencode

import httpx

from plansync.config import Settings, get_settings
from plansync.models.base import utcnow

logger = logging.getLogger(__name__)

GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_USERINFO_URL = "https://www.googleapis.com/oauth2/v2/userinfo"

OAUTH_TIMEOUT = 15.0  # seconds


class OAuthError(Exception):
    """
    A call to the OAuth endpoints failed.

    `status` is the HTTP status when the provider answered, None for
    network-level failures.
    """

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        error: Optional[str] = None,
        original_error: Optional[BaseException] = None,
    ):
        super().__init__(message)
        self.message = message
        self.status = status
        self.error = error
        self.original_error = original_error

    @property
    def is_rejection(self) -> bool:
        """The provider refused the grant (bad, expired or revoked token)."""
        return self.status is not None and 400 <= self.status < 500 and self.status != 429


@dataclass
class OAuthTokens:
    """OAuth token response from Google."""

    access_token: str
    refresh_token: Optional[str]
    expires_in: Optional[int]
    token_type: str
    scope: str

    @property
    def expiry(self) -> Optional[datetime]:
        """Token expiry time, None when the provider sent no lifetime."""
        if self.expires_in is None:
            return None
        return utcnow() + timedelta(seconds=self.expires_in)


@dataclass
class GoogleUserInfo:
    """User info from Google OAuth."""

    email: str
    name: Optional[str] = None
    picture: Optional[str] = None


class GoogleOAuthFlow:
    """
    Manages the Google OAuth 2.0 token calls.

    Usage:
        flow = GoogleOAuthFlow()
        auth_url = flow.get_authorization_url(state="random_state")
        tokens = flow.exchange_code(code)
        user_info = flow.get_user_info(tokens.access_token)
        new_tokens = flow.refresh_token(tokens.refresh_token)
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        http_client: Optional[httpx.Client] = None,
    ):
        settings = settings or get_settings()
        self.client_id = settings.google_oauth_client_id
        self.client_secret = settings.google_oauth_client_secret
        self.redirect_uri = settings.google_oauth_redirect_uri
        self.scopes = settings.google_scope_list
        self._http_client = http_client

        if not self.client_id or not self.client_secret:
            logger.warning(
                "Google OAuth not configured. Set GOOGLE_OAUTH_CLIENT_ID and "
                "GOOGLE_OAUTH_CLIENT_SECRET in environment."
            )

    def get_authorization_url(self, state: str) -> str:
        """
        Generate the Google OAuth authorization URL.

        Args:
            state: Random string to prevent CSRF attacks
        """
        params = {
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "response_type": "code",
            "scope": " ".join(self.scopes),
            "access_type": "offline",  # Get refresh token
            "prompt": "consent",  # Always show consent screen (ensures refresh token)
            "state": state,
        }
        return f"{GOOGLE_AUTH_URL}?{urlencode(params)}"

    def exchange_code(self, code: str) -> OAuthTokens:
        """
        Exchange authorization code for access and refresh tokens.

        Raises:
            OAuthError: If the exchange fails or returns no access token
        """
        token_data = self._post_token({
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "code": code,
            "grant_type": "authorization_code",
            "redirect_uri": self.redirect_uri,
        })

        logger.info(
            f"Exchanged authorization code (refresh token: {'refresh_token' in token_data}, "
            f"scope: {token_data.get('scope')})"
        )
        return _tokens_from_response(token_data)

    def refresh_token(self, refresh_token: str) -> OAuthTokens:
        """
        Refresh an expired access token.

        Google normally keeps the refresh token; a rotated one is returned
        when present.

        Raises:
            OAuthError: If the provider rejects the refresh token or is unreachable
        """
        token_data = self._post_token({
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "refresh_token": refresh_token,
            "grant_type": "refresh_token",
        })

        logger.info("Successfully refreshed access token")
        tokens = _tokens_from_response(token_data)
        if not tokens.refresh_token:
            tokens.refresh_token = refresh_token
        return tokens

    def get_user_info(self, access_token: str) -> GoogleUserInfo:
        """
        Get user info from Google using access token.

        Raises:
            OAuthError: If request fails
        """
        headers = {"Authorization": f"Bearer {access_token}"}
        user_data = self._request("GET", GOOGLE_USERINFO_URL, headers=headers)

        return GoogleUserInfo(
            email=user_data["email"],
            name=user_data.get("name"),
            picture=user_data.get("picture"),
        )

    def _post_token(self, data: dict) -> dict:
        return self._request("POST", GOOGLE_TOKEN_URL, data=data)

    def _request(self, method: str, url: str, **kwargs) -> dict:
        try:
            if self._http_client is not None:
                response = self._http_client.request(method, url, **kwargs)
            else:
                with httpx.Client(timeout=OAUTH_TIMEOUT) as client:
                    response = client.request(method, url, **kwargs)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            error = _error_code(e.response)
            raise OAuthError(
                f"OAuth request to {url} failed ({e.response.status_code}): {error or 'unknown error'}",
                status=e.response.status_code,
                error=error,
                original_error=e,
            )
        except httpx.RequestError as e:
            raise OAuthError(
                f"OAuth request to {url} failed: {e}",
                original_error=e,
            )


def _error_code(response: httpx.Response) -> Optional[str]:
    """Extract the OAuth `error` field (e.g. invalid_grant) if present."""
    try:
        body = response.json()
    except ValueError:
        return None
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, str):
            return error
        if isinstance(error, dict):
            return error.get("status") or error.get("message")
    return None


def _tokens_from_response(token_data: dict) -> OAuthTokens:
    access_token = token_data.get("access_token")
    if not access_token:
        raise OAuthError("No access token received from Google")

    return OAuthTokens(
        access_token=access_token,
        refresh_token=token_data.get("refresh_token"),
        expires_in=token_data.get("expires_in"),
        token_type=token_data.get("token_type", "Bearer"),
        scope=token_data.get("scope", ""),
    )
