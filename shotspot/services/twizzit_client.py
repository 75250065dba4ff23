"""
HTTP client for the Twizzit federation API.

Authentication is a form-encoded POST to /v2/api/authenticate. The returned
token is reused until it is within five minutes of expiring; a 401 on any
other call clears the token, re-authenticates and retries that call once.
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

import httpx

from shotspot.utils.constants import (
    TWIZZIT_DEFAULT_API_ENDPOINT,
    TWIZZIT_TOKEN_DEFAULT_TTL_SECONDS,
    TWIZZIT_TOKEN_REFRESH_MARGIN_SECONDS,
)
from shotspot.utils.datetime_utils import utcnow, parse_iso_datetime

logger = logging.getLogger(__name__)

AUTHENTICATE_PATH = "/v2/api/authenticate"


class TwizzitAuthError(Exception):
    """Credentials were rejected or authentication failed."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class TwizzitRateLimitError(Exception):
    """The Twizzit API call quota is exhausted (HTTP 429)."""


class TwizzitApiError(Exception):
    """Any other non-success response or transport failure."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


def _as_list(payload: Any) -> List[Dict]:
    return payload if isinstance(payload, list) else []


class TwizzitClient:
    def __init__(
        self,
        username: str,
        password: str,
        api_endpoint: Optional[str] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not username:
            raise ValueError("Twizzit API username is required")
        if not password:
            raise ValueError("Twizzit API password is required")
        self.api_endpoint = (api_endpoint or TWIZZIT_DEFAULT_API_ENDPOINT).rstrip("/")
        self.username = username
        self.password = password
        self.access_token: Optional[str] = None
        self.token_expires_at: Optional[datetime] = None
        self._client = httpx.AsyncClient(
            base_url=self.api_endpoint,
            timeout=timeout,
            headers={"Accept": "application/json"},
            transport=transport,
        )

    async def __aenter__(self) -> "TwizzitClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    def token_is_fresh(self, now: Optional[datetime] = None) -> bool:
        if not self.access_token or self.token_expires_at is None:
            return False
        now = now or utcnow()
        return self.token_expires_at - now > timedelta(seconds=TWIZZIT_TOKEN_REFRESH_MARGIN_SECONDS)

    async def authenticate(self) -> str:
        """
        Obtain a new access token.

        Raises:
            TwizzitAuthError: Credentials rejected or no token returned
            TwizzitRateLimitError: Monthly call limit reached
        """
        try:
            response = await self._client.post(
                AUTHENTICATE_PATH,
                data={"username": self.username, "password": self.password},
            )
        except httpx.HTTPError as e:
            raise TwizzitAuthError(f"Twizzit authentication request failed: {e}")

        if response.status_code == 401:
            raise TwizzitAuthError("Invalid Twizzit API credentials", 401)
        if response.status_code == 429:
            raise TwizzitRateLimitError("Twizzit API call limit exceeded")
        if response.is_error:
            raise TwizzitAuthError(f"Authentication failed: HTTP {response.status_code}", response.status_code)

        data = response.json()
        token = data.get("token")
        if not token:
            raise TwizzitAuthError("Authentication response missing token")

        now = utcnow()
        valid_till = parse_iso_datetime(data["valid-till"]) if data.get("valid-till") else None
        if valid_till is None:
            expires_in = int(data.get("expires_in") or TWIZZIT_TOKEN_DEFAULT_TTL_SECONDS)
            valid_till = now + timedelta(seconds=expires_in)

        self.access_token = token
        self.token_expires_at = valid_till
        logger.debug(f"Authenticated with Twizzit at {self.api_endpoint}")
        return token

    async def ensure_authenticated(self) -> None:
        if not self.token_is_fresh():
            await self.authenticate()

    async def _get(self, path: str, params: Optional[Dict] = None, retried: bool = False) -> Any:
        await self.ensure_authenticated()
        try:
            response = await self._client.get(
                path, params=params, headers={"Authorization": f"Bearer {self.access_token}"}
            )
        except httpx.HTTPError as e:
            raise TwizzitApiError(f"Request to {path} failed: {e}")

        if response.status_code == 401 and not retried:
            self.access_token = None
            self.token_expires_at = None
            return await self._get(path, params, retried=True)
        if response.status_code == 401:
            raise TwizzitAuthError("Twizzit rejected the access token", 401)
        if response.status_code == 429:
            raise TwizzitRateLimitError("Twizzit API call limit exceeded")
        if response.is_error:
            raise TwizzitApiError(f"Request to {path} failed: HTTP {response.status_code}", response.status_code)
        return response.json()

    async def verify_connection(self) -> bool:
        """Authenticate and fetch organizations. False on any API failure."""
        try:
            await self.ensure_authenticated()
            await self.get_organizations()
            return True
        except (TwizzitAuthError, TwizzitRateLimitError, TwizzitApiError) as e:
            logger.warning(f"Twizzit connection verification failed: {e}")
            return False

    async def get_organizations(self) -> List[Dict]:
        return _as_list(await self._get("/v2/api/organizations"))

    async def get_groups(self, **filters) -> List[Dict]:
        return _as_list(await self._get("/v2/api/groups", params=filters or None))

    async def get_group_contacts(self, group_id: str, **filters) -> List[Dict]:
        if not group_id:
            raise ValueError("Group ID is required")
        params = {"group_id": group_id, **filters}
        return _as_list(await self._get("/v2/api/group-contacts", params=params))

    async def get_seasons(self) -> List[Dict]:
        return _as_list(await self._get("/v2/api/seasons"))
