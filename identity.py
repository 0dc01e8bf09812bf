"""
Identity resolution against the GitHub OAuth provider.

Flow for login:
1. POST the code to the token endpoint, get an access token back
2. GET the profile with that token
3. Return the Identity and the provider credential; the credential is the
   bearer the client presents from then on (no local sessions)

Every call is a single blocking round trip bounded by the httpx client's
timeout. Nothing here retries, and nothing here logs tokens, codes or
upstream bodies.
"""

import logging
from typing import Optional, Tuple

import httpx

from errors import (
    InvalidCodeError,
    InvalidHeaderFormatError,
    InvalidIdentityError,
    UpstreamAuthError,
    UpstreamProfileError,
)
from schemas import BearerCredential, Identity

logger = logging.getLogger(__name__)

GITHUB_TOKEN_URL = "https://github.com/login/oauth/access_token"
GITHUB_USER_URL = "https://api.github.com/user"


def parse_bearer_header(raw_header: Optional[str]) -> BearerCredential:
    """Accept exactly 'Bearer <token>' with a single whitespace-free token."""
    if not raw_header:
        raise InvalidHeaderFormatError()
    parts = raw_header.split(" ")
    if len(parts) != 2 or parts[0] != "Bearer":
        raise InvalidHeaderFormatError()
    token = parts[1]
    if not token or any(ch.isspace() for ch in token):
        raise InvalidHeaderFormatError()
    return BearerCredential(access_token=token)


class IdentityResolver:
    def __init__(
        self,
        client: httpx.Client,
        client_id: str,
        client_secret: str,
        token_url: str = GITHUB_TOKEN_URL,
        user_url: str = GITHUB_USER_URL,
    ):
        self._client = client
        self._client_id = client_id
        self._client_secret = client_secret
        self._token_url = token_url
        self._user_url = user_url

    def exchange_code(self, code: str) -> Tuple[Identity, BearerCredential]:
        credential = self._request_token(code)
        try:
            identity = self.resolve_identity(credential)
        except InvalidIdentityError as exc:
            raise InvalidCodeError() from exc
        except UpstreamProfileError as exc:
            raise UpstreamAuthError() from exc
        return identity, credential

    def validate_bearer_header(self, raw_header: Optional[str]) -> BearerCredential:
        return parse_bearer_header(raw_header)

    def resolve_identity(self, credential: BearerCredential) -> Identity:
        try:
            resp = self._client.get(
                self._user_url,
                headers={
                    "Authorization": f"Bearer {credential.access_token}",
                    "Accept": "application/vnd.github.v3+json",
                },
            )
        except httpx.HTTPError as exc:
            logger.warning("GitHub profile request failed: %s", type(exc).__name__)
            raise UpstreamProfileError() from exc

        # GitHub answers 401 for revoked or made-up tokens
        if resp.status_code in (401, 403):
            raise InvalidIdentityError()
        if resp.status_code != 200:
            logger.warning("GitHub profile fetch returned %s", resp.status_code)
            raise UpstreamProfileError()

        try:
            profile = resp.json()
        except ValueError as exc:
            raise UpstreamProfileError() from exc
        if not isinstance(profile, dict):
            raise UpstreamProfileError()

        login = profile.get("login")
        if not isinstance(login, str) or not login.strip():
            raise InvalidIdentityError()
        try:
            user_id = int(profile["id"])
        except (KeyError, TypeError, ValueError) as exc:
            raise UpstreamProfileError() from exc
        name = profile.get("name")
        if name is not None and not isinstance(name, str):
            raise UpstreamProfileError()

        return Identity(id=user_id, login=login, name=name or "")

    def _request_token(self, code: str) -> BearerCredential:
        try:
            resp = self._client.post(
                self._token_url,
                data={
                    "client_id": self._client_id,
                    "client_secret": self._client_secret,
                    "code": code,
                },
                headers={"Accept": "application/json"},
            )
        except httpx.HTTPError as exc:
            logger.warning("GitHub token exchange failed: %s", type(exc).__name__)
            raise UpstreamAuthError() from exc

        if resp.status_code != 200:
            logger.warning("GitHub token exchange returned %s", resp.status_code)
            raise UpstreamAuthError()
        try:
            token_data = resp.json()
        except ValueError as exc:
            raise UpstreamAuthError() from exc
        if not isinstance(token_data, dict):
            raise UpstreamAuthError()

        access_token = token_data.get("access_token")
        if not access_token:
            # GitHub reports bad or expired codes as a 200 with an "error" field
            if token_data.get("error"):
                logger.info("GitHub rejected the code: %s", token_data.get("error"))
                raise InvalidCodeError()
            raise UpstreamAuthError()
        token_type = token_data.get("token_type") or "bearer"
        scope = token_data.get("scope") or ""
        if not all(isinstance(v, str) for v in (access_token, token_type, scope)):
            raise UpstreamAuthError()

        return BearerCredential(access_token=access_token, token_type=token_type, scope=scope)
