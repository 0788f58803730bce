# comments in English; reST docstrings
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import urlencode

import requests

from idp.services._shared.errors import ExchangeFailed, ProfileFetchFailed
from idp.services._shared.ports.identity_provider import IdentityProvider
from idp.services.identity.dto import ExternalIdentity

log = logging.getLogger(__name__)

AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
TOKEN_URL = "https://oauth2.googleapis.com/token"
USERINFO_URL = "https://openidconnect.googleapis.com/v1/userinfo"
SCOPES = ("openid", "email", "profile")


@dataclass(slots=True)
class GoogleIdentityProvider(IdentityProvider):
    """
    Google OAuth 2.0 adapter over ``requests``.

    :param client_id: OAuth client id.
    :param client_secret: OAuth client secret.
    :param redirect_url: Callback URL registered with Google.
    :param timeout: ``(connect, read)`` seconds applied to every call.
    :param http: Optional session (shared connection pool).
    """

    client_id: str
    client_secret: str
    redirect_url: str
    timeout: tuple[float, float] = (5.0, 15.0)
    http: requests.Session = field(default_factory=requests.Session)

    def authorization_url(self, state: str) -> str:
        query = urlencode(
            {
                "client_id": self.client_id,
                "redirect_uri": self.redirect_url,
                "response_type": "code",
                "scope": " ".join(SCOPES),
                "state": state,
                "access_type": "online",
                "prompt": "select_account",
            }
        )
        return f"{AUTH_URL}?{query}"

    def exchange_code(self, code: str) -> str:
        if not code:
            raise ExchangeFailed("authorization code is missing")
        try:
            resp = self.http.post(
                TOKEN_URL,
                data={
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                    "code": code,
                    "grant_type": "authorization_code",
                    "redirect_uri": self.redirect_url,
                },
                headers={"Accept": "application/json"},
                timeout=self.timeout,
            )
        except requests.Timeout as exc:
            raise ExchangeFailed("token endpoint timed out") from exc
        except requests.RequestException as exc:
            raise ExchangeFailed(f"token endpoint unreachable: {exc.__class__.__name__}") from exc

        data = self._json(resp)
        if resp.status_code != 200 or "error" in data:
            reason = data.get("error_description") or data.get("error") or resp.status_code
            log.warning("google code exchange rejected", extra={"reason": str(reason)})
            raise ExchangeFailed(f"token exchange rejected: {reason}")

        access_token = data.get("access_token")
        if not isinstance(access_token, str) or not access_token:
            raise ExchangeFailed("token exchange did not return an access token")
        return access_token

    def fetch_profile(self, provider_token: str) -> ExternalIdentity:
        try:
            resp = self.http.get(
                USERINFO_URL,
                headers={"Authorization": f"Bearer {provider_token}"},
                timeout=self.timeout,
            )
        except requests.Timeout as exc:
            raise ProfileFetchFailed("userinfo endpoint timed out") from exc
        except requests.RequestException as exc:
            raise ProfileFetchFailed(
                f"userinfo endpoint unreachable: {exc.__class__.__name__}"
            ) from exc

        if resp.status_code != 200:
            raise ProfileFetchFailed(f"userinfo returned HTTP {resp.status_code}")
        data = self._json(resp)

        # OIDC userinfo uses ``sub``; the legacy v2 endpoint uses ``id``
        subject = data.get("sub") or data.get("id")
        email = data.get("email")
        if not subject or not email:
            raise ProfileFetchFailed("userinfo is missing subject or email")
        verified = data.get("email_verified", data.get("verified_email", False))
        return ExternalIdentity(
            subject_id=str(subject),
            email=str(email),
            email_verified=verified is True or str(verified).lower() == "true",
            name=str(data.get("name") or ""),
            avatar_url=data.get("picture") or None,
        )

    @staticmethod
    def _json(resp: requests.Response) -> dict[str, Any]:
        try:
            payload = resp.json()
        except ValueError:
            return {}
        return payload if isinstance(payload, dict) else {}
