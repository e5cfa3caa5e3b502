"""
Federated identity provider (mocked).

The real provider would exchange an authorization code for an access token
and fetch the user's profile. The mock derives a stable subject from the
code, so the same code always maps to the same local account.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from urllib.parse import urlencode

from cwhub.config import get_settings
from cwhub.errors import Invalid


@dataclass(frozen=True)
class FederatedIdentity:
    """Profile returned by the identity provider."""

    subject: str
    display_name: str


class MockIdentityProvider:
    """Stand-in for the external OAuth-style identity provider."""

    def __init__(self, authorize_url: str, client_id: str, redirect_uri: str) -> None:
        self.authorize_endpoint = authorize_url
        self.client_id = client_id
        self.redirect_uri = redirect_uri

    def authorize_url(self, state: str) -> str:
        """URL the browser is sent to (or encoded in a QR code) to sign in."""
        query = urlencode(
            {
                "appid": self.client_id,
                "redirect_uri": self.redirect_uri,
                "response_type": "code",
                "scope": "snsapi_login",
                "state": state,
            }
        )
        return f"{self.authorize_endpoint}?{query}"

    async def exchange_code(self, code: str) -> FederatedIdentity:
        """Resolve an authorization code to the provider's user profile."""
        code = code.strip()
        if not code:
            msg = "Missing authorization code"
            raise Invalid(msg)
        digest = hashlib.sha256(code.encode()).hexdigest()[:24]
        return FederatedIdentity(subject=f"mock_{digest}", display_name=f"member_{digest[:6]}")


def get_identity_provider() -> MockIdentityProvider:
    """Provider configured from settings (FastAPI dependency, overridable in tests)."""
    settings = get_settings()
    return MockIdentityProvider(
        authorize_url=settings.federation_authorize_url,
        client_id=settings.federation_client_id,
        redirect_uri=f"{settings.public_base_url}/api/auth/federated/callback",
    )
