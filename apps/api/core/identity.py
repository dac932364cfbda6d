"""
Bearer-token verification against Supabase Auth.

The relay never issues or decodes tokens itself. Every request's token is
sent to ``GET {SUPABASE_URL}/auth/v1/user``; a 200 reply with a user id
resolves to a Principal. Nothing is cached between requests.
"""
import logging
from dataclasses import dataclass
from typing import Optional

import requests

from core.config import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Principal:
    """The authenticated caller."""
    id: str
    email: Optional[str] = None


class IdentityServiceUnavailable(Exception):
    """The identity service could not be reached or is not configured."""


class SupabaseIdentityVerifier:
    def __init__(
        self,
        base_url: str,
        service_key: str,
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ):
        self.user_url = f"{base_url.rstrip('/')}/auth/v1/user"
        self.service_key = service_key
        self.timeout = timeout
        self.session = session or requests.Session()

    def verify(self, token: str) -> Optional[Principal]:
        """
        Resolve a bearer token to a Principal.

        Returns None when the identity service rejects the token (any non-200
        reply). Raises IdentityServiceUnavailable on transport failures.
        """
        try:
            response = self.session.get(
                self.user_url,
                headers={
                    "apikey": self.service_key,
                    "Authorization": f"Bearer {token}",
                },
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise IdentityServiceUnavailable(f"Identity service request failed: {e}") from e

        if response.status_code != 200:
            logger.warning(f"Auth failed: identity service replied {response.status_code}")
            return None

        try:
            user = response.json()
        except ValueError:
            logger.warning("Auth failed: identity service returned a non-JSON body")
            return None

        user_id = user.get("id") if isinstance(user, dict) else None
        if not user_id:
            logger.warning("Auth failed: no user found")
            return None

        return Principal(id=str(user_id), email=user.get("email"))


_verifier: Optional[SupabaseIdentityVerifier] = None


def get_identity_verifier() -> SupabaseIdentityVerifier:
    """Process-wide verifier built from settings."""
    global _verifier

    if _verifier is not None:
        return _verifier

    if not settings.SUPABASE_URL or not settings.SUPABASE_SERVICE_ROLE_KEY:
        raise IdentityServiceUnavailable(
            "Missing SUPABASE_URL or SUPABASE_SERVICE_ROLE_KEY environment variables"
        )

    _verifier = SupabaseIdentityVerifier(
        settings.SUPABASE_URL,
        settings.SUPABASE_SERVICE_ROLE_KEY,
        timeout=settings.IDENTITY_TIMEOUT_SECONDS,
    )
    return _verifier
