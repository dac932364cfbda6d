"""
Authentication middleware and dependencies.

Every route except the liveness check requires ``Authorization: Bearer <token>``.
Authentication runs as middleware so it happens before FastAPI parses or
validates the request body: an unauthenticated caller always gets 401.

Routes read the caller through the ``get_current_principal`` dependency.
"""
import logging

from fastapi import Request
from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware

from core import identity
from core.config import settings
from core.exceptions import UnauthorizedError, UpstreamServiceError, render_api_exception
from core.identity import IdentityServiceUnavailable, Principal
from core.security_headers import DOCS_PATHS

logger = logging.getLogger(__name__)

PUBLIC_PATHS = ("/health",)


def is_public_path(path: str) -> bool:
    if path in PUBLIC_PATHS:
        return True
    return (settings.DEBUG or settings.EXPOSE_API_DOCS) and path in DOCS_PATHS


def extract_bearer_token(header: str) -> str:
    """Return the token from ``Bearer <token>``, or an empty string."""
    scheme, _, token = (header or "").partition(" ")
    if scheme != "Bearer":
        return ""
    return token.strip()


class AuthMiddleware(BaseHTTPMiddleware):
    """Resolve the bearer token to a Principal on ``request.state.principal``."""

    async def dispatch(self, request: Request, call_next):
        if is_public_path(request.url.path):
            return await call_next(request)

        token = extract_bearer_token(request.headers.get("Authorization", ""))
        if not token:
            return render_api_exception(UnauthorizedError("Missing or invalid authorization header"))

        try:
            verifier = identity.get_identity_verifier()
            principal = await run_in_threadpool(verifier.verify, token)
        except IdentityServiceUnavailable as e:
            logger.error(f"Auth middleware error: {e}")
            return render_api_exception(UpstreamServiceError("Authentication failed"))

        if principal is None:
            return render_api_exception(UnauthorizedError("Invalid or expired token"))

        request.state.principal = principal
        logger.info(
            "Authenticated user",
            extra={"extra_fields": {"user_id": principal.id, "path": request.url.path}},
        )
        return await call_next(request)


def get_current_principal(request: Request) -> Principal:
    """
    Dependency: the authenticated caller.

    Raises 401 if a route is reached without the middleware having run.
    """
    principal = getattr(request.state, "principal", None)
    if principal is None:
        raise UnauthorizedError("Not authenticated")
    return principal
