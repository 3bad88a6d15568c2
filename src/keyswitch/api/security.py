# API Security - Session token for the local backend
#
# A random token is generated when the app is built. The UI shell fetches
# it once from GET /api/session and sends it in X-Session-Token on every
# other call, so other local processes cannot read decrypted keys
# through the API without it.

import secrets
from typing import Optional

from fastapi import Header, HTTPException, Request, status


def new_session_token() -> str:
    """Generate a 256-bit URL-safe session token."""
    return secrets.token_urlsafe(32)


async def verify_session_token(
    request: Request,
    x_session_token: Optional[str] = Header(None),
) -> str:
    """
    FastAPI dependency that checks X-Session-Token against the app's token.

    Raises:
        HTTPException: 503 if the app has no token, 401 if missing or wrong
    """
    expected = getattr(request.app.state, "session_token", None)
    if expected is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Session token not initialized",
        )

    if x_session_token is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing X-Session-Token header",
        )

    # Constant-time comparison to prevent timing attacks
    if not secrets.compare_digest(x_session_token, expected):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid session token",
        )

    return x_session_token
