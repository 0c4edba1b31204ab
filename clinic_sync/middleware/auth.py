"""
Authentication for API endpoints.

Application users present a JWT bearer token issued by the app's identity
provider. It is verified with PyJWT before any calendar logic runs and is
unrelated to the Google Calendar OAuth credential.
"""
import os
import logging
from typing import Optional

import jwt  # PyJWT
from fastapi import HTTPException, Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)

# In development, falls back to a default (insecure for prod)
JWT_SECRET = os.getenv("JWT_SECRET", "development-secret-change-in-production")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")


class TokenPayload:
    """Decoded JWT token payload."""
    def __init__(self, payload: dict):
        self.sub = payload.get("sub")  # application user id
        self.email = payload.get("email")
        self.exp = payload.get("exp")
        self.iat = payload.get("iat")
        self._raw = payload

    def __repr__(self) -> str:
        return f"TokenPayload(sub={self.sub})"


async def verify_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> Optional[TokenPayload]:
    """
    Verify JWT token from Authorization header.

    Returns:
        TokenPayload if valid token provided, None if no token.

    Raises:
        HTTPException: For invalid or expired tokens.
    """
    if not credentials:
        return None

    try:
        payload = jwt.decode(
            credentials.credentials,
            JWT_SECRET,
            algorithms=[JWT_ALGORITHM]
        )
        return TokenPayload(payload)

    except jwt.ExpiredSignatureError:
        logger.warning("Token expired")
        raise HTTPException(
            status_code=401,
            detail="Token expired",
            headers={"WWW-Authenticate": "Bearer"}
        )

    except jwt.InvalidTokenError as e:
        logger.warning(f"Invalid token: {e}")
        raise HTTPException(
            status_code=401,
            detail="Invalid token",
            headers={"WWW-Authenticate": "Bearer"}
        )


def require_user_id(
    payload: Optional[TokenPayload] = Depends(verify_token)
) -> str:
    """
    Dependency that requires a valid token and returns the user id.

    Usage:
        @router.post("/connect")
        async def connect(user_id: str = Depends(require_user_id)):
            ...
    """
    if not payload or not payload.sub:
        raise HTTPException(
            status_code=401,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"}
        )
    return payload.sub
