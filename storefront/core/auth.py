# storefront/core/auth.py
from dataclasses import dataclass
from typing import Any

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import jwt, JWTError

from storefront.core.config import Settings, get_settings

# HTTP Bearer scheme:
# - auto_error=False => a missing Authorization header reaches
#   get_current_principal, which answers 401 itself (or lets the caller
#   through when AUTH_DISABLED is set).
bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class Principal:
    """The authenticated caller, as far as order history cares."""

    sub: str
    email: str | None
    role: str

    @property
    def actor(self) -> str:
        """Name recorded in status_history.updated_by."""
        return self.email or self.sub


LOCAL_ADMIN = Principal(sub="admin", email=None, role="admin")


def decode_access_token(token: str, settings: Settings) -> dict[str, Any]:
    """
    Decode and verify an admin access token (JWT).

    Verification:
      - signature (JWT_SECRET / JWT_ALG)
      - expiration time (exp), when present
      - audience is NOT verified

    Raises:
        HTTPException(401): if token is invalid/expired.
    """
    try:
        return jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALG],
            options={"verify_aud": False},
        )
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
        )


def get_current_principal(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    settings: Settings = Depends(get_settings),
) -> Principal:
    """
    Resolve the caller from the bearer token.

    Flow:
      1. AUTH_DISABLED => local admin, no token needed.
      2. No Authorization header => 401.
      3. Decode JWT => 'sub' is required; 'email' and 'role' are optional.

    Raises:
        HTTPException(401): missing, malformed or unverifiable token.
    """
    if settings.AUTH_DISABLED:
        return LOCAL_ADMIN

    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
        )

    payload = decode_access_token(credentials.credentials, settings)
    sub = payload.get("sub")
    if not sub:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token missing sub",
        )

    return Principal(
        sub=str(sub),
        email=payload.get("email"),
        role=payload.get("role") or "user",
    )


def require_admin(principal: Principal = Depends(get_current_principal)) -> Principal:
    """
    Enforce admin role.

    Raises:
        HTTPException(403): if role is not admin.
    """
    if principal.role != "admin":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return principal
