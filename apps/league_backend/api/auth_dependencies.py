"""
Authentication dependencies for FastAPI routes.

Callers are identified by identity-provider tokens; the resulting identity
dict ({"subject_id", "email", "name"}) is what the services authorize against.
"""

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from typing import Optional
from league_backend.services import auth_service

security = HTTPBearer()


async def get_current_identity(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> dict:
    """
    Dependency to get the authenticated caller from the bearer token.

    Args:
        credentials: HTTP Bearer token credentials

    Returns:
        Identity dictionary

    Raises:
        HTTPException: If the token is invalid or carries no subject
    """
    claims = auth_service.verify_token(credentials.credentials)
    if claims is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    identity = auth_service.identity_from_claims(claims)
    if identity is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return identity


async def get_current_identity_optional(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(HTTPBearer(auto_error=False)),
) -> Optional[dict]:
    """
    Optional dependency: None if no token is provided or the token is invalid.
    """
    if credentials is None:
        return None

    try:
        return await get_current_identity(credentials)
    except HTTPException:
        return None


async def require_identity(identity: dict = Depends(get_current_identity)) -> dict:
    """Require any authenticated caller."""
    return identity
