"""
Verification of identity-provider bearer tokens.

Tokens are issued elsewhere; this service only checks the signature and the
standard claims, then maps them to the identity dict the services consume.
"""

import os
import logging
from typing import Dict, Optional

import jwt
from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

JWT_SECRET = os.getenv("IDENTITY_JWT_SECRET")
JWT_PUBLIC_KEY = os.getenv("IDENTITY_JWT_PUBLIC_KEY")
JWT_ALGORITHMS = [
    alg.strip() for alg in os.getenv("IDENTITY_JWT_ALGORITHMS", "HS256").split(",") if alg.strip()
]
JWT_AUDIENCE = os.getenv("IDENTITY_JWT_AUDIENCE") or None
JWT_ISSUER = os.getenv("IDENTITY_JWT_ISSUER") or None


def _verification_key() -> Optional[str]:
    return JWT_PUBLIC_KEY or JWT_SECRET


def verify_token(token: str) -> Optional[Dict]:
    """
    Verify a bearer token and return its claims.

    Args:
        token: Encoded JWT from the Authorization header

    Returns:
        Claims dict, or None if the token is invalid, expired or no key is configured
    """
    key = _verification_key()
    if not key:
        logger.warning("IDENTITY_JWT_SECRET / IDENTITY_JWT_PUBLIC_KEY not configured")
        return None

    options = {"verify_aud": JWT_AUDIENCE is not None}
    try:
        return jwt.decode(
            token,
            key,
            algorithms=JWT_ALGORITHMS,
            audience=JWT_AUDIENCE,
            issuer=JWT_ISSUER,
            options=options,
        )
    except jwt.ExpiredSignatureError:
        logger.debug("Rejected expired identity token")
        return None
    except jwt.InvalidTokenError as e:
        logger.debug(f"Invalid identity token: {e}")
        return None


def identity_from_claims(claims: Dict) -> Optional[Dict]:
    """Map token claims to {"subject_id", "email", "name"}; None without a subject."""
    subject_id = claims.get("sub")
    if not subject_id:
        return None
    return {
        "subject_id": str(subject_id),
        "email": claims.get("email"),
        "name": claims.get("name") or claims.get("given_name"),
    }
