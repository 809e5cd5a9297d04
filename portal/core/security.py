"""
core/security.py
----------------
Password hashing and JWT token utilities.

  - Passwords are stored as salted bcrypt hashes (passlib); the plain value
    never reaches the database or the logs.
  - Access tokens carry sub (user_id), company_id (may be null for
    unaffiliated users) and role.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import jwt
from passlib.context import CryptContext

from portal.core.config import settings

pwd_context = CryptContext(
    schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=settings.BCRYPT_ROUNDS
)


def hash_password(plain: str) -> str:
    return pwd_context.hash(plain)


def verify_password(plain: str, hashed: str) -> bool:
    """Constant-time comparison of plain password against stored hash."""
    return pwd_context.verify(plain, hashed)


def create_access_token(
    subject: str,
    company_id: Optional[str],
    role: str,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """
    Mint a signed JWT access token.

    Args:
        subject: User id (stored in the 'sub' claim).
        company_id: Owning company of the user, or None.
        role: 'admin' | 'user'
        expires_delta: Optional custom expiry; defaults to settings value.
    """
    now = datetime.now(timezone.utc)
    expire = now + (
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    payload: Dict[str, Any] = {
        "sub": subject,
        "company_id": company_id,
        "role": role,
        "exp": expire,
        "iat": now,
    }
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> Dict[str, Any]:
    """
    Decode and validate a JWT access token.

    Raises:
        JWTError: If the token is invalid, expired, or tampered with.
    """
    return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
