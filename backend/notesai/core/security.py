"""
Password hashing and the bearer tokens issued at register/login/refresh.

A token identifies one account: `sub` is the user id, `email` is informational.
Tokens are not revoked; `core.dependencies` re-checks that the account exists.
"""

from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt
from passlib.context import CryptContext

from notesai.config import get_settings

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

TOKEN_TYPE = "access"


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def create_access_token(user_id: str, email: str | None = None) -> str:
    """Sign a token for `user_id` that expires after JWT_EXPIRY_MINUTES."""
    settings = get_settings()
    issued_at = datetime.now(timezone.utc)

    claims = {
        "sub": str(user_id),
        "typ": TOKEN_TYPE,
        "iat": issued_at,
        "exp": issued_at + timedelta(minutes=settings.JWT_EXPIRY_MINUTES),
    }
    if email:
        claims["email"] = email

    return jwt.encode(claims, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str) -> dict | None:
    """Claims of a valid, unexpired access token; None for anything else."""
    settings = get_settings()
    try:
        claims = jwt.decode(
            token,
            settings.JWT_SECRET_KEY,
            algorithms=[settings.JWT_ALGORITHM],
            options={"require_sub": True, "require_exp": True},
        )
    except JWTError:
        return None

    if claims.get("typ") != TOKEN_TYPE:
        return None
    return claims
