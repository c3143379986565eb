"""
Canteen Service — Password hashing and token issuing

Access and refresh tokens share one signing key and are told apart by their
``type`` claim. ``sub`` always holds the user id as a string.
"""
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any

from jose import JWTError, jwt
from passlib.context import CryptContext

from canteen.core.config import get_settings

settings = get_settings()

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

ACCESS = "access"
REFRESH = "refresh"


# ─── Passwords ────────────────────────────────────────────────────────────────

def hash_password(plain: str) -> str:
    return pwd_context.hash(plain)


def verify_password(plain: str, hashed: str) -> bool:
    return pwd_context.verify(plain, hashed)


# ─── Tokens ───────────────────────────────────────────────────────────────────

def _sign(claims: dict[str, Any], token_type: str, lifetime: timedelta) -> str:
    payload = {
        **claims,
        "exp": datetime.now(tz=timezone.utc) + lifetime,
        "type": token_type,
        "jti": uuid.uuid4().hex,
    }
    return jwt.encode(payload, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def create_access_token(claims: dict[str, Any]) -> str:
    return _sign(claims, ACCESS, timedelta(minutes=settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES))


def create_refresh_token(claims: dict[str, Any]) -> str:
    # Refresh tokens only carry the subject; role changes show up on the next access token.
    return _sign({"sub": claims["sub"]}, REFRESH, timedelta(days=settings.JWT_REFRESH_TOKEN_EXPIRE_DAYS))


def decode_token(token: str, expected_type: str | None = None) -> dict[str, Any]:
    """
    Verify signature and expiry. With ``expected_type`` the token must also be
    of that type and name a subject. Raises JWTError otherwise.
    """
    claims = jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    if expected_type is not None:
        if claims.get("type") != expected_type:
            raise JWTError(f"{expected_type} token required")
        if not claims.get("sub"):
            raise JWTError("token has no subject")
    return claims
