from datetime import datetime, timedelta
from typing import Any

from jose import JWTError, jwt
from passlib.context import CryptContext

from saenggibu.core.config import settings

_pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
_ALGORITHM = "HS256"
_TOKEN_EXPIRE_MINUTES = 60 * 12  # one consulting day
# Consultant tokens only; student-side sessions are issued elsewhere
_SCOPE = "consultant"


def hash_password(plain: str) -> str:
    return _pwd_context.hash(plain)


def verify_password(plain: str, hashed: str) -> bool:
    return _pwd_context.verify(plain, hashed)


def create_access_token(subject: Any, expires_minutes: int = _TOKEN_EXPIRE_MINUTES) -> str:
    expire = datetime.utcnow() + timedelta(minutes=expires_minutes)
    return jwt.encode(
        {"sub": str(subject), "scope": _SCOPE, "exp": expire},
        settings.jwt_secret,
        algorithm=_ALGORITHM,
    )


def decode_access_token(token: str) -> int | None:
    """Return the consultant user id carried by ``token``, or None if it is not usable."""
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[_ALGORITHM])
        if payload.get("scope") != _SCOPE:
            return None
        return int(payload["sub"])
    except (JWTError, KeyError, ValueError):
        return None
