"""Bearer token issue and verification (HS256 JWTs, ``sub`` = user id)."""
from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from app.config import settings
from app.errors import Unauthorized
from app.models import MAX_ID


def create_access_token(user_id: int, expires_delta: timedelta | None = None) -> str:
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))
    payload = {"sub": str(user_id), "iat": now, "exp": expire}
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str) -> int:
    """
    Return the user id carried by *token*.

    Raises Unauthorized for a bad signature, an expired token or a
    missing / non-numeric subject.
    """
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except JWTError as exc:
        raise Unauthorized("Could not validate credentials") from exc

    subject = str(payload.get("sub") or "")
    if not (subject.isascii() and subject.isdigit()) or int(subject) > MAX_ID:
        raise Unauthorized("Could not validate credentials")
    return int(subject)
