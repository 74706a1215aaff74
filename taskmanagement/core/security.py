from datetime import datetime, timedelta, timezone as dt_timezone
from typing import Any, Optional, Union
from jose import jwt, JWTError
from taskmanagement.core.config import settings

# Export the algorithm constant for use in other modules
ALGORITHM = settings.ALGORITHM


def create_access_token(subject: Union[str, Any], expires_delta: timedelta = None) -> str:
    if expires_delta:
        expire = datetime.now(dt_timezone.utc) + expires_delta
    else:
        expire = datetime.now(dt_timezone.utc) + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)

    to_encode = {"exp": expire, "sub": str(subject)}
    encoded_jwt = jwt.encode(to_encode, settings.SECRET_KEY, algorithm=ALGORITHM)
    return encoded_jwt


def decode_access_token(token: Optional[str]) -> Optional[int]:
    """
    Validate a bearer token and return the user id carried in its ``sub`` claim.
    Returns None for missing, expired, tampered or malformed tokens.
    """
    if not token:
        return None
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        return None
    sub = payload.get("sub")
    try:
        return int(sub)
    except (TypeError, ValueError):
        return None
