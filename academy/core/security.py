from datetime import datetime, timedelta, timezone
from jose import JWTError, jwt
from academy.core.config import settings

TOKEN_TYPE = "access"

def create_access_token(subject: str) -> str:
    # subject = the user id as a string
    now = datetime.now(timezone.utc)
    payload = {
        "sub": subject,
        "typ": TOKEN_TYPE,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(minutes=settings.jwt_access_ttl_min)).timestamp()),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_alg)

def decode_token(token: str) -> dict:
    # Raises JWTError on a bad signature or an expired token
    return jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_alg])

def user_id_from_token(token: str) -> int:
    """Decode an access token and return its user id. Raises JWTError."""
    payload = decode_token(token)
    if payload.get("typ") != TOKEN_TYPE:
        raise JWTError("Not an access token")
    try:
        return int(payload["sub"])
    except (KeyError, TypeError, ValueError):
        raise JWTError("Token has no valid subject")
