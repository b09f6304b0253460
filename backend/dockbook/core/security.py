from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt
from passlib.context import CryptContext

from ..config import settings

ALGO = "HS256"
pwd = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(p: str) -> str:
    return pwd.hash(p)


def verify_password(p: str, hashed: str) -> bool:
    return pwd.verify(p, hashed)


def create_access_token(sub: str, expires_min: int | None = None, **claims) -> str:
    """Bearer token for the user with e-mail ``sub``; extra claims are informational."""
    minutes = expires_min if expires_min is not None else settings.JWT_EXPIRES_MIN
    exp = datetime.now(timezone.utc) + timedelta(minutes=minutes)
    return jwt.encode({**claims, "sub": sub, "exp": exp}, settings.SECRET_KEY, algorithm=ALGO)


def decode_token(token: str) -> dict | None:
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[ALGO])
    except JWTError:
        return None
