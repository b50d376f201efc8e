from datetime import datetime, timedelta, timezone

from jose import jwt

from app.core.config import settings


# ─── JWT ──────────────────────────────────────────────────────────────────────
# Sessions are owned by the identity provider. The portal only verifies the
# bearer token and reads the employee id from "sub".

def create_access_token(subject: str, role: str) -> str:
    expire = datetime.now(timezone.utc) + timedelta(
        minutes=settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES
    )
    return jwt.encode(
        {"sub": subject, "role": role, "exp": expire, "type": "access"},
        settings.JWT_SECRET,
        algorithm=settings.JWT_ALGORITHM,
    )


def decode_token(token: str) -> dict:
    """Raises JWTError on invalid/expired token."""
    return jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
