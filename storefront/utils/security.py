# storefront/utils/security.py
import secrets
from datetime import datetime, timedelta, timezone

import jwt
from passlib.context import CryptContext

from storefront.utils.settings import JWT_SECRET, JWT_ALGORITHM, ACCESS_TOKEN_EXPIRES_SECONDS

pwd_ctx = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


def hash_password(p: str) -> str:
    return pwd_ctx.hash(p)


def random_password(length: int = 12) -> str:
    return secrets.token_urlsafe(length)[:length]


def create_access_token(user_id: int, role: str = "customer") -> str:
    exp = datetime.now(timezone.utc) + timedelta(seconds=ACCESS_TOKEN_EXPIRES_SECONDS)
    payload = {"sub": str(user_id), "role": role, "exp": exp, "type": "access"}
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGORITHM)


def decode_token(token: str) -> dict:
    return jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
