from datetime import timedelta

import bcrypt
import jwt

from hackhub.core.config import ACCESS_TOKEN_EXPIRE, ALGORITHM, BCRYPT_ROUNDS, SECRET_KEY
from hackhub.core.dates import utcnow


def _to_bytes(password: str) -> bytes:
    # bcrypt only looks at the first 72 bytes
    return password.encode("utf-8")[:72]


def hash_password(password: str) -> str:
    return bcrypt.hashpw(_to_bytes(password), bcrypt.gensalt(rounds=BCRYPT_ROUNDS)).decode("utf-8")


def verify_password(password: str, hashed_password: str) -> bool:
    try:
        return bcrypt.checkpw(_to_bytes(password), hashed_password.encode("utf-8"))
    except ValueError:
        # malformed hash stored for the user
        return False


def create_access_token(data: dict, expires_delta: timedelta | None = None) -> str:
    payload = data.copy()
    payload["exp"] = utcnow() + (expires_delta or ACCESS_TOKEN_EXPIRE)
    return jwt.encode(payload, SECRET_KEY, algorithm=ALGORITHM)


def decode_access_token(token: str) -> dict:
    """Decode and verify a token.

    Raises ``jwt.ExpiredSignatureError`` or ``jwt.InvalidTokenError``; the
    caller maps those to 401 responses.
    """
    return jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
