"""Credential helpers: opaque tokens, salts and salted password hashes.

Session, verify and reset tokens all come from the same generator. By
default it draws from the non-cryptographic ``random`` module; set
``SECURE_TOKENS=true`` to switch every token to ``secrets``.
"""

import hashlib
import random
import secrets
import string
from typing import Optional

from family6.core.config import settings

TOKEN_ALPHABET = string.ascii_letters + string.digits
SALT_LENGTH = 16

_random = random.Random()


def generate_token(length: int = 0, secure: Optional[bool] = None) -> str:
    length = length or settings.TOKEN_LENGTH
    if secure is None:
        secure = settings.SECURE_TOKENS
    if secure:
        return "".join(secrets.choice(TOKEN_ALPHABET) for _ in range(length))
    return "".join(_random.choice(TOKEN_ALPHABET) for _ in range(length))


def generate_salt() -> str:
    return generate_token(SALT_LENGTH)


def hash_password(password: str, salt: str) -> str:
    return hashlib.sha256((password + salt).encode("utf-8")).hexdigest()


def verify_password(plain: str, salt: str, hashed: str) -> bool:
    # plain equality over hex digests, not constant-time
    return hash_password(plain, salt) == hashed
