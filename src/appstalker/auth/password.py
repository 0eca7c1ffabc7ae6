"""Password hashing utilities.

bcrypt salts automatically and is slow on purpose: the work factor
(rounds=12) costs ~100ms per hash on modern hardware. Passwords are
truncated to 72 bytes, bcrypt's input limit.
"""

import bcrypt


def hash_password(password: str) -> str:
    pw_bytes = password.encode("utf-8")[:72]
    salt = bcrypt.gensalt(rounds=12)
    return bcrypt.hashpw(pw_bytes, salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        pw_bytes = password.encode("utf-8")[:72]
        return bcrypt.checkpw(pw_bytes, password_hash.encode("utf-8"))
    except (ValueError, TypeError):
        return False
