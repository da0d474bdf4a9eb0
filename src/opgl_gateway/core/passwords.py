import bcrypt

MIN_PASSWORD_LENGTH = 8

# bcrypt only looks at the first 72 bytes of its input
_BCRYPT_MAX_BYTES = 72

# verified against when the email is unknown, so both paths cost one bcrypt check
_DUMMY_HASH = bcrypt.hashpw(b"opgl-gateway-dummy-password", bcrypt.gensalt()).decode("utf-8")


class InvalidRegistration(ValueError):
    pass


def _encode(password: str) -> bytes:
    return password.encode("utf-8")[:_BCRYPT_MAX_BYTES]


def validate_registration(email: str, password: str) -> None:
    if not email:
        raise InvalidRegistration("email is required")
    if "@" not in email:
        raise InvalidRegistration("invalid email format")
    if not password:
        raise InvalidRegistration("password is required")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise InvalidRegistration(f"password must be at least {MIN_PASSWORD_LENGTH} characters")


def hash_password(password: str) -> str:
    return bcrypt.hashpw(_encode(password), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, password_hash: str | None) -> bool:
    """Check ``password`` against ``password_hash``; a missing hash always fails."""
    target = password_hash or _DUMMY_HASH
    try:
        matched = bcrypt.checkpw(_encode(password), target.encode("utf-8"))
    except ValueError:
        # malformed stored hash
        return False
    return matched and password_hash is not None
