"""API key material. Only the sha256 hash is stored; admission looks keys up by it."""
import secrets
import hashlib
import hmac

KEY_PREFIX_LEN = 8
KEY_BYTES = 32


def generate_plaintext_key() -> str:
    # 32 random bytes, hex encoded (64 chars)
    return secrets.token_hex(KEY_BYTES)


def key_prefix(plain: str) -> str:
    return plain[:KEY_PREFIX_LEN]


def hash_key(plain: str) -> str:
    return hashlib.sha256(plain.encode("utf-8")).hexdigest()


def constant_time_equals(a: str, b: str) -> bool:
    return hmac.compare_digest(a.encode("utf-8"), b.encode("utf-8"))
