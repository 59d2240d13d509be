"""
Credential hashing.

Secrets are stored as ``pbkdf2_<alg>$<iterations>$<salt hex>$<hash hex>``
and compared in constant time. The plaintext never leaves this module.
"""

from __future__ import annotations

import hashlib
import hmac
import secrets

from ecclesia.core import constants as C

_SCHEME_PREFIX = "pbkdf2_"


def normalize_identity(identity: str) -> str:
    """Canonical form of a login identity (email)."""
    return identity.strip().lower()


def hash_secret(secret: str, *, iterations: int = C.PBKDF2_ITERATIONS) -> str:
    salt = secrets.token_bytes(C.PBKDF2_SALT_BYTES)
    digest = hashlib.pbkdf2_hmac(C.PBKDF2_ALGORITHM, secret.encode("utf-8"), salt, iterations)
    return f"{_SCHEME_PREFIX}{C.PBKDF2_ALGORITHM}${iterations}${salt.hex()}${digest.hex()}"


def verify_secret(secret: str, encoded: str) -> bool:
    """True when ``secret`` matches ``encoded``; malformed hashes never match."""
    try:
        scheme, iterations, salt_hex, digest_hex = encoded.split("$")
        if not scheme.startswith(_SCHEME_PREFIX):
            return False
        algorithm = scheme[len(_SCHEME_PREFIX):]
        salt = bytes.fromhex(salt_hex)
        expected = bytes.fromhex(digest_hex)
        actual = hashlib.pbkdf2_hmac(algorithm, secret.encode("utf-8"), salt, int(iterations))
    except ValueError:
        return False
    return hmac.compare_digest(actual, expected)
