"""
Session module: credential hashing, session marker and the session gate.
"""

from ecclesia.session.credentials import hash_secret, normalize_identity, verify_secret
from ecclesia.session.gate import SessionGate
from ecclesia.session.marker import SessionMarker, SessionMarkerStore

__all__ = [
    "SessionGate",
    "SessionMarker",
    "SessionMarkerStore",
    "hash_secret",
    "verify_secret",
    "normalize_identity",
]
