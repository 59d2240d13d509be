"""
Session Gate: Credential Check and Session Lifecycle

Design:
- Credential lookups go straight to the record adapter so a login never
  trusts a possibly stale user snapshot
- Registration writes through the cache manager like any other entity
- Logout clears the marker, then invalidates the whole cache so the next
  signed-in identity never sees the previous one's snapshots
- Only the public profile (email, name) is ever returned or persisted
  in the marker
"""

from __future__ import annotations

from typing import Optional

from ecclesia.cache.manager import CacheManager
from ecclesia.core.entities import Collection, PublicProfile, User
from ecclesia.core.errors import ValidationError
from ecclesia.observability.logging import StructuredLogger
from ecclesia.session.credentials import hash_secret, normalize_identity, verify_secret
from ecclesia.session.marker import SessionMarker, SessionMarkerStore
from ecclesia.storage.protocols import FieldEquals, RecordAdapter

logger = StructuredLogger(__name__)


class SessionGate:
    """
    Usage:
        gate = SessionGate(adapter, cache, SessionMarkerStore(path))
        profile = await gate.login("ana@example.org", "secret")
        if profile is None:
            ...  # bad credentials
        await gate.logout()
    """

    __slots__ = ("_adapter", "_cache", "_markers")

    def __init__(
        self,
        adapter: RecordAdapter,
        cache: CacheManager,
        marker_store: SessionMarkerStore,
    ) -> None:
        self._adapter = adapter
        self._cache = cache
        self._markers = marker_store

    async def _find_users(self, identity: str) -> list[User]:
        return await self._adapter.fetch_filtered(
            Collection.USERS, FieldEquals("email", identity)
        )

    def _establish(self, user: User) -> PublicProfile:
        self._markers.save(SessionMarker(identity=user.email, display_name=user.name))
        return user.public_profile()

    async def login(self, identity: str, secret: str) -> Optional[PublicProfile]:
        """
        Public profile when the credentials match, else None.

        Raises:
            StorageError: The user lookup failed.
        """
        identity = normalize_identity(identity)
        if not identity or not secret:
            return None

        for user in await self._find_users(identity):
            if verify_secret(secret, user.password_hash):
                profile = self._establish(user)
                logger.info("Session established", identity=identity)
                return profile

        logger.info("Login rejected", identity=identity)
        return None

    async def register(self, identity: str, secret: str, display_name: str) -> bool:
        """
        Create a credential and sign it in.

        Returns:
            False when the identity already exists (nothing written).

        Raises:
            ValidationError: Blank identity or secret.
            StorageError: Lookup or write failed.
        """
        identity = normalize_identity(identity)
        if not identity:
            raise ValidationError.invalid_value("identity", identity, "must be non-empty")
        if not secret:
            raise ValidationError.invalid_value("secret", "", "must be non-empty")

        if await self._find_users(identity):
            logger.info("Registration refused: identity exists", identity=identity)
            return False

        user = User(
            id=identity,
            email=identity,
            name=display_name.strip() or identity,
            password_hash=hash_secret(secret),
        )
        await self._cache.write(Collection.USERS, user)
        self._establish(user)
        logger.info("User registered", identity=identity)
        return True

    async def logout(self) -> None:
        marker = self._markers.load()
        self._markers.clear()
        self._cache.invalidate()
        logger.info("Session closed", identity=marker.identity if marker else None)

    def current_session(self) -> Optional[SessionMarker]:
        return self._markers.load()
