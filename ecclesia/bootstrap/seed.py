"""
First-run seeding.

Ensures the structural minimum exists: the root sector plus two branch
sectors, and one administrator credential. Optionally adds three example
members for demonstrations.

Every step checks its collection with a forced read and writes only when
the collection is empty, so running the seed repeatedly never duplicates
data. Failures are logged and skipped; seeding never aborts startup.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

from ecclesia.cache.manager import CacheManager
from ecclesia.core import constants as C
from ecclesia.core.config import SeedConfig
from ecclesia.core.entities import Collection, Member, Role, Sector, User
from ecclesia.observability.logging import StructuredLogger
from ecclesia.session.credentials import hash_secret, normalize_identity

logger = StructuredLogger(__name__)

DEFAULT_SECTORS: tuple[Sector, ...] = (
    Sector(id=C.ROOT_SECTOR_ID, name=C.ROOT_SECTOR_NAME),
    Sector(id="SETOR_1", name="Setor 1"),
    Sector(id="SETOR_2", name="Setor 2"),
)


def sample_members() -> list[Member]:
    return [
        Member(
            id="1",
            full_name="João Silva",
            birth_date="1980-05-15",
            phone="(11) 99999-9999",
            email="joao@email.com",
            address="Rua A, 123",
            role=Role.DEACON,
            is_tither=True,
            sector=C.ROOT_SECTOR_ID,
        ),
        Member(
            id="2",
            full_name="Maria Souza",
            birth_date="1992-08-20",
            phone="(11) 88888-8888",
            email="maria@email.com",
            address="Rua B, 456",
            role=Role.MUSICIAN,
            is_tither=True,
            sector="SETOR_1",
        ),
        Member(
            id="3",
            full_name="Pedro Rocha",
            birth_date="1975-12-10",
            phone="(11) 77777-7777",
            email="pedro@email.com",
            address="Rua C, 789",
            role=Role.MEMBER,
            is_tither=False,
            sector="SETOR_2",
        ),
    ]


@dataclass
class SeedReport:
    sectors_written: int = 0
    users_written: int = 0
    members_written: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


async def _seed_if_empty(
    cache: CacheManager,
    collection: Collection,
    build: Callable[[], list[Any]],
) -> int:
    existing = await cache.read(collection, force_refresh=True)
    if existing:
        return 0
    written = 0
    for entity in build():
        await cache.write(collection, entity)
        written += 1
    logger.info("Seeded collection", collection=collection.value, count=written)
    return written


async def _step(report: SeedReport, name: str, step: Callable[[], Awaitable[int]]) -> int:
    try:
        return await step()
    except Exception as e:
        logger.exception("Seed step failed", step=name)
        report.errors.append(f"{name}: {e}")
        return 0


async def seed_database(cache: CacheManager, config: SeedConfig) -> SeedReport:
    """
    Write default sectors, the admin credential and, when enabled,
    sample members into empty collections.
    """
    report = SeedReport()

    report.sectors_written = await _step(
        report,
        "sectors",
        lambda: _seed_if_empty(cache, Collection.SECTORS, lambda: list(DEFAULT_SECTORS)),
    )

    def admin() -> list[User]:
        email = normalize_identity(config.admin_email)
        if config.uses_default_password:
            logger.warning("Seeding administrator with the default password", identity=email)
        return [
            User(
                id=email,
                email=email,
                name=config.admin_name,
                password_hash=hash_secret(config.admin_password),
            )
        ]

    report.users_written = await _step(
        report,
        "users",
        lambda: _seed_if_empty(cache, Collection.USERS, admin),
    )

    if config.sample_members:
        report.members_written = await _step(
            report,
            "members",
            lambda: _seed_if_empty(cache, Collection.MEMBERS, sample_members),
        )

    return report
