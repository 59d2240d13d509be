"""
Domain Entities for the Ecclesia Record Keeper

Every entity is an immutable, slotted dataclass keyed by an opaque string
``id`` and stamped with an ISO-8601 ``created_at``. Records are replaced
whole on every upsert, so entities are never mutated in place; use
``dataclasses.replace`` to derive an edited copy.

Enumeration values are the strings persisted by earlier releases of the
application and must not change, otherwise existing blobs stop decoding.

Design:
- Attribute names are snake_case; the storage mapper translates them to
  the camelCase layout used by the local and document substrates
- Optional attributes default to None, never absent
- ``sector`` defaults to the root sector
- ``REQUIRED`` lists the attributes that must be non-blank on write
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Optional, Union
from uuid import uuid4

from ecclesia.core.constants import ROOT_SECTOR_ID
from ecclesia.core.types import utc_now_iso


# =============================================================================
# ENUMERATIONS
# =============================================================================
class Role(Enum):
    """Ministerial role of a member."""

    PASTOR = "Pastor"
    CO_PASTOR = "Co-pastor"
    ELDER = "Presbítero"
    EVANGELIST = "Evangelista"
    DEACON = "Diácono"
    WORKER = "Cooperador"
    COORDINATOR = "Coordenador(a)"
    TEACHER = "Professor"
    CONDUCTOR = "Maestro"
    REGENT = "Regente"
    MUSICIAN = "Músico"
    MEMBER = "Membro"


class TransactionType(Enum):
    """
    Financial movement kind.

    TITHE carries an amount and is kept for records created before
    TITHE_RECORD existed; both count towards dues compliance.
    """

    TITHE = "Dízimo"
    TITHE_RECORD = "Registro de Dízimo"
    OFFERING = "Oferta"
    SPECIAL_OFFERING = "Oferta Especial"
    EXPENSE = "Saída"


class ExpenseCategory(Enum):
    MAINTENANCE = "Manutenção"
    EVENTS = "Eventos"
    SALARY = "Salários"
    MISSIONS = "Missões"
    UTILITIES = "Contas (Água/Luz)"
    OTHER = "Outros"


class PaymentMethod(Enum):
    CASH = "Dinheiro"
    PIX = "Pix"
    CARD = "Cartão"
    TRANSFER = "Transferência"


class AssetCondition(Enum):
    NEW = "Novo"
    GOOD = "Bom"
    FAIR = "Regular"
    POOR = "Ruim/Danificado"
    DISCARDED = "Baixado/Descartado"


class WorkStatus(Enum):
    PLANNING = "Planejamento"
    IN_PROGRESS = "Em Andamento"
    COMPLETED = "Concluída"
    PAUSED = "Paralisada"


def new_record_id() -> str:
    """Generate an opaque record identifier."""
    return uuid4().hex


# =============================================================================
# ENTITIES
# =============================================================================
@dataclass(frozen=True, slots=True)
class Sector:
    """Organizational branch. The root sector always exists."""

    REQUIRED: ClassVar[tuple[str, ...]] = ("id", "name")

    id: str
    name: str = ""
    created_at: str = field(default_factory=utc_now_iso)

    @property
    def is_root(self) -> bool:
        return self.id == ROOT_SECTOR_ID


@dataclass(frozen=True, slots=True)
class Member:
    REQUIRED: ClassVar[tuple[str, ...]] = ("id", "full_name", "sector")

    id: str
    full_name: str = ""
    birth_date: str = ""
    phone: str = ""
    email: str = ""
    address: str = ""
    baptism_date: Optional[str] = None
    is_baptized: Optional[bool] = None
    role: Role = Role.MEMBER
    is_tither: bool = False
    sector: str = ROOT_SECTOR_ID
    photo_url: Optional[str] = None
    created_at: str = field(default_factory=utc_now_iso)


@dataclass(frozen=True, slots=True)
class Transaction:
    """
    Financial movement. ``member_id`` is set for tithes; ``category`` and
    ``responsible`` for expenses.
    """

    REQUIRED: ClassVar[tuple[str, ...]] = ("id", "date", "sector")

    id: str
    type: TransactionType = TransactionType.OFFERING
    date: str = ""
    amount: float = 0.0
    member_id: Optional[str] = None
    description: Optional[str] = None
    category: Optional[ExpenseCategory] = None
    receipt_url: Optional[str] = None
    responsible: Optional[str] = None
    payment_method: Optional[PaymentMethod] = None
    pix_destination: Optional[str] = None
    sector: str = ROOT_SECTOR_ID
    created_at: str = field(default_factory=utc_now_iso)


@dataclass(frozen=True, slots=True)
class Discipline:
    """Disciplinary record; active while ``end_date`` has not passed."""

    REQUIRED: ClassVar[tuple[str, ...]] = (
        "id", "member_id", "reason", "start_date", "end_date", "sector",
    )

    id: str
    member_id: str = ""
    reason: str = ""
    start_date: str = ""
    end_date: str = ""
    sector: str = ROOT_SECTOR_ID
    created_at: str = field(default_factory=utc_now_iso)


@dataclass(frozen=True, slots=True)
class Asset:
    REQUIRED: ClassVar[tuple[str, ...]] = ("id", "name", "sector")

    id: str
    name: str = ""
    description: Optional[str] = None
    acquisition_date: str = ""
    value: float = 0.0
    quantity: int = 1
    condition: AssetCondition = AssetCondition.GOOD
    location: str = ""
    sector: str = ROOT_SECTOR_ID
    photo_url: Optional[str] = None
    created_at: str = field(default_factory=utc_now_iso)

    @property
    def total_value(self) -> float:
        return self.value * self.quantity


@dataclass(frozen=True, slots=True)
class WorkProject:
    """
    Capital project. ``receipt_url`` predates ``receipt_urls`` and is kept
    for older records.
    """

    REQUIRED: ClassVar[tuple[str, ...]] = ("id", "title", "sector")

    id: str
    title: str = ""
    description: str = ""
    start_date: str = ""
    end_date: Optional[str] = None
    status: WorkStatus = WorkStatus.PLANNING
    total_cost: float = 0.0
    sector: str = ROOT_SECTOR_ID
    responsible: Optional[str] = None
    receipt_url: Optional[str] = None
    receipt_urls: tuple[str, ...] = ()
    created_at: str = field(default_factory=utc_now_iso)

    @property
    def attachments(self) -> tuple[str, ...]:
        """All receipt references, legacy single receipt first."""
        if self.receipt_url and self.receipt_url not in self.receipt_urls:
            return (self.receipt_url, *self.receipt_urls)
        return self.receipt_urls


@dataclass(frozen=True, slots=True)
class PublicProfile:
    """User identity as exposed to callers; never carries the secret."""

    email: str
    name: str


@dataclass(frozen=True, slots=True)
class User:
    """
    Credential record keyed by the normalized email.

    Only a salted hash of the secret is stored; see session.credentials.
    """

    REQUIRED: ClassVar[tuple[str, ...]] = ("id", "email", "password_hash")

    id: str
    email: str = ""
    name: str = ""
    password_hash: str = field(default="", repr=False)
    created_at: str = field(default_factory=utc_now_iso)

    def public_profile(self) -> PublicProfile:
        return PublicProfile(email=self.email, name=self.name)


Entity = Union[Sector, Member, Transaction, Discipline, Asset, WorkProject, User]


# =============================================================================
# COLLECTIONS
# =============================================================================
class Collection(Enum):
    """Stable collection names shared by every substrate."""

    SECTORS = "sectors"
    MEMBERS = "members"
    TRANSACTIONS = "transactions"
    DISCIPLINES = "disciplines"
    ASSETS = "assets"
    WORKS = "works"
    USERS = "users"

    @property
    def entity_type(self) -> type:
        return _ENTITY_TYPES[self]


_ENTITY_TYPES: dict[Collection, type] = {
    Collection.SECTORS: Sector,
    Collection.MEMBERS: Member,
    Collection.TRANSACTIONS: Transaction,
    Collection.DISCIPLINES: Discipline,
    Collection.ASSETS: Asset,
    Collection.WORKS: WorkProject,
    Collection.USERS: User,
}


def missing_fields(entity: Any) -> list[str]:
    """Names of required attributes that are None or blank."""
    missing = []
    for name in type(entity).REQUIRED:
        value = getattr(entity, name)
        if value is None or (isinstance(value, str) and not value.strip()):
            missing.append(name)
    return missing


__all__ = [
    "Role",
    "TransactionType",
    "ExpenseCategory",
    "PaymentMethod",
    "AssetCondition",
    "WorkStatus",
    "Sector",
    "Member",
    "Transaction",
    "Discipline",
    "Asset",
    "WorkProject",
    "User",
    "PublicProfile",
    "Entity",
    "Collection",
    "missing_fields",
    "new_record_id",
]
