"""
Core Record Models for DevLife

These models define the schemas of everything the local store holds.
They are designed to:
1. Share one sync envelope (id, timestamps, soft delete, sync status)
2. Reject invalid values before they reach durable storage
3. Be JSON-serializable for the snapshot and the remote backend

DESIGN DECISION: Records are frozen Pydantic v2 models.
The store replaces a record wholesale on every mutation, so a record
handed out to a caller can never change underneath it.
"""

from datetime import date as Date
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Annotated, Any, Optional
from uuid import uuid4

from pydantic import (
    AfterValidator,
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    TypeAdapter,
)


def _as_utc(value: datetime) -> datetime:
    """Naive timestamps are taken as UTC so every comparison is aware."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


UtcDatetime = Annotated[datetime, AfterValidator(_as_utc)]
OptionalUtcDatetime = Annotated[Optional[UtcDatetime], BeforeValidator(_blank_to_none)]
OptionalDate = Annotated[Optional[Date], BeforeValidator(_blank_to_none)]

_timestamp_adapter = TypeAdapter(UtcDatetime)


def parse_timestamp(value: Any) -> datetime:
    """Parse an ISO string or datetime into an aware UTC datetime."""
    return _timestamp_adapter.validate_python(value)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def new_record_id() -> str:
    """Collision-free identifier for a new record."""
    return str(uuid4())


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class SyncStatus(str, Enum):
    """
    Whether a record still has to be pushed.

    PENDING records are retried on every sweep until the remote accepts them.
    """
    PENDING = "pending"
    SYNCED = "synced"


class ProjectStatus(str, Enum):
    PLANNING = "Planning"
    IN_PROGRESS = "In Progress"
    COMPLETED = "Completed"
    ON_HOLD = "On Hold"


class Priority(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


class RepeatType(str, Enum):
    NONE = "None"
    DAILY = "Daily"
    WEEKLY = "Weekly"


class FinanceType(str, Enum):
    """
    Kinds of money movement.

    Loans and repayments track a liability, business deliveries and
    payments track receivables. Neither pair mixes into income/expense.
    """
    INCOME = "income"
    EXPENSE = "expense"
    LOAN = "loan"
    REPAYMENT = "repayment"
    BUSINESS_DELIVERY = "business_delivery"
    BUSINESS_PAYMENT = "business_payment"


# =============================================================================
# RECORD MODELS
# =============================================================================

class BaseRecord(BaseModel):
    """
    Envelope shared by every persisted record.

    updated_at is the only ordering signal used for conflict resolution.
    A non-null deleted_at hides the record from consumers but keeps it
    in storage so the deletion can be synchronized.
    """
    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str = Field(
        ...,
        min_length=1,
        description="Opaque unique identifier, immutable"
    )
    user_id: Optional[str] = Field(
        default=None,
        description="Owning principal as recorded by the remote store"
    )
    created_at: UtcDatetime = Field(
        ...,
        description="First creation time, never changed"
    )
    updated_at: UtcDatetime = Field(
        ...,
        description="Advanced on every mutation"
    )
    deleted_at: OptionalUtcDatetime = Field(
        default=None,
        description="Soft delete marker"
    )
    sync_status: SyncStatus = Field(
        default=SyncStatus.PENDING,
        description="Local-only push bookkeeping"
    )

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    @property
    def is_pending(self) -> bool:
        return self.sync_status == SyncStatus.PENDING

    def to_remote_payload(
        self,
        owner_id: str,
        updated_at: Optional[datetime] = None,
    ) -> dict[str, Any]:
        """
        Build the JSON-ready dict sent to the remote store.

        sync_status never leaves the device. The owner key is always
        the pushing principal, whatever the record carried before.
        """
        record = self
        if updated_at is not None:
            record = self.model_copy(update={"updated_at": _as_utc(updated_at)})
        payload = record.model_dump(mode="json", exclude={"sync_status"})
        payload["user_id"] = owner_id
        return payload


class Project(BaseRecord):
    name: str = ""
    github_url: str = ""
    live_url: str = ""
    status: ProjectStatus = ProjectStatus.PLANNING
    progress: int = Field(
        default=0,
        ge=0,
        le=100,
        description="Completion percentage"
    )
    deadline: OptionalDate = None
    notes: str = ""


class FinanceEntry(BaseRecord):
    type: FinanceType = FinanceType.INCOME
    amount: Decimal = Field(
        default=Decimal("0"),
        ge=0,
        description="Non-negative amount, the type carries the direction"
    )
    client_name: str = ""
    date: OptionalDate = None
    notes: Optional[str] = None


class Task(BaseRecord):
    title: str = ""
    description: str = ""
    priority: Priority = Priority.MEDIUM
    due_date: OptionalDate = None
    reminder_time: OptionalUtcDatetime = None
    repeat_type: RepeatType = RepeatType.NONE
    completed: bool = False


class VaultEntry(BaseRecord):
    """
    A stored API key.

    encrypted_key is ciphertext produced by the vault cipher. The store
    persists it verbatim and never interprets it.
    """
    service_name: str = ""
    encrypted_key: str = ""
    expiry_date: str = Field(
        default="",
        description="Free-form expiry label"
    )
    project_id: Optional[str] = None


# =============================================================================
# COLLECTIONS
# =============================================================================

class Collection(str, Enum):
    """
    The closed set of record collections.

    Declaration order is the sync order.
    """
    PROJECTS = "projects"
    FINANCES = "finances"
    TASKS = "tasks"
    VAULT = "vault"

    @property
    def record_type(self) -> type[BaseRecord]:
        return RECORD_TYPES[self]


RECORD_TYPES: dict[Collection, type[BaseRecord]] = {
    Collection.PROJECTS: Project,
    Collection.FINANCES: FinanceEntry,
    Collection.TASKS: Task,
    Collection.VAULT: VaultEntry,
}


class StoreSnapshot(BaseModel):
    """
    Full unfiltered store contents, keyed by record id.

    This is exactly what gets persisted. Soft-deleted records and
    sync_status are included.
    """
    projects: dict[str, Project] = Field(default_factory=dict)
    finances: dict[str, FinanceEntry] = Field(default_factory=dict)
    tasks: dict[str, Task] = Field(default_factory=dict)
    vault: dict[str, VaultEntry] = Field(default_factory=dict)

    def records(self, collection: Collection) -> dict[str, BaseRecord]:
        return getattr(self, collection.value)

    def pending_count(self) -> int:
        return sum(
            1
            for collection in Collection
            for record in self.records(collection).values()
            if record.is_pending
        )


class AppState(BaseModel):
    """What consumers see: live records only, in insertion order."""
    projects: list[Project] = Field(default_factory=list)
    finances: list[FinanceEntry] = Field(default_factory=list)
    tasks: list[Task] = Field(default_factory=list)
    vault: list[VaultEntry] = Field(default_factory=list)
