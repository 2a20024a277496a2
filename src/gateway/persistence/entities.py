"""
Entity Records

The five record kinds persisted by the gateway. Each is a plain dataclass;
fields bound to a storage column are declared with `column()`, anything else
stays in memory only.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, ClassVar, Optional

COLUMN_KEY = "column"


class IdentityPolicy(Enum):
    """Who hands out the `id` of a new row."""
    AUTO_ASSIGNED = "AUTO_ASSIGNED"
    CALLER_ASSIGNED = "CALLER_ASSIGNED"


def column(name: str, **kwargs: Any) -> Any:
    """Declare a dataclass field persisted under the given column name."""
    metadata = dict(kwargs.pop("metadata", None) or {})
    metadata[COLUMN_KEY] = name
    return field(metadata=metadata, **kwargs)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Entity:
    """
    Capability shared by every record kind.

    `id` is None until the row is written (or read back). `exists` turns True
    only once the driver has confirmed the row is in the store.
    """

    identity: ClassVar[IdentityPolicy] = IdentityPolicy.AUTO_ASSIGNED

    id: Optional[int]
    exists: bool

    def mark_persisted(self, entity_id: int) -> None:
        self.id = entity_id
        self.exists = True


@dataclass
class AuthorizedTransaction(Entity):
    """Transaction approved by the compliance server."""
    transaction_id: str = column("transaction_id")
    memo: str = column("memo")
    transaction_xdr: str = column("transaction_xdr")
    authorized_at: datetime = column("authorized_at", default_factory=utcnow)
    data: str = column("data", default="")
    id: Optional[int] = column("id", default=None)
    exists: bool = field(default=False, compare=False, repr=False)


@dataclass
class AllowedFi(Entity):
    """Financial institution allowed to receive customer information."""
    name: str = column("name")
    domain: str = column("domain")
    public_key: str = column("public_key")
    allowed_at: datetime = column("allowed_at", default_factory=utcnow)
    id: Optional[int] = column("id", default=None)
    exists: bool = field(default=False, compare=False, repr=False)


@dataclass
class AllowedUser(Entity):
    """Single user of a financial institution allowed to receive customer information."""
    fi_name: str = column("fi_name")
    fi_domain: str = column("fi_domain")
    fi_public_key: str = column("fi_public_key")
    user_id: str = column("user_id")
    allowed_at: datetime = column("allowed_at", default_factory=utcnow)
    id: Optional[int] = column("id", default=None)
    exists: bool = field(default=False, compare=False, repr=False)


@dataclass
class SentTransaction(Entity):
    """Transaction submitted to the network by the gateway."""

    STATUS_SENDING: ClassVar[str] = "sending"
    STATUS_SUCCESS: ClassVar[str] = "success"
    STATUS_FAILURE: ClassVar[str] = "failure"

    source: str = column("source")
    envelope_xdr: str = column("envelope_xdr")
    status: str = column("status", default="sending")
    submitted_at: datetime = column("submitted_at", default_factory=utcnow)
    succeeded_at: Optional[datetime] = column("succeeded_at", default=None)
    ledger: Optional[int] = column("ledger", default=None)
    result_xdr: Optional[str] = column("result_xdr", default=None)
    id: Optional[int] = column("id", default=None)
    exists: bool = field(default=False, compare=False, repr=False)

    def mark_succeeded(self, ledger: int, result_xdr: Optional[str] = None) -> None:
        self.status = self.STATUS_SUCCESS
        self.ledger = ledger
        self.result_xdr = result_xdr
        self.succeeded_at = utcnow()

    def mark_failed(self, result_xdr: Optional[str] = None) -> None:
        self.status = self.STATUS_FAILURE
        self.result_xdr = result_xdr


@dataclass
class ReceivedPayment(Entity):
    """
    Payment received by the gateway.

    The identifier is the network's payment operation id, so callers must set
    it before inserting.
    """

    identity: ClassVar[IdentityPolicy] = IdentityPolicy.CALLER_ASSIGNED

    operation_id: str = column("operation_id")
    paging_token: str = column("paging_token")
    status: str = column("status", default="")
    processed_at: datetime = column("processed_at", default_factory=utcnow)
    id: Optional[int] = column("id", default=None)
    exists: bool = field(default=False, compare=False, repr=False)


ENTITY_TYPES = (
    AuthorizedTransaction,
    AllowedFi,
    AllowedUser,
    SentTransaction,
    ReceivedPayment,
)
