"""Record types shared by the store, the sync engine and the analytics functions.

All entities are frozen dataclasses. The store only ever hands out tuples of them,
so a reader can never observe a half-written list.

The dictionary shapes produced by the ``to_dict`` helpers are used both for the
local JSON documents and for the remote Drive document.
"""
import dataclasses
import datetime
import enum
import math
import time
import uuid
from typing import Any, Dict, Iterable, Optional, Tuple

from dateutil import parser as date_parser

DATE_FORMAT = '%Y-%m-%d'
DEFAULT_FILE_NAME = 'pocketledger.json'
DEFAULT_CURRENCY = '$'
CURRENCY_SYMBOLS = ['$', '€', '£', '¥', '₹', 'C$', 'A$']


class Kind(enum.StrEnum):
    """Whether a record adds to or takes from the balance."""
    Income = 'income'
    Expense = 'expense'


def now_ms() -> int:
    """Return the current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def new_id() -> str:
    """Return a new globally unique record identifier."""
    return uuid.uuid4().hex


def parse_date(value: Any) -> datetime.date:
    """Coerce a date, datetime or ISO 8601 string to a calendar date.

    Full timestamps such as ``2025-03-01T18:30:00.000Z`` keep their date part only.

    Raises:
        ValueError: If the value cannot be interpreted as a date.
    """
    if isinstance(value, datetime.datetime):
        return value.date()
    if isinstance(value, datetime.date):
        return value
    if isinstance(value, str) and value.strip():
        return date_parser.isoparse(value.strip()).date()
    raise ValueError(f'Not a date: {value!r}')


def parse_kind(value: Any) -> Kind:
    """Coerce a string to a :class:`Kind`.

    Raises:
        ValueError: If the value is not 'income' or 'expense'.
    """
    if isinstance(value, Kind):
        return value
    return Kind(str(value).strip().lower())


def is_valid_amount(value: Any) -> bool:
    """Check that a value is a finite, non-negative number (bools excluded).

    Integers too large to convert to a float are not valid amounts.
    """
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    try:
        return math.isfinite(value) and value >= 0
    except OverflowError:
        return False


@dataclasses.dataclass(frozen=True)
class Transaction:
    """One income or expense entry.

    ``amount`` is always a non-negative magnitude; the sign lives in ``kind``.
    ``date`` is the calendar day the entry pertains to, while ``created_at`` is the
    creation instant in epoch milliseconds and orders the list.
    """
    id: str
    amount: float
    kind: Kind
    category: str
    description: str
    date: datetime.date
    created_at: int

    @classmethod
    def create(cls, amount: float, kind: Kind, category: str, description: str = '',
               date: Optional[datetime.date] = None, created_at: Optional[int] = None) -> 'Transaction':
        """Build a new transaction with a fresh id and creation timestamp."""
        return cls(
            id=new_id(),
            amount=amount,
            kind=Kind(kind),
            category=category,
            description=description or '',
            date=date or datetime.date.today(),
            created_at=created_at if created_at is not None else now_ms(),
        )

    @property
    def signed_amount(self) -> float:
        return self.amount if self.kind == Kind.Income else -self.amount

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'amount': self.amount,
            'type': self.kind.value,
            'category': self.category,
            'description': self.description,
            'date': self.date.strftime(DATE_FORMAT),
            'createdAt': self.created_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Transaction':
        """Build a transaction from its document shape.

        Raises:
            ValueError: If a field is missing or malformed.
        """
        try:
            amount = data['amount']
            if not is_valid_amount(amount):
                raise ValueError(f'Invalid amount: {amount!r}')
            return cls(
                id=str(data['id']),
                amount=float(amount),
                kind=parse_kind(data['type']),
                category=str(data['category']),
                description=str(data.get('description') or ''),
                date=parse_date(data['date']),
                created_at=int(data['createdAt']),
            )
        except (KeyError, TypeError, OverflowError) as ex:
            raise ValueError(f'Malformed transaction record: {ex}') from ex


@dataclasses.dataclass(frozen=True)
class Category:
    """A named, colored bucket for one kind of transaction."""
    id: str
    name: str
    kind: Kind
    color: str

    @classmethod
    def create(cls, name: str, kind: Kind, color: str) -> 'Category':
        return cls(id=new_id(), name=name, kind=Kind(kind), color=color)

    def matches(self, name: str, kind: Kind) -> bool:
        """True if this category has the given name (case-insensitively) and kind."""
        return self.name.strip().lower() == name.strip().lower() and self.kind == kind

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'name': self.name,
            'type': self.kind.value,
            'color': self.color,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Category':
        try:
            return cls(
                id=str(data['id']),
                name=str(data['name']),
                kind=parse_kind(data['type']),
                color=str(data['color']),
            )
        except (KeyError, TypeError) as ex:
            raise ValueError(f'Malformed category record: {ex}') from ex


DEFAULT_CATEGORIES: Tuple[Category, ...] = (
    Category('1', 'Food', Kind.Expense, '#ef4444'),
    Category('2', 'Transport', Kind.Expense, '#f97316'),
    Category('3', 'Shopping', Kind.Expense, '#ec4899'),
    Category('4', 'Bills', Kind.Expense, '#6366f1'),
    Category('5', 'Entertainment', Kind.Expense, '#8b5cf6'),
    Category('6', 'Salary', Kind.Income, '#22c55e'),
    Category('7', 'Freelance', Kind.Income, '#10b981'),
)


@dataclasses.dataclass(frozen=True)
class SyncConfig:
    """Connection state for the remote Drive mirror.

    ``credential`` is an opaque reference handed to the credentials provider. It is
    excluded from ``repr`` so it never ends up in a log line.
    """
    is_connected: bool = False
    credential: str = dataclasses.field(default='', repr=False)
    file_name: str = DEFAULT_FILE_NAME
    file_id: Optional[str] = None
    last_sync: Optional[str] = None

    @property
    def can_sync(self) -> bool:
        return self.is_connected and bool(self.credential)

    def replace(self, **changes: Any) -> 'SyncConfig':
        return dataclasses.replace(self, **changes)

    def disconnected(self) -> 'SyncConfig':
        """Return a disconnected copy. The file id is kept so a later connect resumes."""
        return dataclasses.replace(self, is_connected=False, last_sync=None)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'isConnected': self.is_connected,
            'credential': self.credential,
            'fileName': self.file_name,
            'fileId': self.file_id,
            'lastSync': self.last_sync,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SyncConfig':
        return cls(
            is_connected=bool(data.get('isConnected', False)),
            credential=str(data.get('credential') or ''),
            file_name=str(data.get('fileName') or DEFAULT_FILE_NAME),
            file_id=data.get('fileId') or None,
            last_sync=data.get('lastSync') or None,
        )


@dataclasses.dataclass(frozen=True)
class Snapshot:
    """The full record set at one instant: the unit of whole-document sync."""
    transactions: Tuple[Transaction, ...] = ()
    categories: Tuple[Category, ...] = ()

    @classmethod
    def of(cls, transactions: Iterable[Transaction], categories: Iterable[Category]) -> 'Snapshot':
        return cls(tuple(transactions), tuple(categories))

    def to_document(self) -> Dict[str, Any]:
        return {
            'transactions': [t.to_dict() for t in self.transactions],
            'categories': [c.to_dict() for c in self.categories],
        }

    @classmethod
    def from_document(cls, document: Any) -> 'Snapshot':
        """Parse a ``{transactions: [...], categories: [...]}`` document.

        Raises:
            ValueError: If the document does not have that shape.
        """
        if not isinstance(document, dict):
            raise ValueError('Snapshot document must be an object.')
        transactions = document.get('transactions', [])
        categories = document.get('categories', [])
        if not isinstance(transactions, list) or not isinstance(categories, list):
            raise ValueError('"transactions" and "categories" must be lists.')
        return cls(
            tuple(Transaction.from_dict(t) for t in transactions),
            tuple(Category.from_dict(c) for c in categories),
        )
