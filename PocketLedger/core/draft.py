"""Validation of untrusted transaction fields, such as a language-model parser's output.

Nothing here trusts its input. Each field is checked on its own and an invalid field is
dropped rather than failing the whole payload, so the user still gets a partially
pre-filled form to correct.
"""
import dataclasses
import datetime
import json
import logging
from typing import Any, Dict, Iterable, List, Optional

from . import models
from .models import Category, Kind, Transaction
from ..status import status


@dataclasses.dataclass
class TransactionDraft:
    """An editable, possibly incomplete transaction. ``None`` marks an unknown field."""
    amount: Optional[float] = None
    kind: Optional[Kind] = None
    category: Optional[str] = None
    description: Optional[str] = None
    date: Optional[datetime.date] = None

    @property
    def missing(self) -> List[str]:
        return [f for f in ('amount', 'kind', 'category') if getattr(self, f) is None]

    @property
    def is_complete(self) -> bool:
        return not self.missing

    def to_transaction(self) -> Transaction:
        """Build a new transaction from a complete draft.

        A missing date defaults to today and a missing description to an empty string.

        Raises:
            status.ValidationError: If amount, kind or category is still missing.
        """
        if self.missing:
            raise status.ValidationError(f'Missing {", ".join(self.missing)}.')
        return Transaction.create(
            amount=self.amount,
            kind=self.kind,
            category=self.category,
            description=self.description or '',
            date=self.date,
        )


def _coerce_payload(payload: Any) -> Dict[str, Any]:
    if isinstance(payload, (str, bytes)):
        try:
            payload = json.loads(payload)
        except (ValueError, RecursionError):
            logging.debug('Parser output is not valid JSON, ignoring it.')
            return {}
    if not isinstance(payload, dict):
        return {}
    return payload


def _amount(value: Any) -> Optional[float]:
    if isinstance(value, str):
        try:
            value = float(value.strip().replace(',', ''))
        except ValueError:
            return None
    if not models.is_valid_amount(value):
        return None
    return float(value)


def _kind(value: Any) -> Optional[Kind]:
    if value is None:
        return None
    try:
        return models.parse_kind(value)
    except ValueError:
        return None


def _date(value: Any) -> Optional[datetime.date]:
    if value is None:
        return None
    try:
        return models.parse_date(value)
    except (ValueError, OverflowError):
        return None


def _category(value: Any, kind: Optional[Kind], categories: Iterable[Category]) -> Optional[str]:
    if not isinstance(value, str) or not value.strip():
        return None
    candidates = [c for c in categories if c.name.strip().lower() == value.strip().lower()]
    if kind is not None:
        candidates = [c for c in candidates if c.kind == kind] or candidates
    if not candidates:
        logging.debug(f'Unknown category "{value}" dropped from parser output.')
        return None
    return candidates[0].name


def draft_from_parsed(payload: Any, categories: Iterable[Category]) -> TransactionDraft:
    """Validate a parser payload field by field.

    Args:
        payload: A dict, a JSON string or anything else. Recognised keys are
            ``amount``, ``type`` (or ``kind``), ``category``, ``description`` and ``date``.
        categories: The known categories. A category is kept only if it matches one of
            them case-insensitively, and is normalized to the stored spelling.

    Returns:
        TransactionDraft: Never raises for malformed input.
    """
    data = _coerce_payload(payload)
    categories = tuple(categories)

    kind = _kind(data.get('type', data.get('kind')))
    description = data.get('description')

    draft = TransactionDraft(
        amount=_amount(data.get('amount')),
        kind=kind,
        category=_category(data.get('category'), kind, categories),
        description=description.strip() if isinstance(description, str) else None,
        date=_date(data.get('date')),
    )
    if draft.missing:
        logging.debug(f'Parsed draft is missing: {", ".join(draft.missing)}')
    return draft
