"""
Local record store for transactions, categories, currency and sync configuration.

The store owns the canonical in-process view of all four entities and persists each one
to its own section through :class:`PocketLedger.settings.lib.SettingsAPI`.

Every mutation runs under :attr:`RecordStore.lock` and follows the same sequence:
validate, build the new value, persist it, then publish it. If persisting fails the
previous value stays published and :class:`PocketLedger.status.status.PersistenceError`
propagates. Readers get immutable tuples and never need the lock.
"""
import dataclasses
import datetime
import logging
import threading
from typing import Any, Optional, Tuple

from . import models
from .models import Category, Kind, Snapshot, SyncConfig, Transaction
from ..settings import lib
from ..status import status


def validate_transaction(t: Transaction) -> None:
    """Check a transaction before it is stored.

    Raises:
        status.ValidationError: If any field has the wrong type, the amount is negative or
            not a number, the category is blank or the kind is unknown.
    """
    if not isinstance(t, Transaction):
        raise status.ValidationError(f'Expected a Transaction, got {type(t).__name__}.')
    if not models.is_valid_amount(t.amount):
        raise status.ValidationError(f'Amount must be a non-negative number, got {t.amount!r}.')
    if not isinstance(t.category, str) or not t.category.strip():
        raise status.ValidationError('Category must not be blank.')
    if t.kind not in (Kind.Income, Kind.Expense):
        raise status.ValidationError(f'Unknown transaction type: {t.kind!r}.')
    if not isinstance(t.id, str) or not t.id:
        raise status.ValidationError(f'Transaction id must be a non-empty string, got {t.id!r}.')
    if not isinstance(t.description, str):
        raise status.ValidationError(f'Description must be a string, got {type(t.description).__name__}.')
    if not isinstance(t.date, datetime.date):
        raise status.ValidationError(f'Date must be a date, got {t.date!r}.')
    if isinstance(t.created_at, bool) or not isinstance(t.created_at, int):
        raise status.ValidationError(f'created_at must be epoch milliseconds, got {t.created_at!r}.')


def validate_category(c: Category) -> None:
    """Check a category before it is stored.

    Raises:
        status.ValidationError: If the name is blank or the color is not #RRGGBB.
    """
    if not isinstance(c, Category):
        raise status.ValidationError(f'Expected a Category, got {type(c).__name__}.')
    if not isinstance(c.name, str) or not c.name.strip():
        raise status.ValidationError('Category name must not be blank.')
    if c.kind not in (Kind.Income, Kind.Expense):
        raise status.ValidationError(f'Unknown category type: {c.kind!r}.')
    if not lib.is_valid_hex_color(c.color):
        raise status.ValidationError(f'Category color must be #RRGGBB, got {c.color!r}.')


class RecordStore:
    """Canonical, persisted view of the user's records.

    Args:
        settings: The persistence backend. Tests pass one rooted in a temporary directory.
    """

    def __init__(self, settings: lib.SettingsAPI) -> None:
        self.settings = settings
        self.lock = threading.RLock()

        self._transactions: Tuple[Transaction, ...] = ()
        self._categories: Tuple[Category, ...] = ()
        self._currency: str = models.DEFAULT_CURRENCY
        self._sync_config: SyncConfig = SyncConfig()

        self.load()

    def load(self) -> None:
        """(Re)load every section from disk, seeding default categories on first run.

        Raises:
            status.PersistenceError: If a persisted section is unreadable.
        """
        with self.lock:
            transactions = self.settings.load_section('transactions') or []
            categories = self.settings.load_section('categories')
            try:
                self._transactions = tuple(Transaction.from_dict(d) for d in transactions)
                if categories is not None:
                    self._categories = tuple(Category.from_dict(d) for d in categories)
            except ValueError as ex:
                raise status.PersistenceError(f'Stored records are malformed: {ex}') from ex

            if categories is None:
                logging.info('No categories persisted yet, seeding defaults.')
                self._persist('categories', [c.to_dict() for c in models.DEFAULT_CATEGORIES])
                self._categories = models.DEFAULT_CATEGORIES

            data = self.settings.load_section('currency')
            self._currency = data if data else models.DEFAULT_CURRENCY

            data = self.settings.load_section('sync')
            self._sync_config = SyncConfig.from_dict(data) if data else SyncConfig()

            logging.debug(
                f'Loaded {len(self._transactions)} transaction(s) and '
                f'{len(self._categories)} category(ies).'
            )

    def _persist(self, section_name: str, data: Any) -> None:
        try:
            self.settings.save_section(section_name, data)
        except status.PersistenceError:
            raise
        except (ValueError, TypeError) as ex:
            raise status.PersistenceError(f'Refused to write invalid "{section_name}": {ex}') from ex

    # Transactions

    def list_transactions(self) -> Tuple[Transaction, ...]:
        """Return all transactions, newest-creation-first."""
        return self._transactions

    def add_transaction(self, t: Transaction) -> Tuple[Transaction, ...]:
        """Validate, insert at the head and persist a transaction.

        Returns:
            The new ordered tuple of transactions.

        Raises:
            status.ValidationError: If the transaction is malformed.
            status.PersistenceError: If the write fails. Nothing changes in that case.
        """
        validate_transaction(t)
        with self.lock:
            if self._transactions and t.created_at <= self._transactions[0].created_at:
                head = self._transactions[0].created_at
                logging.debug(f'Bumping created_at of {t.id} from {t.created_at} to {head + 1}')
                t = dataclasses.replace(t, created_at=head + 1)

            updated = (t,) + self._transactions
            self._persist('transactions', [x.to_dict() for x in updated])
            self._transactions = updated
            logging.debug(f'Added transaction {t.id}; {len(updated)} total.')
            return updated

    def remove_transaction(self, transaction_id: str) -> Tuple[Transaction, ...]:
        """Remove a transaction by id. Removing an unknown id returns the set unchanged.

        Raises:
            status.PersistenceError: If the write fails.
        """
        with self.lock:
            updated = tuple(t for t in self._transactions if t.id != transaction_id)
            if len(updated) == len(self._transactions):
                logging.debug(f'Transaction {transaction_id} not found, nothing to remove.')
                return self._transactions

            self._persist('transactions', [x.to_dict() for x in updated])
            self._transactions = updated
            logging.debug(f'Removed transaction {transaction_id}; {len(updated)} left.')
            return updated

    # Categories

    def list_categories(self) -> Tuple[Category, ...]:
        return self._categories

    def find_category(self, name: str, kind: Optional[Kind] = None) -> Optional[Category]:
        """Return the first category with the given name (and kind, if given)."""
        for c in self._categories:
            if c.name.strip().lower() != name.strip().lower():
                continue
            if kind is None or c.kind == kind:
                return c
        return None

    def add_category(self, c: Category) -> Tuple[Category, ...]:
        """Append a category unless one with the same name and kind exists.

        Returns:
            The category tuple, unchanged when the category is a duplicate.

        Raises:
            status.ValidationError: If the category is malformed.
            status.PersistenceError: If the write fails.
        """
        validate_category(c)
        with self.lock:
            if any(x.matches(c.name, c.kind) for x in self._categories):
                logging.debug(f'Category "{c.name}" ({c.kind}) already exists.')
                return self._categories

            updated = self._categories + (c,)
            self._persist('categories', [x.to_dict() for x in updated])
            self._categories = updated
            logging.debug(f'Added category "{c.name}" ({c.kind}).')
            return updated

    def remove_category(self, category_id: str) -> Tuple[Category, ...]:
        """Remove a category by id. Transactions referencing its name are left as they are.

        Raises:
            status.PersistenceError: If the write fails.
        """
        with self.lock:
            updated = tuple(c for c in self._categories if c.id != category_id)
            if len(updated) == len(self._categories):
                logging.debug(f'Category {category_id} not found, nothing to remove.')
                return self._categories

            self._persist('categories', [x.to_dict() for x in updated])
            self._categories = updated
            return updated

    # Currency

    def get_currency(self) -> str:
        return self._currency

    def set_currency(self, symbol: str) -> str:
        """
        Raises:
            status.ValidationError: If the symbol is blank.
            status.PersistenceError: If the write fails.
        """
        if not isinstance(symbol, str) or not symbol.strip():
            raise status.ValidationError('Currency symbol must not be empty.')
        symbol = symbol.strip()
        with self.lock:
            self._persist('currency', symbol)
            self._currency = symbol
            return symbol

    # Sync configuration

    def get_sync_config(self) -> SyncConfig:
        return self._sync_config

    def set_sync_config(self, config: SyncConfig) -> SyncConfig:
        """
        Raises:
            status.ValidationError: If the file name is blank.
            status.PersistenceError: If the write fails.
        """
        if not isinstance(config, SyncConfig):
            raise status.ValidationError(f'Expected a SyncConfig, got {type(config).__name__}.')
        if not config.file_name or not config.file_name.strip():
            raise status.ValidationError('Sync file name must not be empty.')
        with self.lock:
            self._persist('sync', config.to_dict())
            self._sync_config = config
            return config

    def update_sync_config(self, **changes: Any) -> SyncConfig:
        """Apply field changes to the current sync configuration and persist it."""
        with self.lock:
            return self.set_sync_config(self._sync_config.replace(**changes))

    # Snapshots

    def snapshot(self) -> Snapshot:
        """Return the current transactions and categories as one consistent pair."""
        with self.lock:
            return Snapshot(self._transactions, self._categories)

    def replace_snapshot(self, snapshot: Snapshot) -> Snapshot:
        """Install a whole replacement record set, discarding the local one.

        Both sections are written; if the second write fails the first is rolled back
        so the persisted and in-memory views stay consistent.

        Raises:
            status.PersistenceError: If persisting fails.
        """
        with self.lock:
            previous_transactions = [x.to_dict() for x in self._transactions]
            self._persist('transactions', [x.to_dict() for x in snapshot.transactions])
            try:
                self._persist('categories', [x.to_dict() for x in snapshot.categories])
            except status.PersistenceError:
                logging.error('Failed to replace categories, restoring previous transactions.')
                try:
                    self._persist('transactions', previous_transactions)
                except status.PersistenceError:
                    logging.critical('Could not restore the previous transactions on disk.')
                raise

            self._transactions = tuple(snapshot.transactions)
            self._categories = tuple(snapshot.categories)
            logging.info(
                f'Replaced local records with {len(self._transactions)} transaction(s) and '
                f'{len(self._categories)} category(ies).'
            )
            return Snapshot(self._transactions, self._categories)
