"""Mutation façade: every local write goes through here.

After a write to the :class:`~PocketLedger.core.store.RecordStore` succeeds, and when the
sync configuration is connected, a push of the fresh snapshot is queued on a
``QThreadPool``. The caller never waits for it and never sees its failures; they are
logged and the next mutation's push acts as the retry.

Push jobs carry increasing generation numbers. The pool runs one push at a time and a
job that has not started by the time a newer one is queued is skipped, because the
newer job carries a fresher snapshot. Only the most recently queued generation may
update ``last_sync``, so a slow older push cannot regress the recorded state.

:meth:`LedgerAPI.force_pull` is the only path that installs remote state locally and it
is never triggered automatically.
"""
import datetime
import enum
import logging
import threading
from typing import Any, Optional, Set, Tuple

from PySide6 import QtCore

from . import auth
from .draft import TransactionDraft, draft_from_parsed
from .models import Category, Snapshot, SyncConfig, Transaction
from .signals import signals
from .store import RecordStore
from .sync import SyncEngine
from ..status import status

MAX_PUSH_THREADS: int = 1


def now_str() -> str:
    """Return current UTC date and time as an ISO 8601 string."""
    return datetime.datetime.now(datetime.timezone.utc).isoformat()


class PullResult(enum.StrEnum):
    """Outcome of a user-invoked pull."""
    Pulled = 'pulled'
    NotFound = 'not found'


class PushJob(QtCore.QRunnable):
    """Pushes one snapshot in the background."""

    def __init__(self, ledger: 'LedgerAPI', generation: int, snapshot: Snapshot, config: SyncConfig) -> None:
        super().__init__()
        self.setAutoDelete(False)
        self.ledger = ledger
        self.generation = generation
        self.snapshot = snapshot
        self.config = config
        self.started = False

    def run(self) -> None:
        self.started = True
        self.ledger._run_push(self)


class LedgerAPI:
    """Read/query API and write path for the presentation layer.

    Args:
        store: The record store. Its lock serializes every mutation and pull.
        engine: The sync engine. Defaults to a Drive-backed :class:`SyncEngine`.
        auth_manager: Resolves credential references. Defaults to an
            :class:`~PocketLedger.core.auth.AuthManager` over the store's settings.
        thread_pool: Pool used for background pushes.
    """

    def __init__(self, store: RecordStore, engine: Optional[SyncEngine] = None,
                 auth_manager: Optional[Any] = None, thread_pool: Optional[QtCore.QThreadPool] = None) -> None:
        self._store = store
        self._engine = engine or SyncEngine()
        self._auth = auth_manager or auth.AuthManager(store.settings)

        self._pool = thread_pool or QtCore.QThreadPool()
        self._pool.setMaxThreadCount(MAX_PUSH_THREADS)

        self._generation_lock = threading.Lock()
        self._generation = 0
        self._jobs_lock = threading.Lock()
        self._jobs: Set[PushJob] = set()
        self._accepting = True

    @property
    def store(self) -> RecordStore:
        return self._store

    @property
    def latest_generation(self) -> int:
        with self._generation_lock:
            return self._generation

    def _next_generation(self) -> int:
        with self._generation_lock:
            self._generation += 1
            return self._generation

    # Reads

    def list_transactions(self) -> Tuple[Transaction, ...]:
        return self._store.list_transactions()

    def list_categories(self) -> Tuple[Category, ...]:
        return self._store.list_categories()

    def get_currency(self) -> str:
        return self._store.get_currency()

    def get_sync_config(self) -> SyncConfig:
        return self._store.get_sync_config()

    def snapshot(self) -> Snapshot:
        return self._store.snapshot()

    def draft_from_parsed(self, payload: Any) -> TransactionDraft:
        """Turn untrusted parser output into a pre-filled, editable draft."""
        return draft_from_parsed(payload, self._store.list_categories())

    # Writes

    def add_transaction(self, t: Transaction) -> Tuple[Transaction, ...]:
        """Add a transaction, then queue a background push.

        Raises:
            status.ValidationError: If the transaction is malformed.
            status.PersistenceError: If the local write fails.
        """
        with self._store.lock:
            result = self._store.add_transaction(t)
            self._schedule_push(self._store.snapshot())
        signals.transactionsChanged.emit(list(result))
        return result

    def remove_transaction(self, transaction_id: str) -> Tuple[Transaction, ...]:
        with self._store.lock:
            result = self._store.remove_transaction(transaction_id)
            self._schedule_push(self._store.snapshot())
        signals.transactionsChanged.emit(list(result))
        return result

    def add_category(self, c: Category) -> Tuple[Category, ...]:
        with self._store.lock:
            result = self._store.add_category(c)
            self._schedule_push(self._store.snapshot())
        signals.categoriesChanged.emit(list(result))
        return result

    def remove_category(self, category_id: str) -> Tuple[Category, ...]:
        with self._store.lock:
            result = self._store.remove_category(category_id)
            self._schedule_push(self._store.snapshot())
        signals.categoriesChanged.emit(list(result))
        return result

    def set_currency(self, symbol: str) -> str:
        """Change the display currency. The symbol is not part of the synced snapshot."""
        result = self._store.set_currency(symbol)
        signals.currencyChanged.emit(result)
        return result

    # Background push

    def _schedule_push(self, snapshot: Snapshot) -> Optional[int]:
        config = self._store.get_sync_config()
        if not config.can_sync:
            return None
        if not self._accepting:
            logging.debug('Shutting down, not queuing a push.')
            return None

        generation = self._next_generation()
        job = PushJob(self, generation, snapshot, config)
        with self._jobs_lock:
            self._jobs.add(job)
        self._pool.start(job)
        logging.debug(f'Queued push generation {generation}.')
        return generation

    def _run_push(self, job: PushJob) -> None:
        try:
            if job.generation < self.latest_generation:
                logging.debug(f'Skipping push generation {job.generation}, superseded.')
                return

            signals.syncStarted.emit(job.generation)
            with status.quiet():
                credentials = self._auth.get_valid_credentials(job.config.credential)
                file_id = self._engine.push(job.snapshot, job.config.file_name, credentials)
                self._record_push(job.generation, file_id)
        except status.BaseStatusException as ex:
            logging.warning(f'Background sync (generation {job.generation}) failed: {ex}')
            signals.syncFinished.emit(False, str(ex))
        except Exception as ex:
            logging.exception(f'Background sync (generation {job.generation}) failed unexpectedly.')
            signals.syncFinished.emit(False, str(ex))
        else:
            signals.syncFinished.emit(True, '')
        finally:
            with self._jobs_lock:
                self._jobs.discard(job)

    def _record_push(self, generation: int, file_id: str) -> None:
        with self._store.lock:
            config = self._store.get_sync_config()
            if not config.is_connected:
                logging.debug('Disconnected while pushing, not recording the sync.')
                return

            changes = {}
            if config.file_id != file_id:
                changes['file_id'] = file_id
            if generation == self.latest_generation:
                changes['last_sync'] = now_str()
            else:
                logging.debug(f'Push generation {generation} finished after a newer one was queued.')

            if changes:
                self._store.update_sync_config(**changes)
        signals.syncConfigChanged.emit()

    def wait_for_sync(self, msecs: int = -1) -> bool:
        """Block until queued pushes finish. Returns False on timeout."""
        return self._pool.waitForDone(msecs)

    def shutdown(self, wait: bool = False) -> None:
        """Stop accepting pushes and drop queued ones.

        A push already in flight is abandoned unless ``wait`` is set; the next mutation
        after a restart catches the remote up.
        """
        self._accepting = False
        self._pool.clear()
        with self._jobs_lock:
            self._jobs = {job for job in self._jobs if job.started}
        if wait:
            self._pool.waitForDone()

    # Connection lifecycle

    def connect(self, credential: str, file_name: Optional[str] = None) -> SyncConfig:
        """Verify access to Drive and mark the configuration as connected.

        Raises:
            status.AuthError: If the credential cannot be used.
            status.NetworkError: If Drive is unreachable.
        """
        credentials = self._auth.get_valid_credentials(credential)
        self._engine.handshake(credentials)

        with self._store.lock:
            config = self._store.get_sync_config()
            changes = {'is_connected': True, 'credential': credential}
            if file_name and file_name != config.file_name:
                changes.update(file_name=file_name, file_id=None)
            config = self._store.set_sync_config(config.replace(**changes))

        logging.info(f'Connected to Drive, syncing to "{config.file_name}".')
        signals.syncConfigChanged.emit()
        return config

    def disconnect(self) -> SyncConfig:
        """Stop syncing. Clears the last-sync time but keeps the remote file id."""
        with self._store.lock:
            config = self._store.set_sync_config(self._store.get_sync_config().disconnected())
            self._next_generation()
        logging.info('Disconnected from Drive.')
        signals.syncConfigChanged.emit()
        return config

    def logout(self) -> SyncConfig:
        """Disconnect and forget the stored Google credentials."""
        credential = self._store.get_sync_config().credential
        config = self.disconnect()
        if credential:
            self._auth.sign_out(credential)
            config = self._store.update_sync_config(credential='')
        return config

    # User-invoked sync

    def sync_now(self) -> str:
        """Push the current snapshot synchronously, surfacing any failure.

        Returns:
            str: The remote file id.

        Raises:
            status.AuthError: If not signed in or the credential is rejected.
            status.NetworkError: If the upload fails.
        """
        with self._store.lock:
            config = self._store.get_sync_config()
            snapshot = self._store.snapshot()
            generation = self._next_generation()
        if not config.credential:
            raise status.AuthError('Not signed in.')

        credentials = self._auth.get_valid_credentials(config.credential)
        file_id = self._engine.push(snapshot, config.file_name, credentials)
        self._record_push(generation, file_id)
        return file_id

    def force_pull(self) -> PullResult:
        """Replace all local transactions and categories with the remote document.

        Holds the store lock for the whole fetch-and-replace so no mutation can
        interleave. Pushes queued before the pull are dropped.

        Returns:
            PullResult.NotFound if no remote file exists yet; local state is untouched.

        Raises:
            status.AuthError: If not signed in or the credential is rejected.
            status.NetworkError: If the download fails.
            status.ValidationError: If the remote document is malformed.
            status.PersistenceError: If the local replace fails.
        """
        with self._store.lock:
            config = self._store.get_sync_config()
            if not config.credential:
                raise status.AuthError('Not signed in.')

            credentials = self._auth.get_valid_credentials(config.credential)
            try:
                snapshot = self._engine.pull(config.file_name, credentials)
            except status.NotFoundError:
                logging.info(f'Nothing to pull yet: "{config.file_name}" does not exist.')
                return PullResult.NotFound

            self._next_generation()
            result = self._store.replace_snapshot(snapshot)
            if config.is_connected:
                self._store.update_sync_config(last_sync=now_str())

        signals.transactionsChanged.emit(list(result.transactions))
        signals.categoriesChanged.emit(list(result.categories))
        signals.dataPulled.emit()
        return PullResult.Pulled
