import datetime
import logging
import threading

from PySide6 import QtCore

from PocketLedger.core import models
from PocketLedger.core.ledger import PullResult, PushJob
from PocketLedger.core.models import Category, Kind, Snapshot, Transaction
from PocketLedger.core.signals import signals
from PocketLedger.core.store import RecordStore
from PocketLedger.status import status
from tests.base import BaseLedgerTestCase, http_error


def make_transaction(amount=10.0, category='Food', kind=Kind.Expense):
    return Transaction.create(amount=amount, kind=kind, category=category, date=datetime.date(2025, 3, 1))


class LedgerLocalTest(BaseLedgerTestCase):
    """Mutations while not connected: local only."""

    def test_add_without_connection_does_not_push(self):
        t = make_transaction()
        self.assertEqual(self.ledger.add_transaction(t), (t,))
        self.wait()
        self.assertEqual(self.drive.requests, 0)

    def test_reads_pass_through(self):
        t = make_transaction()
        self.ledger.add_transaction(t)
        self.assertEqual(self.ledger.list_transactions(), (t,))
        self.assertEqual(self.ledger.list_categories(), models.DEFAULT_CATEGORIES)
        self.assertEqual(self.ledger.snapshot(), Snapshot((t,), models.DEFAULT_CATEGORIES))

    def test_validation_error_propagates(self):
        with self.assertRaises(status.ValidationError):
            self.ledger.add_transaction(make_transaction(amount=-5))
        self.assertEqual(self.ledger.list_transactions(), ())

    def test_remove_absent_ids_is_noop(self):
        self.ledger.add_transaction(make_transaction())
        before = self.ledger.snapshot()
        self.ledger.remove_transaction('missing')
        self.ledger.remove_category('missing')
        self.assertEqual(self.ledger.snapshot(), before)

    def test_set_currency_emits_signal(self):
        received = []

        def _slot(symbol):
            received.append(symbol)

        signals.currencyChanged.connect(_slot)
        try:
            self.assertEqual(self.ledger.set_currency('£'), '£')
        finally:
            signals.currencyChanged.disconnect(_slot)
        self.assertEqual(received, ['£'])
        self.assertEqual(self.ledger.get_currency(), '£')

    def test_transactions_changed_signal(self):
        received = []

        def _slot(items):
            received.append(items)

        signals.transactionsChanged.connect(_slot)
        try:
            t = make_transaction()
            self.ledger.add_transaction(t)
        finally:
            signals.transactionsChanged.disconnect(_slot)
        self.assertEqual(received, [[t]])

    def test_concurrent_adds_never_drop_or_duplicate(self):
        n = 40
        transactions = [make_transaction(amount=i) for i in range(n)]
        errors = []

        def _add(t):
            try:
                self.ledger.add_transaction(t)
            except Exception as ex:
                errors.append(ex)

        threads = [threading.Thread(target=_add, args=(t,)) for t in transactions]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        self.assertEqual(errors, [])
        result = self.ledger.list_transactions()
        self.assertEqual(len(result), n)
        self.assertEqual({t.id for t in result}, {t.id for t in transactions})

        created = [t.created_at for t in result]
        self.assertEqual(created, sorted(created, reverse=True))
        self.assertEqual(len(set(created)), n)
        self.assertEqual(len(RecordStore(self.settings).list_transactions()), n)


class LedgerConnectionTest(BaseLedgerTestCase):

    def test_connect_persists_connected_config(self):
        config = self.ledger.connect('default', 'my-ledger.json')
        self.assertTrue(config.is_connected)
        self.assertEqual(config.credential, 'default')
        self.assertEqual(config.file_name, 'my-ledger.json')
        self.assertEqual(RecordStore(self.settings).get_sync_config(), config)

    def test_failed_handshake_leaves_config_disconnected(self):
        self.drive.fail_with = http_error(401)
        with self.assertRaises(status.AuthError):
            self.ledger.connect('default')
        self.assertFalse(self.ledger.get_sync_config().is_connected)

    def test_failed_credentials_leave_config_disconnected(self):
        self.auth.error = status.AuthError('expired')
        with self.assertRaises(status.AuthError):
            self.ledger.connect('default')
        self.assertFalse(self.ledger.get_sync_config().is_connected)
        self.assertEqual(self.drive.requests, 0)

    def test_connect_to_another_file_forgets_old_file_id(self):
        self.store.update_sync_config(file_id='old')
        config = self.ledger.connect('default', 'other.json')
        self.assertIsNone(config.file_id)

    def test_disconnect_keeps_file_id_and_clears_last_sync(self):
        self.ledger.connect('default')
        self.ledger.add_transaction(make_transaction())
        self.wait()
        self.assertIsNotNone(self.ledger.get_sync_config().last_sync)

        config = self.ledger.disconnect()
        self.assertFalse(config.is_connected)
        self.assertIsNone(config.last_sync)
        self.assertEqual(config.file_id, self.drive.files_named(config.file_name)[0])

    def test_logout_signs_out(self):
        self.ledger.connect('default')
        config = self.ledger.logout()
        self.assertFalse(config.is_connected)
        self.assertEqual(config.credential, '')
        self.assertEqual(self.auth.signed_out, ['default'])


class LedgerBackgroundSyncTest(BaseLedgerTestCase):

    def setUp(self):
        super().setUp()
        self.ledger.connect('default')

    def test_add_pushes_snapshot_in_background(self):
        t = make_transaction()
        self.ledger.add_transaction(t)
        self.wait()

        config = self.ledger.get_sync_config()
        self.assertEqual(self.drive.document(config.file_name), self.ledger.snapshot().to_document())
        self.assertEqual(config.file_id, self.drive.files_named(config.file_name)[0])
        self.assertIsNotNone(config.last_sync)

    def test_remote_ends_with_latest_snapshot(self):
        for i in range(5):
            self.ledger.add_transaction(make_transaction(amount=i))
        self.ledger.add_category(Category.create('Travel', Kind.Expense, '#0ea5e9'))
        self.wait()

        config = self.ledger.get_sync_config()
        self.assertEqual(self.drive.document(config.file_name), self.ledger.snapshot().to_document())
        self.assertEqual(len(self.drive.files_named(config.file_name)), 1)

    def test_background_failure_is_swallowed(self):
        self.drive.fail_with = http_error(500)
        t = make_transaction()
        self.assertEqual(self.ledger.add_transaction(t), (t,))
        self.wait()

        config = self.ledger.get_sync_config()
        self.assertTrue(config.is_connected)
        self.assertIsNone(config.last_sync)
        self.assertEqual(self.ledger.list_transactions(), (t,))

    def test_background_failure_is_not_reported_as_an_error(self):
        errors = []

        def _slot(message):
            errors.append(message)

        self.drive.fail_with = http_error(401)
        signals.error.connect(_slot)
        try:
            with self.assertLogs(level=logging.WARNING) as logs:
                self.ledger.add_transaction(make_transaction())
                self.wait()
            QtCore.QCoreApplication.processEvents()
        finally:
            signals.error.disconnect(_slot)

        self.assertEqual(errors, [])
        self.assertEqual(len(logs.records), 1)
        self.assertEqual(logs.records[0].levelno, logging.WARNING)
        self.assertIn('Background sync', logs.records[0].getMessage())

    def test_next_mutation_retries(self):
        self.drive.fail_with = http_error(500)
        self.ledger.add_transaction(make_transaction())
        self.wait()

        self.drive.fail_with = None
        self.ledger.add_transaction(make_transaction())
        self.wait()
        document = self.drive.document(self.ledger.get_sync_config().file_name)
        self.assertEqual(len(document['transactions']), 2)

    def test_superseded_job_is_skipped(self):
        stale = PushJob(self.ledger, self.ledger._next_generation(), Snapshot(), self.ledger.get_sync_config())
        self.ledger._next_generation()
        stale.run()
        self.assertEqual(self.drive.requests, 1)  # the connect handshake only

    def test_older_generation_does_not_record_last_sync(self):
        older = self.ledger._next_generation()
        self.ledger._next_generation()
        self.ledger._record_push(older, 'file-9')

        config = self.ledger.get_sync_config()
        self.assertEqual(config.file_id, 'file-9')
        self.assertIsNone(config.last_sync)

    def test_push_after_disconnect_is_not_recorded(self):
        generation = self.ledger._next_generation()
        self.ledger.disconnect()
        self.ledger._record_push(generation, 'file-9')
        self.assertIsNone(self.ledger.get_sync_config().file_id)

    def test_shutdown_stops_queuing_pushes(self):
        self.ledger.shutdown(wait=True)
        self.ledger.add_transaction(make_transaction())
        self.wait()
        self.assertEqual(self.drive.files_named(self.ledger.get_sync_config().file_name), [])

    def test_shutdown_while_pushes_finish(self):
        for i in range(20):
            self.ledger.add_transaction(make_transaction(amount=i))
        self.ledger.shutdown(wait=True)
        self.assertEqual(self.ledger._jobs, set())

    def test_sync_now(self):
        t = make_transaction()
        self.store.add_transaction(t)
        file_id = self.ledger.sync_now()

        config = self.ledger.get_sync_config()
        self.assertEqual(config.file_id, file_id)
        self.assertIsNotNone(config.last_sync)
        self.assertEqual(self.drive.document(config.file_name)['transactions'], [t.to_dict()])

    def test_sync_now_surfaces_errors(self):
        self.drive.fail_with = http_error(503)
        with self.assertRaises(status.NetworkError):
            self.ledger.sync_now()


class LedgerPullTest(BaseLedgerTestCase):

    def setUp(self):
        super().setUp()
        self.ledger.connect('default')
        self.local = make_transaction(category='Food')
        self.ledger.add_transaction(self.local)
        self.wait()
        self.file_name = self.ledger.get_sync_config().file_name

    def test_pull_without_remote_file_leaves_local_state(self):
        self.drive.stored.clear()
        before = self.ledger.snapshot()

        self.assertEqual(self.ledger.force_pull(), PullResult.NotFound)
        self.assertEqual(self.ledger.snapshot(), before)

    def test_pull_replaces_local_state(self):
        remote = Snapshot.of(
            [Transaction('r1', 3000.0, Kind.Income, 'Salary', '', datetime.date(2025, 3, 1), 5)],
            [Category('c1', 'Salary', Kind.Income, '#22c55e')],
        )
        self.drive.stored.clear()
        self.drive.put_snapshot(self.file_name, remote)

        pulled = []

        def _slot():
            pulled.append(True)

        signals.dataPulled.connect(_slot)
        try:
            self.assertEqual(self.ledger.force_pull(), PullResult.Pulled)
        finally:
            signals.dataPulled.disconnect(_slot)

        self.assertEqual(self.ledger.snapshot(), remote)
        self.assertEqual(RecordStore(self.settings).snapshot(), remote)
        self.assertEqual(pulled, [True])

    def test_pull_of_malformed_document_leaves_local_state(self):
        self.drive.stored.clear()
        self.drive.put(self.file_name, b'{"transactions": "nope"}')
        before = self.ledger.snapshot()

        with self.assertRaises(status.ValidationError):
            self.ledger.force_pull()
        self.assertEqual(self.ledger.snapshot(), before)

    def test_pull_network_error_propagates(self):
        self.drive.fail_with = http_error(500)
        with self.assertRaises(status.NetworkError):
            self.ledger.force_pull()

    def test_pull_requires_credential(self):
        self.ledger.logout()
        with self.assertRaises(status.AuthError):
            self.ledger.force_pull()

    def test_pull_does_not_push_back(self):
        requests = self.drive.requests
        self.ledger.force_pull()
        self.wait()
        # find + download only
        self.assertEqual(self.drive.requests, requests + 2)
