import socket
import ssl

import google.auth.exceptions
import httplib2

from PocketLedger.core import service
from PocketLedger.status import status
from tests.base import BaseTestCase, FakeDrive, http_error


class RaisingRequest:

    def __init__(self, ex):
        self.ex = ex

    def execute(self):
        raise self.ex


class ExecuteTest(BaseTestCase):
    """Transport and HTTP failures map onto the status taxonomy."""

    def assertTranslated(self, ex, expected):
        with self.assertRaises(expected) as ctx:
            service.execute(RaisingRequest(ex), 'test')
        self.assertIs(ctx.exception.__cause__, ex)

    def test_success_returns_response(self):
        class Request:
            def execute(self):
                return {'ok': True}

        self.assertEqual(service.execute(Request(), 'test'), {'ok': True})

    def test_unauthorized(self):
        self.assertTranslated(http_error(401), status.AuthError)

    def test_forbidden(self):
        self.assertTranslated(http_error(403), status.AuthError)

    def test_not_found(self):
        self.assertTranslated(http_error(404), status.NotFoundError)

    def test_server_error(self):
        self.assertTranslated(http_error(500), status.NetworkError)

    def test_refresh_error(self):
        self.assertTranslated(google.auth.exceptions.RefreshError('revoked'), status.AuthError)

    def test_timeout(self):
        self.assertTranslated(socket.timeout('timed out'), status.NetworkError)

    def test_ssl_error(self):
        self.assertTranslated(ssl.SSLError('bad handshake'), status.NetworkError)

    def test_connection_errors(self):
        self.assertTranslated(httplib2.ServerNotFoundError('no dns'), status.NetworkError)
        self.assertTranslated(ConnectionResetError('reset'), status.NetworkError)


class DriveHelpersTest(BaseTestCase):

    def setUp(self):
        super().setUp()
        self.drive = FakeDrive()

    def test_escape_query_value(self):
        self.assertEqual(service.escape_query_value("Bob's"), "Bob\\'s")
        self.assertEqual(service.escape_query_value('a\\b'), 'a\\\\b')

    def test_find_file_returns_none_when_missing(self):
        self.assertIsNone(service.find_file(self.drive, 'ledger.json'))

    def test_find_file_warns_on_duplicates(self):
        first = self.drive.put('ledger.json', b'{}')
        self.drive.put('ledger.json', b'{}')
        with self.assertLogs(level='WARNING') as logs:
            self.assertEqual(service.find_file(self.drive, 'ledger.json'), first)
        self.assertTrue(any('2 files named' in line for line in logs.output))

    def test_create_update_read(self):
        file_id = service.create_file(self.drive, 'ledger.json', b'{"a": 1}')
        self.assertEqual(service.read_file(self.drive, file_id), b'{"a": 1}')

        service.update_file(self.drive, file_id, b'{"a": 2}')
        self.assertEqual(service.read_file(self.drive, file_id), b'{"a": 2}')

    def test_update_of_deleted_file_raises_not_found(self):
        with self.assertRaises(status.NotFoundError):
            service.update_file(self.drive, 'gone', b'{}')

    def test_about(self):
        self.assertEqual(service.about(self.drive)['user']['emailAddress'], 'test@example.com')
