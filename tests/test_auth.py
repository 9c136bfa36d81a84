import json
from unittest.mock import patch

import google.auth.exceptions
import google.oauth2.credentials as cred_mod

from PocketLedger.core import auth
from PocketLedger.status import status
from tests.base import BaseTestCase


class DummyCreds:

    def __init__(self, expired=False, refresh_token='rt', refresh_error=None):
        self.expired = expired
        self.refresh_token = refresh_token
        self.refresh_error = refresh_error
        self.refreshed = 0

    def refresh(self, request):
        if self.refresh_error:
            raise self.refresh_error
        self.refreshed += 1
        self.expired = False


def patch_creds_file(dummy):
    return patch.object(
        cred_mod.Credentials,
        'from_authorized_user_file',
        new=classmethod(lambda cls, f, scopes=None: dummy)
    )


class CredsPathTest(BaseTestCase):

    def test_default_reference(self):
        self.assertEqual(auth.creds_path(self.settings, 'default'), self.settings.creds_path)

    def test_named_reference(self):
        self.assertEqual(auth.creds_path(self.settings, 'work'), self.settings.auth_dir / 'work.json')

    def test_invalid_reference(self):
        for ref in ('', '../secrets', 'a/b', None):
            with self.assertRaises(status.AuthError):
                auth.creds_path(self.settings, ref)


class TestAuthManager(BaseTestCase):
    """Unit tests for the AuthManager behavior."""

    def setUp(self):
        super().setUp()
        self.manager = auth.AuthManager(self.settings)

    def write_creds_file(self):
        self.settings.creds_path.write_text(json.dumps({'token': 't'}), encoding='utf-8')

    def test_missing_credentials_raises_AuthExpiredError(self):
        with self.assertRaises(auth.AuthExpiredError):
            self.manager.get_valid_credentials()

    def test_invalid_credentials_file_raises_CredsInvalidError(self):
        self.settings.creds_path.write_text('not a json', encoding='utf-8')
        with self.assertRaises(status.CredsInvalidError):
            self.manager.get_valid_credentials()
        self.assertFalse(self.settings.creds_path.exists(), 'Invalid credentials file was not removed')

    def test_valid_credentials_are_cached(self):
        dummy = DummyCreds()
        self.write_creds_file()
        with patch_creds_file(dummy):
            self.assertIs(self.manager.get_valid_credentials(), dummy)
        self.assertIs(self.manager.get_valid_credentials(), dummy)

    def test_auto_refresh_succeeds(self):
        dummy = DummyCreds(expired=True)
        self.write_creds_file()
        with patch_creds_file(dummy), patch.object(auth, 'save_creds') as save:
            result = self.manager.get_valid_credentials()
        self.assertIs(result, dummy)
        self.assertEqual(dummy.refreshed, 1)
        save.assert_called_once_with(self.settings, 'default', dummy)

    def test_no_refresh_token_raises_AuthExpiredError(self):
        dummy = DummyCreds(expired=True, refresh_token=None)
        self.write_creds_file()
        with patch_creds_file(dummy):
            with self.assertRaises(auth.AuthExpiredError):
                self.manager.get_valid_credentials()

    def test_refresh_failure_raises_AuthError(self):
        dummy = DummyCreds(expired=True, refresh_error=google.auth.exceptions.RefreshError('revoked'))
        self.write_creds_file()
        with patch_creds_file(dummy):
            with self.assertRaises(status.AuthError):
                self.manager.get_valid_credentials()

    def test_sign_out_removes_credentials(self):
        self.write_creds_file()
        self.manager.sign_out()
        self.assertFalse(self.settings.creds_path.exists())
        self.manager.sign_out()

    def test_is_authorized(self):
        self.assertFalse(self.manager.is_authorized(None))
        self.assertFalse(self.manager.is_authorized('default'))

        self.write_creds_file()
        with patch_creds_file(DummyCreds()):
            self.assertTrue(self.manager.is_authorized('default'))

    def test_authenticate_requires_client_secret(self):
        with self.assertRaises(status.ClientSecretNotFoundError):
            self.manager.authenticate()
