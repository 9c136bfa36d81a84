"""
Google OAuth2 authentication and credential management.

The sync configuration only stores an opaque credential reference. This module resolves
such a reference to a ``google.oauth2.credentials.Credentials`` object, refreshing it
non-interactively when possible, and runs the browser consent flow when asked to.
"""

import json
import logging
import re
import threading
from typing import Dict, Optional

import google.auth.exceptions
import google.auth.transport.requests
import google.oauth2.credentials
import google_auth_oauthlib.flow

from ..settings import lib
from ..status import status

DEFAULT_SCOPES = ['https://www.googleapis.com/auth/drive.file', ]
DEFAULT_CREDENTIAL = 'default'


class AuthExpiredError(status.AuthError):
    """Raised when credentials are missing or expired and require interactive sign-in."""
    pass


def creds_path(settings: lib.SettingsAPI, credential: str):
    """Return the token file for a credential reference.

    Raises:
        status.AuthError: If the reference is blank or not a plain name.
    """
    if not credential or not re.fullmatch(r'[A-Za-z0-9_.-]+', credential):
        raise status.AuthError('Invalid credential reference.')
    if credential == DEFAULT_CREDENTIAL:
        return settings.creds_path
    return settings.auth_dir / f'{credential}.json'


def save_creds(settings: lib.SettingsAPI, credential: str, creds: google.oauth2.credentials.Credentials) -> None:
    """
    Save OAuth2 credentials to the token file of a credential reference.
    """
    path = creds_path(settings, credential)
    with open(path, 'w', encoding='utf-8') as token_file:
        token_file.write(creds.to_json())

    logging.debug(f'Credentials saved to {path}.')


class AuthManager:
    """Resolves credential references to valid credentials, with thread-safe refresh.

    Background pushes and the foreground thread may ask for credentials at the same
    time, so loading and refreshing happen under a lock and results are cached per
    reference.
    """

    def __init__(self, settings: lib.SettingsAPI, scopes=None):
        self.settings = settings
        self.scopes = scopes or DEFAULT_SCOPES
        self._lock = threading.Lock()
        self._creds: Dict[str, google.oauth2.credentials.Credentials] = {}

    def get_valid_credentials(self, credential: str = DEFAULT_CREDENTIAL) -> google.oauth2.credentials.Credentials:
        """
        Return valid credentials without any UI.

        Raises:
            AuthExpiredError: if no credentials exist or a full interactive flow is required.
            status.AuthError: if an auto-refresh fails.
            status.CredsInvalidError: if stored credentials are corrupt.
        """
        with self._lock:
            creds = self._creds.get(credential)
            if creds is None:
                path = creds_path(self.settings, credential)
                if not path.exists():
                    raise AuthExpiredError('No credentials found; interactive authentication required.')
                try:
                    creds = google.oauth2.credentials.Credentials.from_authorized_user_file(
                        str(path), scopes=self.scopes)
                except (ValueError, json.JSONDecodeError) as ex:
                    # Credentials file invalid → remove and require re-authentication
                    try:
                        path.unlink()
                    except OSError as unlink_ex:
                        logging.debug(f'Could not remove invalid credentials file: {unlink_ex}')
                    raise status.CredsInvalidError('Failed to load credentials.') from ex
                self._creds[credential] = creds

            if creds.expired:
                if creds.refresh_token:
                    try:
                        creds.refresh(google.auth.transport.requests.Request())
                    except google.auth.exceptions.GoogleAuthError as ex:
                        self._creds.pop(credential, None)
                        raise status.AuthError('Failed to auto-refresh credentials.') from ex
                    save_creds(self.settings, credential, creds)
                else:
                    self._creds.pop(credential, None)
                    raise AuthExpiredError('Credentials expired; interactive authentication required.')

            return creds

    def authenticate(self, credential: str = DEFAULT_CREDENTIAL, port: int = 0) -> str:
        """
        Run the browser OAuth flow and store the resulting credentials.

        Returns:
            str: The credential reference to put in the sync configuration.

        Raises:
            status.ClientSecretNotFoundError: If the client secret file is missing or invalid.
            status.AuthError: If the flow fails or is cancelled.
        """
        client_config = self.settings.load_client_secret()

        logging.debug('Starting OAuth flow...')
        flow = google_auth_oauthlib.flow.InstalledAppFlow.from_client_config(client_config, scopes=self.scopes)
        try:
            creds = flow.run_local_server(port=port)
        except Exception as ex:
            raise status.AuthError(f'OAuth flow failed: {ex}') from ex

        if not creds or not creds.valid:
            raise status.AuthError('Authentication was cancelled or no credentials obtained.')

        with self._lock:
            save_creds(self.settings, credential, creds)
            self._creds[credential] = creds
        return credential

    def sign_out(self, credential: str = DEFAULT_CREDENTIAL) -> None:
        """
        Delete stored credentials for a reference.
        """
        with self._lock:
            self._creds.pop(credential, None)
            path = creds_path(self.settings, credential)
            if path.exists():
                logging.debug(f'Deleting {path}...')
                path.unlink()
                logging.debug('Successfully signed out.')
            else:
                logging.debug('No credentials file found. No action taken.')

    def is_authorized(self, credential: Optional[str]) -> bool:
        """Return True if the reference resolves to usable credentials without any UI."""
        if not credential:
            return False
        try:
            self.get_valid_credentials(credential)
        except status.AuthError:
            return False
        return True
