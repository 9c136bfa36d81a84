"""Settings library for the local record namespaces.

Provides:
    - Application paths (data directory, auth directory, client secret and credentials).
    - Schema validation for the four persisted sections.
    - Loading and atomically saving each section as its own JSON document.

A section whose file does not exist is a valid state meaning "use defaults".
"""

import json
import logging
import os
import pathlib
import re
import tempfile
from typing import Any, Dict, List, Optional

from PySide6 import QtCore

from ..status import status

app_name: str = 'PocketLedger'

DATA_DIR_ENV_KEY: str = 'POCKETLEDGER_DATA_DIR'

KIND_VALUES: List[str] = ['income', 'expense']


def is_valid_hex_color(value: str) -> bool:
    """Check if a string is a valid hexadecimal color in #RRGGBB format.

    Args:
        value (str): Color string to validate.

    Returns:
        bool: True if value matches '#RRGGBB', False otherwise.
    """
    return isinstance(value, str) and bool(re.fullmatch(r'#[0-9A-Fa-f]{6}', value))


STORE_SCHEMA: Dict[str, Any] = {
    'transactions': {
        'type': list,
        'file': 'transactions.json',
        'item_schema': {
            'id': {'type': str, 'required': True},
            'amount': {'type': (int, float), 'required': True},
            'type': {'type': str, 'required': True, 'allowed_values': KIND_VALUES},
            'category': {'type': str, 'required': True},
            'description': {'type': str, 'required': False},
            'date': {'type': str, 'required': True},
            'createdAt': {'type': int, 'required': True},
        }
    },
    'categories': {
        'type': list,
        'file': 'categories.json',
        'item_schema': {
            'id': {'type': str, 'required': True},
            'name': {'type': str, 'required': True},
            'type': {'type': str, 'required': True, 'allowed_values': KIND_VALUES},
            'color': {'type': str, 'required': True, 'format': 'hexcolor'},
        }
    },
    'currency': {
        'type': str,
        'file': 'currency.json',
    },
    'sync': {
        'type': dict,
        'file': 'sync.json',
        'item_schema': {
            'isConnected': {'type': bool, 'required': True},
            'credential': {'type': str, 'required': False},
            'fileName': {'type': str, 'required': True},
            'fileId': {'type': (str, type(None)), 'required': False},
            'lastSync': {'type': (str, type(None)), 'required': False},
        }
    },
}


def _validate_record(section_name: str, index: Any, record: Any, item_schema: Dict[str, Any]) -> None:
    """Validate a single record against an item schema.

    Raises:
        TypeError: If the record is not a dict or a field has the wrong type.
        ValueError: If a required field is missing or fails a format check.
    """
    if not isinstance(record, dict):
        msg = f'{section_name}[{index}] must be a dict.'
        logging.error(msg)
        raise TypeError(msg)
    for field, field_specs in item_schema.items():
        if field_specs['required'] and field not in record:
            msg = f'{section_name}[{index}] missing "{field}".'
            logging.error(msg)
            raise ValueError(msg)
        if field not in record:
            continue
        value = record[field]
        if isinstance(value, bool) and field_specs['type'] is not bool:
            msg = f'{section_name}[{index}] field "{field}" must not be a bool.'
            logging.error(msg)
            raise TypeError(msg)
        if not isinstance(value, field_specs['type']):
            msg = (
                f'{section_name}[{index}] field "{field}" must be {field_specs["type"]}, '
                f'got {type(value)}.'
            )
            logging.error(msg)
            raise TypeError(msg)
        allowed = field_specs.get('allowed_values')
        if allowed and value not in allowed:
            msg = f'{section_name}[{index}] field "{field}" must be one of {allowed}, got "{value}".'
            logging.error(msg)
            raise ValueError(msg)
        if field_specs.get('format') == 'hexcolor' and not is_valid_hex_color(value):
            msg = (
                f'{section_name}[{index}] field "{field}" must be a valid '
                f'hex color (#RRGGBB), got "{value}".'
            )
            logging.error(msg)
            raise ValueError(msg)


def validate_section(section_name: str, data: Any) -> None:
    """Validate section data against :data:`STORE_SCHEMA`.

    Args:
        section_name: One of the schema keys.
        data: The decoded document.

    Raises:
        ValueError: If the section is unknown, a value is missing or out of range.
        TypeError: If a value has the wrong type.
    """
    if section_name not in STORE_SCHEMA:
        msg = f'Unknown section: "{section_name}"'
        logging.error(msg)
        raise ValueError(msg)

    specs = STORE_SCHEMA[section_name]
    if not isinstance(data, specs['type']):
        msg = f'Section "{section_name}" must be {specs["type"]}, got {type(data)}.'
        logging.error(msg)
        raise TypeError(msg)

    if section_name == 'currency':
        if not data.strip():
            raise ValueError('Currency symbol must not be empty.')
        return

    item_schema = specs['item_schema']
    if isinstance(data, list):
        for idx, record in enumerate(data):
            _validate_record(section_name, idx, record, item_schema)
    else:
        _validate_record(section_name, '-', data, item_schema)


class ConfigPaths:
    """Manage application file paths and ensure the data directories exist.

    The data directory defaults to Qt's ``AppDataLocation``. It can be redirected with
    the ``root`` argument or the ``POCKETLEDGER_DATA_DIR`` environment variable.
    """

    def __init__(self, root: Optional[str] = None) -> None:
        if root is None:
            root = os.environ.get(DATA_DIR_ENV_KEY) or None

        if root is None:
            QtCore.QCoreApplication.setApplicationName(app_name)
            QtCore.QCoreApplication.setOrganizationName('')
            logging.debug(f'Setting application name: {app_name}')

            p = QtCore.QStandardPaths.writableLocation(QtCore.QStandardPaths.AppDataLocation)
            root = p

        self.data_dir: pathlib.Path = pathlib.Path(root)
        logging.debug(f'Using data directory: {self.data_dir}')

        self.auth_dir: pathlib.Path = self.data_dir / 'auth'
        self.client_secret_path: pathlib.Path = self.data_dir / 'client_secret.json'
        self.creds_path: pathlib.Path = self.auth_dir / 'creds.json'

        self._verify_and_prepare()

    def _verify_and_prepare(self) -> None:
        """Create missing data and auth directories."""
        if not self.data_dir.exists():
            logging.debug(f'Creating data directory: {self.data_dir}')
            self.data_dir.mkdir(parents=True, exist_ok=True)

        if not self.auth_dir.exists():
            logging.debug(f'Creating auth directory: {self.auth_dir}')
            self.auth_dir.mkdir(parents=True, exist_ok=True)

    def section_path(self, section_name: str) -> pathlib.Path:
        """Return the file path backing a section.

        Raises:
            ValueError: If the section is unknown.
        """
        if section_name not in STORE_SCHEMA:
            msg: str = f'Unknown section: "{section_name}"'
            logging.error(msg)
            raise ValueError(msg)
        return self.data_dir / STORE_SCHEMA[section_name]['file']


class SettingsAPI(ConfigPaths):
    """
    Provides an interface to load/save the persisted sections and the OAuth client secret.

    Each section lives in its own JSON file, so a failed write to one never corrupts another.
    """
    required_client_secret_keys: List[str] = ['client_id', 'project_id', 'client_secret', 'auth_uri', 'token_uri']

    def has_section(self, section_name: str) -> bool:
        """Return True if the section has ever been persisted."""
        return self.section_path(section_name).exists()

    def load_section(self, section_name: str) -> Optional[Any]:
        """Load and validate a section from disk.

        Returns:
            The decoded document, or None if the section was never persisted.

        Raises:
            status.PersistenceError: If the file cannot be read or fails validation.
        """
        path = self.section_path(section_name)
        if not path.exists():
            logging.debug(f'Section "{section_name}" not persisted yet, using defaults.')
            return None

        logging.debug(f'Loading section "{section_name}" from "{path}"')
        try:
            with path.open('r', encoding='utf-8') as f:
                data: Any = json.load(f)
            validate_section(section_name, data)
            return data
        except (OSError, ValueError, TypeError) as ex:
            raise status.PersistenceError(f'Could not load "{section_name}": {ex}') from ex

    def save_section(self, section_name: str, data: Any) -> None:
        """Validate and durably persist a section.

        The document is written to a temporary file in the same directory, flushed to
        disk and moved over the previous file, so a failure leaves the old file intact.

        Raises:
            ValueError: If section_name is not recognized or data is invalid.
            status.PersistenceError: For I/O errors when writing to file.
        """
        path = self.section_path(section_name)
        validate_section(section_name, data)

        logging.debug(f'Saving section "{section_name}" to "{path}"')
        tmp_name = None
        try:
            fd, tmp_name = tempfile.mkstemp(prefix=f'.{path.stem}.', suffix='.tmp', dir=str(self.data_dir))
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                json.dump(data, f, indent=4, ensure_ascii=False)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, path)
            tmp_name = None
        except OSError as ex:
            raise status.PersistenceError(f'Could not save "{section_name}": {ex}') from ex
        finally:
            if tmp_name and os.path.exists(tmp_name):
                os.unlink(tmp_name)

    def delete_section(self, section_name: str) -> None:
        """Remove a section file so that the next load falls back to defaults."""
        path = self.section_path(section_name)
        if path.exists():
            logging.debug(f'Deleting section "{section_name}" at "{path}"')
            path.unlink()

    def load_client_secret(self) -> Dict[str, Any]:
        """Load client_secret.json from disk and validate required OAuth fields.

        Returns:
            The loaded client secret data dictionary.

        Raises:
            status.ClientSecretNotFoundError: If client_secret.json is missing or invalid.
        """
        logging.debug(f'Loading client_secret from "{self.client_secret_path}"')
        if not self.client_secret_path.exists():
            raise status.ClientSecretNotFoundError

        try:
            with self.client_secret_path.open('r', encoding='utf-8') as f:
                data: Dict[str, Any] = json.load(f)
        except (OSError, ValueError) as ex:
            raise status.ClientSecretNotFoundError(f'Could not read client secret: {ex}') from ex

        self.validate_client_secret(data)
        return data

    def validate_client_secret(self, data: Dict[str, Any]) -> str:
        """Validate that the client configuration contains required OAuth credentials.

        Args:
            data (dict): Client secret data to validate.

        Returns:
            str: Section key used ('installed' or 'web').

        Raises:
            status.ClientSecretNotFoundError: If no valid section exists or required fields are missing.
        """
        key = next((k for k in ('installed', 'web') if k in data), None)
        if not key:
            raise status.ClientSecretNotFoundError('Missing "installed" or "web" section in client_secret.')

        logging.debug(f'Found "{key}" section in client_secret.')

        missing: List[str] = [k for k in self.required_client_secret_keys if k not in data[key]]
        if missing:
            raise status.ClientSecretNotFoundError(
                f'Missing required fields in the \'{key}\' section: {missing}.'
            )
        return key
