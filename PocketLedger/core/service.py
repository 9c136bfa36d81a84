"""Google Drive v3 integration for the backup document.

Provides the four primitives whole-document sync needs (find a file by name, create it,
overwrite it, read it) plus a cheap handshake call. Every request goes through
:func:`execute`, which translates transport and HTTP failures into the status taxonomy.
"""

import io
import logging
import socket
import ssl
from typing import Any, Dict, List, Optional

import google.auth.exceptions
import httplib2
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from googleapiclient.http import MediaIoBaseUpload

from ..status import status

MIME_TYPE: str = 'application/json'
FILE_FIELDS: str = 'files(id, name, modifiedTime)'


def build_service(credentials: Any) -> Any:
    """
    Builds a Google Drive v3 service client for the given credentials.

    Raises:
        status.NetworkError: If the discovery document cannot be loaded.
    """
    try:
        service: Any = build('drive', 'v3', credentials=credentials, cache_discovery=False)
    except (HttpError, httplib2.HttpLib2Error, OSError) as ex:
        raise status.NetworkError(f'Could not create the Drive client: {ex}') from ex
    logging.debug('Google Drive service client created successfully.')
    return service


def execute(request: Any, what: str) -> Any:
    """
    Execute a Drive API request and translate its failures.

    Args:
        request: A googleapiclient ``HttpRequest``.
        what: Short description used in error messages.

    Returns:
        The decoded response.

    Raises:
        status.AuthError: On HTTP 401/403 or when credentials cannot be refreshed.
        status.NotFoundError: On HTTP 404.
        status.NetworkError: On any other HTTP error or transport failure.
    """
    try:
        return request.execute()
    except HttpError as ex:
        stat: Optional[int] = ex.resp.status if ex.resp else None
        if stat in (401, 403):
            raise status.AuthError(f'Access denied (HTTP {stat}) while trying to {what}.') from ex
        if stat == 404:
            raise status.NotFoundError(f'Not found (HTTP 404) while trying to {what}.') from ex
        raise status.NetworkError(f'Drive error (HTTP {stat}) while trying to {what}: {ex}') from ex
    except google.auth.exceptions.RefreshError as ex:
        raise status.AuthError(f'Credentials could not be refreshed while trying to {what}.') from ex
    except socket.timeout as ex:
        raise status.NetworkError(f'Timeout while trying to {what}: {ex}') from ex
    except ssl.SSLError as ex:
        raise status.NetworkError(f'SSL error while trying to {what}: {ex}') from ex
    except (httplib2.HttpLib2Error, OSError) as ex:
        raise status.NetworkError(f'Connection error while trying to {what}: {ex}') from ex


def escape_query_value(value: str) -> str:
    """Escape a value for use inside a single-quoted Drive query string."""
    return value.replace('\\', '\\\\').replace("'", "\\'")


def find_file(service: Any, file_name: str) -> Optional[str]:
    """
    Return the id of a non-trashed file named exactly ``file_name``, or None.

    If several files share the name the first one listed is returned. Callers must not
    rely on which one that is.
    """
    query = f"name = '{escape_query_value(file_name)}' and trashed = false"
    logging.debug(f'Looking up "{file_name}" in Drive.')
    result: Dict[str, Any] = execute(
        service.files().list(q=query, spaces='drive', fields=FILE_FIELDS),
        f'look up "{file_name}"'
    )
    files: List[Dict[str, Any]] = result.get('files', [])
    if not files:
        logging.debug(f'No file named "{file_name}" found.')
        return None
    if len(files) > 1:
        logging.warning(f'{len(files)} files named "{file_name}" found; using {files[0]["id"]}.')
    return files[0]['id']


def _media(content: bytes) -> MediaIoBaseUpload:
    return MediaIoBaseUpload(io.BytesIO(content), mimetype=MIME_TYPE, resumable=False)


def create_file(service: Any, file_name: str, content: bytes) -> str:
    """
    Create a new file with the given content and return its id.
    """
    metadata = {'name': file_name, 'mimeType': MIME_TYPE}
    result: Dict[str, Any] = execute(
        service.files().create(body=metadata, media_body=_media(content), fields='id'),
        f'create "{file_name}"'
    )
    file_id: str = result['id']
    logging.debug(f'Created "{file_name}" ({len(content)} bytes).')
    return file_id


def update_file(service: Any, file_id: str, content: bytes) -> None:
    """
    Overwrite the entire content of an existing file.
    """
    execute(
        service.files().update(fileId=file_id, body={'mimeType': MIME_TYPE}, media_body=_media(content), fields='id'),
        'overwrite the backup file'
    )
    logging.debug(f'Overwrote backup file ({len(content)} bytes).')


def read_file(service: Any, file_id: str) -> bytes:
    """
    Download the full content of a file.
    """
    content: Any = execute(service.files().get_media(fileId=file_id), 'download the backup file')
    if isinstance(content, str):
        content = content.encode('utf-8')
    logging.debug(f'Downloaded backup file ({len(content)} bytes).')
    return content


def about(service: Any) -> Dict[str, Any]:
    """
    Return the authorized user's basic Drive profile. Used as a connection handshake.
    """
    return execute(service.about().get(fields='user(displayName, emailAddress)'), 'verify Drive access')
