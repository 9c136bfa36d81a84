"""Whole-document sync against a single named file in Google Drive.

There is no field-level merge, version vector or conflict detection. ``push`` replaces
the remote document with the full local snapshot, ``pull`` returns the full remote
snapshot, and whichever device pushed last wins. The engine holds no record state of
its own: it serializes snapshots it is given and parses the ones it downloads.
"""
import json
import logging
from typing import Any, Callable, Optional

from . import service
from .models import Snapshot
from ..status import status

ServiceFactory = Callable[[Any], Any]


def dumps(snapshot: Snapshot) -> bytes:
    """Serialize a snapshot to the remote document format."""
    return json.dumps(snapshot.to_document(), indent=2, ensure_ascii=False).encode('utf-8')


def loads(content: bytes) -> Snapshot:
    """Parse a remote document.

    Raises:
        status.ValidationError: If the content is not a valid snapshot document.
    """
    try:
        document = json.loads(content.decode('utf-8') if isinstance(content, bytes) else content)
        return Snapshot.from_document(document)
    except (UnicodeDecodeError, ValueError, OverflowError, RecursionError) as ex:
        raise status.ValidationError(f'The remote document is not a valid backup: {ex}') from ex


class SyncEngine:
    """Push and pull whole snapshots to and from one Drive file.

    Args:
        service_factory: Builds a Drive client from credentials. Defaults to
            :func:`PocketLedger.core.service.build_service`.
    """

    def __init__(self, service_factory: Optional[ServiceFactory] = None) -> None:
        self.service_factory: ServiceFactory = service_factory or service.build_service

    def _service(self, credentials: Any) -> Any:
        if credentials is None:
            raise status.AuthError('Not signed in.')
        return self.service_factory(credentials)

    def handshake(self, credentials: Any) -> None:
        """Verify that the credentials can reach Drive.

        Raises:
            status.AuthError: If the credentials are rejected.
            status.NetworkError: If Drive is unreachable.
        """
        drive = self._service(credentials)
        service.about(drive)
        logging.debug('Drive handshake succeeded.')

    def push(self, snapshot: Snapshot, file_name: str, credentials: Any) -> str:
        """Overwrite (or create) the remote file with the full snapshot.

        Args:
            snapshot: The complete record set to upload.
            file_name: Exact name of the remote file.
            credentials: Authorized Google credentials.

        Returns:
            str: The id of the file that now holds the snapshot.

        Raises:
            status.AuthError: If the credentials are rejected.
            status.NetworkError: If the upload fails.
        """
        drive = self._service(credentials)
        file_id = service.find_file(drive, file_name)
        content = dumps(snapshot)

        if file_id:
            try:
                service.update_file(drive, file_id, content)
            except status.NotFoundError:
                # Deleted between lookup and upload
                logging.info(f'"{file_name}" disappeared during push, creating it again.')
                file_id = service.create_file(drive, file_name, content)
        else:
            file_id = service.create_file(drive, file_name, content)

        logging.info(
            f'Pushed {len(snapshot.transactions)} transaction(s) and '
            f'{len(snapshot.categories)} category(ies) to "{file_name}".'
        )
        return file_id

    def pull(self, file_name: str, credentials: Any) -> Snapshot:
        """Download and parse the remote snapshot. Never merges with anything.

        Raises:
            status.NotFoundError: If no file with that name exists yet.
            status.AuthError: If the credentials are rejected.
            status.NetworkError: If the download fails.
            status.ValidationError: If the remote document is malformed.
        """
        drive = self._service(credentials)
        file_id = service.find_file(drive, file_name)
        if not file_id:
            raise status.NotFoundError(f'"{file_name}"')

        snapshot = loads(service.read_file(drive, file_id))
        logging.info(
            f'Pulled {len(snapshot.transactions)} transaction(s) and '
            f'{len(snapshot.categories)} category(ies) from "{file_name}".'
        )
        return snapshot
