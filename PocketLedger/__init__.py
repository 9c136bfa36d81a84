"""
PocketLedger: personal income and expense ledger with a Google Drive backup.

This package provides:

- :mod:`PocketLedger.core` – Record store, mutation façade, authentication and whole-document Drive sync.
- :mod:`PocketLedger.data` – Dashboard analytics (:func:`PocketLedger.data.data.get_summary`, :func:`PocketLedger.data.data.get_daily_breakdown`, :func:`PocketLedger.data.data.get_period_breakdown`) and exports.
- :mod:`PocketLedger.settings` – Local JSON persistence and Babel formatting.
- :mod:`PocketLedger.status` – Status codes and the exception taxonomy.
- :mod:`PocketLedger.log` – Logging setup with an in-memory log tank.

Use :func:`PocketLedger.open_ledger` to get a ready :class:`PocketLedger.core.ledger.LedgerAPI`.
"""

import sys

# Fail on Python < 3.11
if not (sys.version_info.major == 3 and sys.version_info.minor >= 11):
    raise RuntimeError('PocketLedger requires Python 3.11 or higher.')

__version__ = '0.1.0'
__license__ = 'GPL-3.0'
__description__ = 'PocketLedger: personal income and expense ledger with a Google Drive backup.'

from .log import log

log.setup_logging()


def open_ledger(root=None):
    """Open the persisted ledger in ``root`` (or the default data directory).

    Returns:
        PocketLedger.core.ledger.LedgerAPI: The façade the presentation layer talks to.
    """
    from .core.ledger import LedgerAPI
    from .core.store import RecordStore
    from .settings.lib import SettingsAPI

    return LedgerAPI(RecordStore(SettingsAPI(root)))
