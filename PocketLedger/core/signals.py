"""Application-wide Qt signals for PocketLedger.

The presentation layer connects to these to learn about changes made through
:class:`PocketLedger.core.ledger.LedgerAPI`. Signals emitted from the background
push worker are delivered across threads, so receivers living in another thread
need a running event loop.
"""
from PySide6 import QtCore


class Signals(QtCore.QObject):
    """Centralized Qt signals for record, configuration and sync events."""
    transactionsChanged = QtCore.Signal(object)
    categoriesChanged = QtCore.Signal(object)
    currencyChanged = QtCore.Signal(str)
    syncConfigChanged = QtCore.Signal()

    syncStarted = QtCore.Signal(int)  # generation
    syncFinished = QtCore.Signal(bool, str)  # success, message
    dataPulled = QtCore.Signal()

    error = QtCore.Signal(str)


signals = Signals()
