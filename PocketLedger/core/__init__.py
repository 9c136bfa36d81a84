"""
Core package for PocketLedger providing the record store and Drive sync.

This package includes:

- :mod:`PocketLedger.core.models` – Frozen record types: transactions, categories, sync configuration and snapshots.
- :mod:`PocketLedger.core.store` – Canonical, persisted, lock-serialized record store.
- :mod:`PocketLedger.core.auth` – Google OAuth2 authentication and credential management.
- :mod:`PocketLedger.core.service` – Google Drive v3 primitives with error translation.
- :mod:`PocketLedger.core.sync` – Whole-document push and pull of snapshots.
- :mod:`PocketLedger.core.ledger` – Mutation façade coupling local writes to background pushes.
- :mod:`PocketLedger.core.draft` – Validation of untrusted parser output into editable drafts.
- :mod:`PocketLedger.core.signals` – Qt signals for the presentation layer.
"""
