"""Settings package: local persistence and display formatting.

Modules:

- :mod:`PocketLedger.settings.lib` – Data directory paths, section schema and atomic JSON persistence.
- :mod:`PocketLedger.settings.locale` – Babel-based amount and weekday formatting.
"""
