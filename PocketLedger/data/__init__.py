"""
PocketLedger data package: dashboard analytics and exports.

This package provides:

- :mod:`PocketLedger.data.data` – Pure pandas-based aggregations for the dashboard (:func:`PocketLedger.data.data.get_summary`, :func:`PocketLedger.data.data.get_daily_breakdown`, :func:`PocketLedger.data.data.get_period_breakdown`).
- :mod:`PocketLedger.data.export` – CSV export of transactions and JSON export of categories.
"""
