"""
Logging subsystem for application diagnostics.

Modules:

- :mod:`PocketLedger.log.log` – Root logger setup, the in-memory TankHandler and the Qt message bridge.
"""
