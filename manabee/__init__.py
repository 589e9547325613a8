"""Manabee session & data-access layer.

Packages:
    identity_access – identity records, login state machine, auth service
    storage         – backend adapters (local, remote), facade, audit log
"""

__version__ = "0.1.0"
