"""
idp.services._shared.ports
==========================

Collection of *ports* (hexagonal interfaces) for the infrastructure the
token lifecycle core talks to.

Modules
-------
- :mod:`identity_provider`:
    Defines :class:`~.IdentityProvider` for OAuth code exchange and profile fetch.

- :mod:`state_store`:
    Defines :class:`~.OAuthStateStore` for single-use login ``state`` storage.

- :mod:`audit_sink`:
    Defines :class:`~.AuditSink` with :class:`~.AuditEvent` and
    :class:`~.AuditAction`.

Design Notes
------------
Concrete adapters (Google over ``requests``, Redis, SQL audit table) live
under ``idp.infra``. Each port ships an in-memory double for unit tests.
"""

from __future__ import annotations

from .audit_sink import AuditAction, AuditEvent, AuditSink, InMemoryAuditSink
from .identity_provider import IdentityProvider, StubIdentityProvider
from .state_store import InMemoryOAuthStateStore, OAuthStateStore

__all__ = [
    "AuditAction",
    "AuditEvent",
    "AuditSink",
    "InMemoryAuditSink",
    "IdentityProvider",
    "StubIdentityProvider",
    "InMemoryOAuthStateStore",
    "OAuthStateStore",
]
