# comments in English; reST docstrings strict
from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class ClientInfo:
    """
    Request-scoped client metadata recorded with audit events.

    :param ip_address: Remote address as seen after proxy handling.
    :type ip_address: str | None
    :param user_agent: Raw ``User-Agent`` header.
    :type user_agent: str | None
    """

    ip_address: str | None = None
    user_agent: str | None = None
