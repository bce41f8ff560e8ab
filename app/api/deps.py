"""Relay dependency -- hands routers the process-wide relay service."""

from app.config import settings
from app.services.relay_service import RelayService, build_relay_service

_relay: RelayService | None = None


def get_relay_service() -> RelayService:
    """Return the shared :class:`RelayService`, building it on first use.

    Tests replace it through ``app.dependency_overrides``.
    """
    global _relay
    if _relay is None:
        _relay = build_relay_service(settings)
    return _relay
