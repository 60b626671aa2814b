"""
homestay_services -- request-scoped facade and gateway boundary.

``HomestayPortal`` is the entrypoint for the API layer; each call is one
transaction.  ``GatewayCallbackHandler`` applies decoded payment gateway
notices through the portal.
"""

from homestay_services.gateway import (
    CallbackOutcome,
    GatewayCallbackHandler,
    SettlementNotice,
)
from homestay_services.portal import HomestayPortal, UnitOfWork

__all__ = [
    "CallbackOutcome",
    "GatewayCallbackHandler",
    "HomestayPortal",
    "SettlementNotice",
    "UnitOfWork",
]
