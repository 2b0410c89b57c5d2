"""Request-scoped dependencies: session store, gateway and services."""

from typing import Optional

import httpx
from fastapi import Depends, Request

from hichers.services.auth import AuthService
from hichers.services.dashboard import DashboardAggregator
from hichers.services.gateway import LoyaltyGateway
from hichers.services.loyalty import SchemeManager
from hichers.services.offers import OfferManager
from hichers.session import SessionStore


def get_session_store(request: Request) -> SessionStore:
    """Session store over the signed cookie session."""
    return SessionStore(request.session)


def get_transport() -> Optional[httpx.AsyncBaseTransport]:
    """httpx transport for remote calls (None = real network; tests override)."""
    return None


def get_gateway(
    store: SessionStore = Depends(get_session_store),
    transport: Optional[httpx.AsyncBaseTransport] = Depends(get_transport),
) -> LoyaltyGateway:
    return LoyaltyGateway(store.load(), transport=transport)


def get_offer_manager(gateway: LoyaltyGateway = Depends(get_gateway)) -> OfferManager:
    return OfferManager(gateway)


def get_scheme_manager(gateway: LoyaltyGateway = Depends(get_gateway)) -> SchemeManager:
    return SchemeManager(gateway)


def get_dashboard(gateway: LoyaltyGateway = Depends(get_gateway)) -> DashboardAggregator:
    return DashboardAggregator(gateway)


def get_auth_service(
    gateway: LoyaltyGateway = Depends(get_gateway),
    store: SessionStore = Depends(get_session_store),
) -> AuthService:
    return AuthService(gateway, store)
