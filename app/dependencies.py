"""Proveedores para `Depends`: cada colaborador se arma una vez desde `Settings`."""
from functools import lru_cache
from typing import Callable, Optional

from fastapi import Depends, Header
from firebase_admin import auth

from app.services.access_gate import AccessGate
from app.services.memberships import MembershipService
from app.services.reconciler import MembershipReconciler
from app.utils.errors import ForbiddenError, UnauthorizedError
from app.utils.firebase_config import init_firebase
from app.utils.gateway import MercadoPagoGateway
from app.utils.settings import Settings
from app.utils.store import FirestoreStore
from app.utils.timeutils import now_local


@lru_cache
def get_settings() -> Settings:
    return Settings.from_env()


@lru_cache
def get_store() -> FirestoreStore:
    return FirestoreStore(init_firebase(get_settings()))


@lru_cache
def get_gateway() -> MercadoPagoGateway:
    return MercadoPagoGateway(get_settings())


def get_clock(settings: Settings = Depends(get_settings)) -> Callable:
    tz = settings.tz
    return lambda: now_local(tz)


def get_reconciler(store=Depends(get_store), settings: Settings = Depends(get_settings), clock=Depends(get_clock)) -> MembershipReconciler:
    return MembershipReconciler(store, settings.tz, clock, settings.daily_price_threshold)


def get_access_gate(store=Depends(get_store), settings: Settings = Depends(get_settings), clock=Depends(get_clock)) -> AccessGate:
    return AccessGate(store, settings.tz, clock)


def get_membership_service(store=Depends(get_store), settings: Settings = Depends(get_settings), clock=Depends(get_clock)) -> MembershipService:
    return MembershipService(store, settings.tz, clock)


def require_admin(authorization: Optional[str] = Header(default=None), store=Depends(get_store)) -> str:
    """Sólo los uid presentes en la colección `admin` pueden cambiar membresías."""
    if not authorization or not authorization.lower().startswith("bearer "):
        raise UnauthorizedError("Falta el token de autenticación")
    token = authorization.split(" ", 1)[1].strip()
    try:
        decoded = auth.verify_id_token(token)
    except (ValueError, auth.InvalidIdTokenError, auth.ExpiredIdTokenError, auth.RevokedIdTokenError) as exc:
        raise UnauthorizedError(f"Token inválido: {exc}") from exc
    uid = decoded["uid"]
    if store.get("admin", uid) is None:
        raise ForbiddenError("El usuario no es administrador")
    return uid
