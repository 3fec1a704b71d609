import logging

from fastapi import APIRouter, Body, Depends

from app.dependencies import get_clock, get_gateway, get_reconciler, get_settings, get_store, require_admin
from app.schemas.schemas import (
    ConfirmPaymentRequest,
    ConfirmPaymentResponse,
    CreatePreferenceRequest,
    PendingPaymentResponse,
    PreferenceResponse,
)
from app.services.confirmation import confirm_payment
from app.services.preferences import issue_preference
from app.utils.settings import Settings

log = logging.getLogger(__name__)

router = APIRouter(prefix="/payments", tags=["Payments"])

RECEPTION_METHOD = "Pago en Recepción"


@router.post("/create-preference", response_model=PreferenceResponse)
def create_preference(
    data: CreatePreferenceRequest = Body(...),
    gateway=Depends(get_gateway),
    settings: Settings = Depends(get_settings),
):
    """Crea la preferencia de Checkout Pro para el plan elegido por el estudiante."""
    return issue_preference(data.paymentData, gateway, settings)


@router.post("/confirm", response_model=ConfirmPaymentResponse)
def confirm(
    data: ConfirmPaymentRequest = Body(...),
    store=Depends(get_store),
    gateway=Depends(get_gateway),
    reconciler=Depends(get_reconciler),
):
    """Confirmación al volver de Mercado Pago; idempotente respecto del webhook."""
    return confirm_payment(data, store, gateway, reconciler)


@router.post("/create-pending", response_model=PendingPaymentResponse)
def create_pending_payment(
    data: CreatePreferenceRequest = Body(...),
    store=Depends(get_store),
    clock=Depends(get_clock),
    settings: Settings = Depends(get_settings),
    admin_uid: str = Depends(require_admin),
):
    """Registra un pago a cobrar en recepción; queda pendiente hasta que se facture."""
    payment = data.paymentData
    now = clock()
    payment_id = store.add("payments", {
        "studentId": payment.studentId,
        "fullName": payment.fullName,
        "amount": payment.amount,
        "plan": payment.plan,
        "method": RECEPTION_METHOD,
        "facturado": False,
        "status": "pending",
        "date": now,
        "createdAt": now,
        "studentEmail": payment.studentEmail or f"{payment.studentId}@{settings.default_payer_domain}",
        "createdBy": admin_uid,
    })
    log.info("Pago pendiente %s creado para %s", payment_id, payment.studentId)
    return PendingPaymentResponse(success=True, message="Pago pendiente registrado para recepción", paymentId=payment_id)


@router.get("/test-config")
async def test_config(settings: Settings = Depends(get_settings), gateway=Depends(get_gateway)):
    token = settings.mp_access_token or ""
    return {
        "hasAccessToken": bool(token),
        "hasPublicKey": bool(settings.mp_public_key),
        "tokenFormatOk": token.startswith(("APP_USR-", "TEST-")),
        "clientConfigured": gateway.configured,
        "backendUrl": settings.backend_url,
        "frontendUrl": settings.frontend_url,
        "webhookUrl": settings.webhook_url,
    }
