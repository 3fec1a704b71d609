import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Body, Depends

from app.dependencies import get_gateway, get_reconciler, get_store
from app.schemas.schemas import WebhookNotification, WebhookResponse
from app.services.payment_matching import find_payment_by_mercadopago_id
from app.services.reconciler import MembershipReconciler
from app.utils.errors import NotFoundError

log = logging.getLogger(__name__)

router = APIRouter(prefix="/webhook", tags=["Webhook"])


@router.post("/mercadopago", response_model=WebhookResponse, summary="Notificaciones de pago de Mercado Pago")
def mercadopago_webhook(
    notification: WebhookNotification = Body(...),
    store=Depends(get_store),
    gateway=Depends(get_gateway),
    reconciler: MembershipReconciler = Depends(get_reconciler),
):
    """
    Recibe las notificaciones de Mercado Pago. Responde 200 cuando la
    notificación quedó procesada (o no es de pagos); cualquier error devuelve
    un código distinto de 2xx para que Mercado Pago reintente.
    """
    now = datetime.now(timezone.utc)
    if notification.type != "payment":
        log.info("Webhook ignorado, tipo %s", notification.type)
        return WebhookResponse(message="Webhook ignored - not a payment", timestamp=now)

    payment_id = str(notification.data.id)
    log.info("Webhook de pago MP %s (action=%s)", payment_id, notification.action)

    gateway_payment = gateway.get_payment(payment_id)
    payment = find_payment_by_mercadopago_id(store, gateway_payment.id)
    if payment is None:
        log.warning("Pago MP %s no encontrado en la base", gateway_payment.id)
        raise NotFoundError("Payment not found in database")

    result = reconciler.reconcile(gateway_payment, payment)
    return WebhookResponse(
        message="Webhook processed successfully",
        paymentId=gateway_payment.id,
        applied=result.applied,
        timestamp=now,
    )


@router.get("/test", summary="Verifica que el endpoint de webhook responde")
async def webhook_test():
    return {"message": "Webhook endpoint working correctly", "timestamp": datetime.now(timezone.utc).isoformat()}
