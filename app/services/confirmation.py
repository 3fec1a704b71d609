import logging
from typing import Optional

from app.schemas.schemas import ConfirmPaymentRequest, ConfirmPaymentResponse
from app.services.payment_matching import decode_reference, find_payment_by_mercadopago_id
from app.services.reconciler import APPROVED, MembershipReconciler
from app.utils.errors import NotFoundError, ValidationError

log = logging.getLogger(__name__)


def _provider_id(request: ConfirmPaymentRequest) -> int:
    raw = request.paymentId
    if raw in (None, "", "null"):
        raw = request.collectionId
    if raw in (None, "", "null"):
        raise ValidationError("Falta paymentId o collectionId")
    try:
        return int(str(raw).strip())
    except ValueError:
        raise ValidationError(f"Payment ID inválido: {raw}")


def confirm_payment(request: ConfirmPaymentRequest, store, gateway, reconciler: MembershipReconciler) -> ConfirmPaymentResponse:
    """
    Confirmación invocada por el frontend al volver de Mercado Pago.

    Produce el mismo resultado que el webhook para el mismo pago, sin importar
    cuál llegue primero ni cuántas veces.
    """
    provider_id = _provider_id(request)
    gateway_payment = gateway.get_payment(provider_id)
    log.info("Confirmando pago MP %s (estado %s)", gateway_payment.id, gateway_payment.status)

    if gateway_payment.status != APPROVED:
        return ConfirmPaymentResponse(
            success=False,
            message="El pago aún no fue aprobado",
            paymentId=gateway_payment.id,
            status=gateway_payment.status,
        )

    existing = find_payment_by_mercadopago_id(store, gateway_payment.id)
    if existing is not None and existing.get("facturado"):
        return ConfirmPaymentResponse(
            success=True,
            message="Pago ya procesado anteriormente",
            paymentId=existing["id"],
            status=gateway_payment.status,
        )

    # un pago local ya vinculado manda sobre la referencia externa
    if existing is not None and existing.get("studentId"):
        student_id, plan_name = existing["studentId"], existing.get("plan")
    else:
        student_id, plan_name = decode_reference(request.externalReference or gateway_payment.external_reference)
    student = store.get("students", student_id)
    if student is None:
        raise NotFoundError(f"Estudiante {student_id} no encontrado")

    plan_name = plan_name or _current_plan(student, existing)
    if not plan_name:
        raise ValidationError("No se pudo determinar el plan del pago")

    payment = existing or {
        "studentId": student_id,
        "fullName": student.get("fullName"),
        "plan": plan_name,
        "amount": gateway_payment.transaction_amount,
    }
    result = reconciler.reconcile(gateway_payment, payment)
    message = "Pago confirmado y plan activado" if result.applied else "Pago ya procesado anteriormente"
    return ConfirmPaymentResponse(success=True, message=message, paymentId=result.payment_id, status=gateway_payment.status)


def _current_plan(student: dict, existing: Optional[dict]) -> Optional[str]:
    if existing and existing.get("plan"):
        return existing["plan"]
    plan = student.get("plan")
    if isinstance(plan, dict):
        plan = plan.get("name")
    return plan or (student.get("membresia") or {}).get("nombre")
