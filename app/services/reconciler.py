"""
Conciliación de pagos de Mercado Pago con la membresía del estudiante.

Webhook y confirmación desde el frontend llegan aquí por el mismo punto de
entrada. El pago se relee dentro de una transacción y sólo se aplican efectos
si su estado todavía no es el estado destino (compare-and-set), por lo que
entregas duplicadas o fuera de orden no vuelven a tocar la membresía.
"""
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from app.services.payment_matching import payment_doc_id
from app.services.plan_classifier import DAILY_PRICE_THRESHOLD, classify, validity_window
from app.utils.errors import NotFoundError, ValidationError
from app.utils.gateway import GatewayPayment
from app.utils.timeutils import now_local

log = logging.getLogger(__name__)

APPROVED = "approved"
PENDING = "pending"
FAILED_STATUSES = ("rejected", "cancelled")
PENDING_STATUSES = ("pending", "in_process")
TERMINAL_STATUSES = (APPROVED,) + FAILED_STATUSES

HOSTED_METHOD = "Mercado Pago Hospedado"
REJECTED_METHOD = f"{HOSTED_METHOD} (Rechazado)"


@dataclass
class ReconciliationResult:
    applied: bool
    outcome: str
    payment_id: Optional[str] = None


def target_status(gateway_status: str) -> Optional[str]:
    if gateway_status == APPROVED:
        return APPROVED
    if gateway_status in FAILED_STATUSES:
        return gateway_status
    if gateway_status in PENDING_STATUSES:
        return PENDING
    return None


def should_apply(current: Optional[Dict[str, Any]], target: str) -> bool:
    if current is None:
        return True
    # un pago facturado o en estado terminal ya no cambia
    if current.get("facturado"):
        return False
    stored = current.get("status")
    if stored in TERMINAL_STATUSES:
        return False
    return stored != target


class MembershipReconciler:
    def __init__(self, store, tz, clock: Optional[Callable] = None, daily_price_threshold: float = DAILY_PRICE_THRESHOLD):
        self.store = store
        self.tz = tz
        self.clock = clock or (lambda: now_local(tz))
        self.daily_price_threshold = daily_price_threshold

    def reconcile(self, gateway_payment: GatewayPayment, payment: Dict[str, Any]) -> ReconciliationResult:
        """
        Aplica el estado informado por Mercado Pago al pago local y a la membresía.

        `payment` es el registro local; si no trae `id` se crea como
        `payments/mp-<id>` dentro de la misma transacción.
        """
        target = target_status(gateway_payment.status)
        if target is None:
            log.info("Estado no manejado: %s (pago MP %s)", gateway_payment.status, gateway_payment.id)
            return ReconciliationResult(False, "ignored", payment.get("id"))

        student_id = payment.get("studentId")
        if not student_id:
            raise ValidationError("El pago no tiene studentId")

        creating = not payment.get("id")
        doc_id = payment.get("id") or payment_doc_id(gateway_payment.id)
        now = self.clock()
        confirmed_amount = gateway_payment.transaction_amount
        if confirmed_amount is None:
            confirmed_amount = payment.get("amount")

        payment_fields = self._payment_fields(target, gateway_payment, confirmed_amount)
        student_fields = self._student_fields(target, payment, confirmed_amount, now)

        def _apply(txn) -> bool:
            current = txn.get("payments", doc_id)
            if current is None and not creating:
                raise NotFoundError(f"Pago {doc_id} no encontrado")
            if not should_apply(current, target):
                return False
            if student_fields and txn.get("students", student_id) is None:
                raise NotFoundError(f"Estudiante {student_id} no encontrado")

            if current is None:
                record = {
                    "studentId": student_id,
                    "fullName": payment.get("fullName"),
                    "plan": payment.get("plan"),
                    "date": now,
                    "createdAt": now,
                }
                record.update(payment_fields)
                txn.set("payments", doc_id, record)
            else:
                txn.update("payments", doc_id, payment_fields)
            if student_fields:
                txn.update("students", student_id, student_fields)
            return True

        applied = self.store.run_transaction(_apply)
        if not applied:
            log.info("Pago %s ya conciliado como %s, sin cambios", doc_id, target)
            return ReconciliationResult(False, target, doc_id)

        log.info("Pago %s conciliado: %s (estudiante %s)", doc_id, target, student_id)
        if target == APPROVED:
            self._notify(payment, doc_id, gateway_payment, "plan_activated", confirmed_amount)
        elif target in FAILED_STATUSES:
            self._notify(payment, doc_id, gateway_payment, "payment_failed", confirmed_amount)
        return ReconciliationResult(True, target, doc_id)

    def _payment_fields(self, target: str, gateway_payment: GatewayPayment, amount) -> Dict[str, Any]:
        fields: Dict[str, Any] = {"status": target, "mercadoPagoId": gateway_payment.id}
        if target == APPROVED:
            fields.update({"facturado": True, "amount": amount, "method": HOSTED_METHOD})
        elif target in FAILED_STATUSES:
            fields.update({"facturado": False, "method": REJECTED_METHOD})
        return fields

    def _student_fields(self, target: str, payment: Dict[str, Any], amount, now) -> Dict[str, Any]:
        if target == APPROVED:
            plan_name = payment.get("plan")
            fecha_desde, fecha_hasta = validity_window(self._plan_kind(plan_name, amount), now, self.tz)
            return {
                "plan": plan_name,
                "membresia.nombre": plan_name,
                "membresia.estado": "activa",
                "membresia.montoPagado": amount,
                "membresia.medioPago": HOSTED_METHOD,
                "membresia.fechaDesde": fecha_desde,
                "membresia.fechaHasta": fecha_hasta,
                "activo": True,
            }
        if target in FAILED_STATUSES:
            return {"membresia.estado": "cancelada", "activo": False}
        return {}

    def _plan_kind(self, plan_name: Optional[str], amount):
        plan = self.store.find_one("plans", "name", plan_name) if plan_name else None
        if plan is None:
            plan = {"name": plan_name, "price": amount}
        elif plan.get("price") is None:
            plan = dict(plan, price=amount)
        return classify(plan, self.daily_price_threshold)

    def _notify(self, payment: Dict[str, Any], doc_id: str, gateway_payment: GatewayPayment, kind: str, amount) -> None:
        plan_name = payment.get("plan")
        if kind == "plan_activated":
            title = "¡Plan Activado!"
            message = f"Tu plan {plan_name} ha sido activado exitosamente. Monto: {amount}"
        else:
            title = "Pago no procesado"
            reason = gateway_payment.status_detail or "Sin detalles"
            message = f"Tu pago para el plan {plan_name} no pudo ser procesado. Razón: {reason}"
        try:
            self.store.add("notifications", {
                "studentId": payment.get("studentId"),
                "type": kind,
                "title": title,
                "message": message,
                "read": False,
                "createdAt": self.clock(),
                "paymentId": doc_id,
                "mercadoPagoId": gateway_payment.id,
            })
        except Exception:
            # la notificación nunca aborta la conciliación
            log.exception("No se pudo crear la notificación %s para %s", kind, payment.get("studentId"))
