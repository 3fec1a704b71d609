import logging
from typing import Any, Dict, Optional, Tuple, Union

from app.utils.errors import ValidationError
from app.utils.gateway import canonical_payment_id

log = logging.getLogger(__name__)

REFERENCE_SEPARATOR = "|"


def find_payment_by_mercadopago_id(store, mercadopago_id: Union[str, int]) -> Optional[Dict[str, Any]]:
    """
    Busca el pago local por `mercadoPagoId`.

    Primero por la forma canónica (string); si no aparece, una única
    conversión a número, porque registros viejos lo guardaron como int.
    """
    canonical = canonical_payment_id(mercadopago_id)
    payment = store.find_one("payments", "mercadoPagoId", canonical)
    if payment is None and canonical.isdigit():
        payment = store.find_one("payments", "mercadoPagoId", int(canonical))
        if payment is not None:
            log.info("Pago %s encontrado con id numérico", canonical)
    return payment


def payment_doc_id(mercadopago_id: Union[str, int]) -> str:
    """Id de documento determinístico para pagos creados al conciliar."""
    return f"mp-{canonical_payment_id(mercadopago_id)}"


def encode_reference(student_id: str, plan_name: Optional[str] = None) -> str:
    if plan_name:
        return f"{student_id}{REFERENCE_SEPARATOR}{plan_name}"
    return student_id


def decode_reference(reference: Optional[str]) -> Tuple[str, Optional[str]]:
    """'studentId|planName' -> (studentId, planName)"""
    student_id, _, plan_name = (reference or "").partition(REFERENCE_SEPARATOR)
    student_id = student_id.strip()
    if not student_id:
        raise ValidationError("External reference sin studentId")
    return student_id, plan_name.strip() or None
