import logging
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from app.utils.errors import ConflictError, NotFoundError
from app.utils.timeutils import now_local, to_datetime

log = logging.getLogger(__name__)

CANCELLABLE = ("activa", "pending")
RESETTABLE = ("cancelada", "vencido")


def effective_status(membresia: Optional[Dict[str, Any]], now: datetime, tz) -> str:
    """El vencimiento se calcula al leer; `vencido` no se persiste."""
    membresia = membresia or {}
    estado = membresia.get("estado") or "pending"
    if estado == "pendiente":
        estado = "pending"
    if estado == "activa":
        hasta = to_datetime(membresia.get("fechaHasta"), tz)
        if hasta is not None and hasta < now:
            return "vencido"
    return estado


class MembershipService:
    def __init__(self, store, tz, clock: Optional[Callable] = None):
        self.store = store
        self.tz = tz
        self.clock = clock or (lambda: now_local(tz))

    def get(self, student_id: str) -> Dict[str, Any]:
        student = self.store.get("students", student_id)
        if student is None:
            raise NotFoundError(f"Estudiante {student_id} no encontrado")
        membresia = student.get("membresia") or {}
        return {
            "studentId": student_id,
            "plan": membresia.get("nombre"),
            "estado": membresia.get("estado") or "pending",
            "estadoEfectivo": effective_status(membresia, self.clock(), self.tz),
            "fechaDesde": to_datetime(membresia.get("fechaDesde"), self.tz),
            "fechaHasta": to_datetime(membresia.get("fechaHasta"), self.tz),
            "montoPagado": membresia.get("montoPagado"),
            "medioPago": membresia.get("medioPago"),
        }

    def cancel(self, student_id: str) -> None:
        self._transition(student_id, CANCELLABLE, {"membresia.estado": "cancelada", "activo": False})
        log.info("Membresía de %s cancelada", student_id)

    def reset(self, student_id: str) -> None:
        fields = {
            "membresia": {"estado": "pending"},
            "plan": None,
            "activo": False,
        }
        self._transition(student_id, RESETTABLE, fields)
        log.info("Membresía de %s reiniciada a pending", student_id)

    def _transition(self, student_id: str, allowed, fields: Dict[str, Any]) -> None:
        now = self.clock()

        def _apply(txn):
            student = txn.get("students", student_id)
            if student is None:
                raise NotFoundError(f"Estudiante {student_id} no encontrado")
            current = effective_status(student.get("membresia"), now, self.tz)
            if current not in allowed:
                raise ConflictError(f"No se puede pasar de '{current}' a '{fields.get('membresia.estado', 'pending')}'")
            txn.update("students", student_id, fields)

        self.store.run_transaction(_apply)
