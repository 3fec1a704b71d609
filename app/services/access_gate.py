"""
Control de acceso del kiosco: valida membresía y horario del plan y alterna
check-in / check-out registrando la sesión.

Las validaciones no escriben nada. El cambio de estado y la sesión se
escriben en una única transacción condicionada al `isCheckedIn` leído al
principio, así dos lecturas rápidas del mismo código no abren dos sesiones.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, Optional, Tuple

from app.services.plan_classifier import access_window
from app.utils.errors import ConflictError, NotFoundError
from app.utils.timeutils import hhmm, minutes_between, now_local, to_datetime

log = logging.getLogger(__name__)

CHECK_IN = "entrada"
CHECK_OUT = "salida"


class AccessDenied(Exception):
    def __init__(self, reason: str, message: str, student: Dict[str, Any], plan: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.reason = reason
        self.message = message
        self.student = student
        self.plan = plan


@dataclass
class AccessResult:
    action: str
    message: str
    student: Dict[str, Any]
    plan: Optional[Dict[str, Any]]
    session_id: Optional[str] = None
    duration_minutes: Optional[int] = None


def _fmt_date(value: datetime) -> str:
    return value.strftime("%d/%m/%Y %H:%M")


class AccessGate:
    def __init__(self, store, tz, clock: Optional[Callable] = None):
        self.store = store
        self.tz = tz
        self.clock = clock or (lambda: now_local(tz))

    def find_student(self, access_code: str) -> Dict[str, Any]:
        student = self.store.find_one("students", "accessCode", access_code)
        if student is None:
            raise NotFoundError("Código no encontrado.")
        return student

    def resolve_plan(self, student: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        plan = student.get("plan")
        if isinstance(plan, dict) and plan.get("startHour") and plan.get("endHour"):
            return plan
        name = plan.get("name") if isinstance(plan, dict) else plan
        name = name or (student.get("membresia") or {}).get("nombre")
        if not name:
            return None
        return self.store.find_one("plans", "name", name)

    def membership_window(self, student: Dict[str, Any], now: datetime) -> Tuple[datetime, datetime]:
        membresia = student.get("membresia") or {}
        estado = membresia.get("estado")
        if estado == "cancelada":
            raise AccessDenied("cancelled", "Tu membresía fue cancelada.", student)

        desde = to_datetime(membresia.get("fechaDesde"), self.tz)
        hasta = to_datetime(membresia.get("fechaHasta"), self.tz)
        if desde is None or hasta is None:
            if estado in ("pending", "pendiente"):
                raise AccessDenied("pending_payment", "Tu membresía está pendiente de pago.", student)
            raise AccessDenied("no_membership", "No tenés una membresía activa.", student)
        if now < desde:
            raise AccessDenied("not_started", f"Tu membresía comienza el {_fmt_date(desde)}.", student)
        if now > hasta:
            raise AccessDenied("expired", f"Tu membresía venció el {_fmt_date(hasta)}.", student)
        return desde, hasta

    def check_window(self, student: Dict[str, Any], plan: Optional[Dict[str, Any]], now: datetime) -> None:
        try:
            window = access_window(plan)
        except ValueError:
            log.warning("Plan %s con horario inválido", (plan or {}).get("name"))
            window = None
        if window is None:
            raise AccessDenied("no_schedule", "Tu plan no tiene un horario de acceso definido.", student, plan)

        start, end = window
        if not start <= hhmm(now) <= end:
            raise AccessDenied(
                "outside_window",
                f"No estás dentro del horario permitido. Tu plan \"{plan.get('name') or 'actual'}\" "
                f"permite acceso de {plan['startHour']} a {plan['endHour']}",
                student,
                plan,
            )

    def check_status(self, access_code: str) -> Tuple[Dict[str, Any], Optional[Dict[str, Any]]]:
        """Valida código y membresía sin registrar entrada ni salida."""
        student = self.find_student(access_code)
        plan = self.resolve_plan(student)
        self.membership_window(student, self.clock())
        return student, plan

    def check_in_or_out(self, access_code: str) -> AccessResult:
        now = self.clock()
        student = self.find_student(access_code)
        plan = self.resolve_plan(student)
        self.membership_window(student, now)
        self.check_window(student, plan, now)

        student_id = student["id"]
        was_checked_in = bool(student.get("isCheckedIn"))

        def _toggle(txn):
            current = txn.get("students", student_id)
            if current is None:
                raise NotFoundError("Código no encontrado.")
            if bool(current.get("isCheckedIn")) != was_checked_in:
                raise ConflictError("El registro ya fue procesado, intentá nuevamente.")
            open_sessions = txn.find("sessions", [("studentId", "==", student_id), ("checkOutTimestamp", "==", None)])

            if not was_checked_in:
                for stale in open_sessions:
                    log.warning("Cerrando sesión huérfana %s de %s", stale["id"], student_id)
                    txn.update("sessions", stale["id"], self._close_fields(stale, now))
                txn.update("students", student_id, {"isCheckedIn": True, "lastCheckInTimestamp": now})
                session_id = txn.add("sessions", {
                    "studentId": student_id,
                    "fullName": student.get("fullName"),
                    "email": student.get("email"),
                    "checkInTimestamp": now,
                    "checkOutTimestamp": None,
                    "durationMinutes": None,
                })
                return session_id, None

            txn.update("students", student_id, {"isCheckedIn": False, "lastCheckOutTimestamp": now})
            if not open_sessions:
                log.warning("Estudiante %s hace check-out sin sesión abierta", student_id)
                return None, None
            if len(open_sessions) > 1:
                log.warning("Estudiante %s tenía %d sesiones abiertas", student_id, len(open_sessions))
            closed = [self._close_fields(session, now) for session in open_sessions]
            for session, fields in zip(open_sessions, closed):
                txn.update("sessions", session["id"], fields)
            return open_sessions[0]["id"], closed[0]["durationMinutes"]

        session_id, duration = self.store.run_transaction(_toggle)
        name = student.get("fullName") or ""
        if was_checked_in:
            log.info("Check-out de %s (%s min)", student_id, duration)
            return AccessResult(CHECK_OUT, f"¡Hasta luego, {name}!", student, plan, session_id, duration)
        log.info("Check-in de %s (sesión %s)", student_id, session_id)
        return AccessResult(CHECK_IN, f"¡Bienvenido, {name}!", student, plan, session_id)

    def _close_fields(self, session: Dict[str, Any], now: datetime) -> Dict[str, Any]:
        checked_in_at = to_datetime(session.get("checkInTimestamp"), self.tz)
        duration = minutes_between(checked_in_at, now) if checked_in_at else 0
        return {"checkOutTimestamp": now, "durationMinutes": duration}

    def recover_code(self, email: str) -> str:
        student = self.store.find_one("students", "email", email.strip().lower())
        if student is None:
            raise NotFoundError("No se encontró ningún estudiante con ese email.")
        if not student.get("accessCode"):
            raise NotFoundError("No se encontró un código de acceso asociado.")
        return student["accessCode"]
