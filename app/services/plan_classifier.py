"""
Clasificación de planes.

Un plan es *diario* (válido hasta el fin del día del pago) o *mensual* (30
días desde el pago). Los documentos de `plans` pueden declarar `planType`
explícitamente; si no lo hacen se usa la heurística por nombre y precio.
"""
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from app.utils.timeutils import add_days, end_of_day

DAILY_KEYWORDS = ("diario", "día", "day")
DAILY_PRICE_THRESHOLD = 8000
MONTHLY_DAYS = 30


class PlanKind(str, Enum):
    DAILY = "diario"
    MONTHLY = "mensual"


def classify_plan(name: Optional[str], price: Optional[float], threshold: float = DAILY_PRICE_THRESHOLD) -> PlanKind:
    nombre = (name or "").lower()
    if any(keyword in nombre for keyword in DAILY_KEYWORDS):
        return PlanKind.DAILY
    if price is not None and price <= threshold:
        return PlanKind.DAILY
    return PlanKind.MONTHLY


def classify(plan: Dict[str, Any], threshold: float = DAILY_PRICE_THRESHOLD) -> PlanKind:
    """Punto único de clasificación: `planType` explícito gana sobre la heurística."""
    explicit = str(plan.get("planType") or "").strip().lower()
    for kind in PlanKind:
        if explicit == kind.value:
            return kind
    return classify_plan(plan.get("name"), _as_number(plan.get("price")), threshold)


def parse_hhmm(value: str) -> int:
    """'08:30' -> 830"""
    text = str(value).strip()
    hours, sep, minutes = text.partition(":")
    if not sep or not hours.isdigit() or not minutes.isdigit() or len(minutes) != 2:
        raise ValueError(f"Horario inválido: {value!r}")
    h, m = int(hours), int(minutes)
    if h > 23 or m > 59:
        raise ValueError(f"Horario inválido: {value!r}")
    return h * 100 + m


def access_window(plan: Optional[Dict[str, Any]]) -> Optional[Tuple[int, int]]:
    if not plan or not plan.get("startHour") or not plan.get("endHour"):
        return None
    return parse_hhmm(plan["startHour"]), parse_hhmm(plan["endHour"])


def validity_window(kind: PlanKind, paid_at: datetime, tz) -> Tuple[datetime, datetime]:
    if kind is PlanKind.DAILY:
        return paid_at, end_of_day(paid_at, tz)
    return paid_at, add_days(paid_at, MONTHLY_DAYS, tz)


def _as_number(value) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None
