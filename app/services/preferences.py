import logging
import time
from typing import Any, Dict

from app.schemas.schemas import PaymentData, PreferenceResponse
from app.services.payment_matching import encode_reference
from app.utils.settings import Settings

log = logging.getLogger(__name__)


def build_preference(data: PaymentData, settings: Settings) -> Dict[str, Any]:
    frontend_url = settings.frontend_url.rstrip("/")
    return {
        "items": [{
            "id": f"plan-{data.studentId}-{int(time.time() * 1000)}",
            "title": f"Plan {data.plan} - {data.fullName}",
            "description": f"Suscripción al plan {data.plan}",
            "quantity": 1,
            "unit_price": float(data.amount),
            "currency_id": settings.currency_id,
        }],
        "payer": {
            "email": data.studentEmail or f"{data.studentId}@{settings.default_payer_domain}",
        },
        "back_urls": {
            "success": f"{frontend_url}/payment/success",
            "failure": f"{frontend_url}/payment/failure",
            "pending": f"{frontend_url}/payment/pending",
        },
        "notification_url": settings.webhook_url,
        "external_reference": encode_reference(data.studentId, data.plan),
        "statement_descriptor": settings.statement_descriptor,
    }


def issue_preference(data: PaymentData, gateway, settings: Settings) -> PreferenceResponse:
    preference = build_preference(data, settings)
    log.info("Creando preferencia para estudiante %s, plan %s, monto %s", data.studentId, data.plan, data.amount)
    response = gateway.create_preference(preference)
    log.info("Preferencia creada: %s", response["id"])
    init_point = response.get("init_point")
    return PreferenceResponse(
        id=response["id"],
        init_point=init_point,
        sandbox_init_point=response.get("sandbox_init_point") or init_point,
    )
