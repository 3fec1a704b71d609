"""
Cliente de Mercado Pago.

Se construye a partir de `Settings` y se inyecta en los handlers; nunca se
inicializa al importar el módulo.
"""
import logging
from typing import Any, Dict, Optional, Union

import mercadopago
from mercadopago.config import RequestOptions
from pydantic import BaseModel, field_validator

from app.utils.errors import GatewayError
from app.utils.settings import Settings

log = logging.getLogger(__name__)


def canonical_payment_id(value: Union[str, int, None]) -> str:
    """Forma canónica (string) del id de pago de Mercado Pago."""
    if value is None or isinstance(value, bool):
        raise ValueError("payment id vacío")
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    text = str(value).strip()
    if not text:
        raise ValueError("payment id vacío")
    return str(int(text)) if text.isdigit() else text


class GatewayPayment(BaseModel):
    """Pago tal como lo informa Mercado Pago (sólo los campos que usamos)."""

    id: str
    status: str
    status_detail: Optional[str] = None
    transaction_amount: Optional[float] = None
    external_reference: Optional[str] = None
    description: Optional[str] = None

    @field_validator("id", mode="before")
    @classmethod
    def _canonical_id(cls, value):
        return canonical_payment_id(value)


class MercadoPagoGateway:
    def __init__(self, settings: Settings, sdk=None):
        self.settings = settings
        self._sdk = sdk

    @property
    def configured(self) -> bool:
        return bool(self.settings.mp_access_token)

    @property
    def sdk(self):
        if self._sdk is None:
            if not self.configured:
                raise GatewayError("Mercado Pago no está configurado (falta MP_ACCESS_TOKEN)")
            options = RequestOptions(connection_timeout=self.settings.gateway_timeout)
            self._sdk = mercadopago.SDK(self.settings.mp_access_token, request_options=options)
        return self._sdk

    def _unwrap(self, result: Dict[str, Any], action: str) -> Dict[str, Any]:
        status_code = result.get("status") if isinstance(result, dict) else None
        body = result.get("response") if isinstance(result, dict) else None
        if status_code is None or status_code >= 400 or not isinstance(body, dict):
            log.error("Mercado Pago %s falló: status=%s body=%s", action, status_code, body)
            message = body.get("message") if isinstance(body, dict) else None
            raise GatewayError(f"Mercado Pago {action} falló ({status_code}): {message or 'sin detalle'}")
        return body

    def create_preference(self, preference_data: Dict[str, Any]) -> Dict[str, Any]:
        try:
            result = self.sdk.preference().create(preference_data)
        except GatewayError:
            raise
        except Exception as exc:
            log.exception("Error de red creando preferencia")
            raise GatewayError(f"Error creando preferencia: {exc}") from exc
        body = self._unwrap(result, "create_preference")
        if not body.get("id"):
            raise GatewayError("Respuesta inválida de Mercado Pago: preferencia sin id")
        return body

    def get_payment(self, payment_id: Union[str, int]) -> GatewayPayment:
        # la API espera el id numérico
        try:
            numeric_id = int(canonical_payment_id(payment_id))
        except ValueError as exc:
            raise GatewayError(f"Invalid payment ID: {payment_id}") from exc
        try:
            result = self.sdk.payment().get(numeric_id)
        except GatewayError:
            raise
        except Exception as exc:
            log.exception("Error de red consultando pago %s", numeric_id)
            raise GatewayError(f"Error fetching payment {numeric_id} from Mercado Pago: {exc}") from exc
        body = self._unwrap(result, "get_payment")
        return GatewayPayment.model_validate(body)
