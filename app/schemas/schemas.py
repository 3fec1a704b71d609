from datetime import datetime
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


# --- Check-in / check-out ---

class AccessCodeRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    accessCode: str = Field(..., min_length=1, description="Código numérico de acceso del estudiante")


class AccessResponse(BaseModel):
    id: str
    name: str
    status: str
    access_granted: bool
    message: str
    plan: Optional[str] = None
    end_date: Optional[str] = None
    session_id: Optional[str] = None
    duration_minutes: Optional[int] = None


class RecoverCodeRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    email: str = Field(..., min_length=3)


class RecoverCodeResponse(BaseModel):
    accessCode: str


# --- Pagos ---

class PaymentData(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    fullName: str = Field(..., min_length=1)
    amount: float = Field(..., gt=0)
    plan: str = Field(..., min_length=1)
    studentId: str = Field(..., min_length=1)
    studentEmail: Optional[str] = None


class CreatePreferenceRequest(BaseModel):
    paymentData: PaymentData


class PreferenceResponse(BaseModel):
    id: str
    init_point: Optional[str] = None
    sandbox_init_point: Optional[str] = None


class PendingPaymentResponse(BaseModel):
    success: bool
    message: str
    paymentId: str


class ConfirmPaymentRequest(BaseModel):
    paymentId: Optional[Union[int, str]] = None
    collectionId: Optional[Union[int, str]] = None
    status: Optional[str] = None
    externalReference: Optional[str] = None


class ConfirmPaymentResponse(BaseModel):
    success: bool
    message: str
    paymentId: Optional[str] = None
    status: Optional[str] = None


# --- Webhook ---

class WebhookData(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: Union[int, str]

    @field_validator("id")
    @classmethod
    def _not_blank(cls, value):
        if isinstance(value, str):
            value = value.strip()
            if not value:
                raise ValueError("data.id vacío")
        return value


class WebhookNotification(BaseModel):
    """Notificación de Mercado Pago. Sólo `type` y `data.id` son obligatorios."""

    model_config = ConfigDict(extra="allow")

    type: str = Field(..., min_length=1)
    data: WebhookData
    action: Optional[str] = None

    @model_validator(mode="after")
    def _payment_id_is_numeric(self):
        # los pagos de Mercado Pago tienen id numérico; otros tópicos se ignoran igual
        if self.type == "payment" and not str(self.data.id).isdigit():
            raise ValueError("data.id debe ser un id de pago numérico")
        return self


class WebhookResponse(BaseModel):
    message: str
    paymentId: Optional[str] = None
    applied: Optional[bool] = None
    timestamp: datetime


# --- Membresías ---

class MembershipResponse(BaseModel):
    studentId: str
    plan: Optional[str] = None
    estado: str
    estadoEfectivo: str
    fechaDesde: Optional[datetime] = None
    fechaHasta: Optional[datetime] = None
    montoPagado: Optional[float] = None
    medioPago: Optional[str] = None
