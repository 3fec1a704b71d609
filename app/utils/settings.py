import os
from dataclasses import dataclass
from typing import Optional

import pytz
from dotenv import load_dotenv


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    return float(raw)


@dataclass(frozen=True)
class Settings:
    """Configuración del servicio, leída del entorno (y de un `.env` si existe)."""

    mp_access_token: Optional[str] = None
    mp_public_key: Optional[str] = None
    frontend_url: str = "http://localhost:5173"
    backend_url: str = "http://localhost:4000"
    timezone: str = "America/Argentina/Buenos_Aires"
    currency_id: str = "ARS"
    statement_descriptor: str = "TENTCOWORK"
    default_payer_domain: str = "tent-default.com"
    gateway_timeout: float = 20.0
    daily_price_threshold: float = 8000
    firebase_credentials: Optional[str] = None
    firebase_project_id: Optional[str] = None
    root_path: str = ""
    log_level: str = "INFO"

    @property
    def tz(self):
        return pytz.timezone(self.timezone)

    @property
    def webhook_url(self) -> str:
        return f"{self.backend_url.rstrip('/')}/webhook/mercadopago"

    @classmethod
    def from_env(cls) -> "Settings":
        load_dotenv()
        token = os.environ.get("MP_ACCESS_TOKEN")
        return cls(
            mp_access_token=token.strip() if token else None,
            mp_public_key=os.environ.get("MP_PUBLIC_KEY"),
            frontend_url=os.environ.get("FRONTEND_URL", cls.frontend_url),
            backend_url=os.environ.get("BACKEND_URL", cls.backend_url),
            timezone=os.environ.get("TIMEZONE", cls.timezone),
            currency_id=os.environ.get("CURRENCY_ID", cls.currency_id),
            statement_descriptor=os.environ.get("STATEMENT_DESCRIPTOR", cls.statement_descriptor),
            default_payer_domain=os.environ.get("DEFAULT_PAYER_DOMAIN", cls.default_payer_domain),
            gateway_timeout=_env_float("GATEWAY_TIMEOUT", cls.gateway_timeout),
            daily_price_threshold=_env_float("DAILY_PRICE_THRESHOLD", cls.daily_price_threshold),
            firebase_credentials=os.environ.get("FIREBASE_CREDENTIALS"),
            firebase_project_id=os.environ.get("FIREBASE_PROJECT_ID"),
            root_path=os.environ.get("ROOT_PATH", cls.root_path),
            log_level=os.environ.get("LOG_LEVEL", cls.log_level).upper(),
        )
