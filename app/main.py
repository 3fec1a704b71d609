import logging
from time import perf_counter
from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from app.controllers.checkin import router as checkin_router
from app.controllers.memberships import router as memberships_router
from app.controllers.payments import router as payments_router
from app.controllers.webhook import router as webhook_router
from app.dependencies import get_settings
from app.utils.errors import AppError

settings = get_settings()

# --- Logging ---
logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)
log = logging.getLogger("cowork")

# --- OpenAPI metadata ---
app = FastAPI(
    title="Cowork-Membership-Service",
    description="""
    Microservicio de membresías del coworking.
    Concilia los pagos de Mercado Pago con la membresía del estudiante y
    controla el check-in / check-out del kiosco.
    """,
    version="1.0.0",
    root_path=settings.root_path,
)

# --- CORS middleware ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"]
)


# --- Log de requests ---
@app.middleware("http")
async def log_requests(request: Request, call_next):
    rid = request.headers.get("x-request-id") or uuid4().hex[:8]
    start = perf_counter()
    log.info("[%s] → %s %s", rid, request.method, request.url.path)
    response = await call_next(request)
    log.info("[%s] ← %s %.1fms", rid, response.status_code, (perf_counter() - start) * 1000)
    response.headers["x-request-id"] = rid
    return response


# --- Errores ---
def jsonable_errors(exc: RequestValidationError):
    return [{"loc": list(err.get("loc", ())), "msg": err.get("msg")} for err in exc.errors()]


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        log.error("%s en %s: %s", type(exc).__name__, request.url.path, exc.message)
    else:
        log.warning("%s en %s: %s", type(exc).__name__, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    log.warning("Request inválido en %s: %s", request.url.path, exc.errors())
    return JSONResponse(status_code=400, content={"detail": "Datos inválidos", "errors": jsonable_errors(exc)})


# --- Rutas principales ---
app.include_router(webhook_router)
app.include_router(payments_router)
app.include_router(checkin_router)
app.include_router(memberships_router)


# --- Modelo para salud ---
class HealthResponse(BaseModel):
    status: str


# --- Endpoint de salud ---
@app.get("/health", tags=["Health"], summary="Verifica el estado del servicio", response_model=HealthResponse)
async def health():
    """
    Verifica si el microservicio está en ejecución.
    Retorna un JSON con el estado `"ok"`.
    """
    return {"status": "ok"}
