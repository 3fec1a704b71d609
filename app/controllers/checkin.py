from fastapi import APIRouter, Body, Depends

from app.dependencies import get_access_gate
from app.schemas.schemas import AccessCodeRequest, AccessResponse, RecoverCodeRequest, RecoverCodeResponse
from app.services.access_gate import AccessDenied, AccessGate

router = APIRouter(prefix="/checkin", tags=["Check-in"])


def _plan_name(plan, student) -> str:
    if plan and plan.get("name"):
        return plan["name"]
    return (student.get("membresia") or {}).get("nombre") or ""


def _end_date(student):
    hasta = (student.get("membresia") or {}).get("fechaHasta")
    return hasta.isoformat() if hasattr(hasta, "isoformat") else hasta


def _denied(denial: AccessDenied) -> AccessResponse:
    student = denial.student
    return AccessResponse(
        id=student["id"],
        name=student.get("fullName") or "",
        status="rechazado",
        access_granted=False,
        message=denial.message,
        plan=_plan_name(denial.plan, student) or None,
        end_date=_end_date(student),
    )


@router.post("", response_model=AccessResponse, summary="Registrar entrada o salida con el código de acceso")
def check_in_or_out(req: AccessCodeRequest = Body(...), gate: AccessGate = Depends(get_access_gate)):
    """
    Alterna check-in / check-out del estudiante.
    Rechaza sin escribir nada si la membresía no está vigente o si está fuera del horario del plan.
    """
    try:
        result = gate.check_in_or_out(req.accessCode)
    except AccessDenied as denial:
        return _denied(denial)

    student = result.student
    return AccessResponse(
        id=student["id"],
        name=student.get("fullName") or "",
        status=result.action,
        access_granted=True,
        message=result.message,
        plan=_plan_name(result.plan, student) or None,
        end_date=_end_date(student),
        session_id=result.session_id,
        duration_minutes=result.duration_minutes,
    )


@router.post("/status", response_model=AccessResponse, summary="Verificar membresía sin registrar acceso")
def check_status(req: AccessCodeRequest = Body(...), gate: AccessGate = Depends(get_access_gate)):
    try:
        student, plan = gate.check_status(req.accessCode)
    except AccessDenied as denial:
        return _denied(denial)
    return AccessResponse(
        id=student["id"],
        name=student.get("fullName") or "",
        status="activa",
        access_granted=True,
        message="Membresía activa",
        plan=_plan_name(plan, student) or None,
        end_date=_end_date(student),
    )


@router.post("/recover-code", response_model=RecoverCodeResponse, summary="Recuperar el código de acceso por email")
def recover_code(req: RecoverCodeRequest = Body(...), gate: AccessGate = Depends(get_access_gate)):
    return RecoverCodeResponse(accessCode=gate.recover_code(req.email))
