from fastapi import APIRouter, Depends

from app.dependencies import get_membership_service, require_admin
from app.schemas.schemas import MembershipResponse
from app.services.memberships import MembershipService

router = APIRouter(prefix="/memberships", tags=["Memberships"])


@router.get("/{student_id}", response_model=MembershipResponse)
def get_membership(student_id: str, service: MembershipService = Depends(get_membership_service)):
    return service.get(student_id)


@router.post("/{student_id}/cancel", response_model=MembershipResponse)
def cancel_membership(
    student_id: str,
    service: MembershipService = Depends(get_membership_service),
    _admin: str = Depends(require_admin),
):
    service.cancel(student_id)
    return service.get(student_id)


@router.post("/{student_id}/reset", response_model=MembershipResponse)
def reset_membership(
    student_id: str,
    service: MembershipService = Depends(get_membership_service),
    _admin: str = Depends(require_admin),
):
    """Vuelve a `pending` una membresía cancelada o vencida, borrando plan y fechas."""
    service.reset(student_id)
    return service.get(student_id)
