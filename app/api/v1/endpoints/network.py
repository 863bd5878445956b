"""
Network Endpoints - caller's own trust assessment
"""
from fastapi import APIRouter, Depends, status

from app.schemas import TrustAssessment, DataResponse
from app.api.deps import require_min_role_level, get_trust_assessment
from app.core.config import settings
from atams.encryption import encrypt_response_data

router = APIRouter()


@router.get(
    "/assessment",
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_min_role_level(1))]
)
async def get_network_assessment(
    trust: TrustAssessment = Depends(get_trust_assessment)
):
    """
    How the attendance checks see the current connection

    Useful for diagnosing "unauthorized network" and proxy/VPN rejections.
    """
    response = DataResponse[TrustAssessment](
        success=True,
        message="Network assessment completed",
        data=trust
    )

    return encrypt_response_data(response, settings)
