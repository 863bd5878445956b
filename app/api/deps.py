"""
API Dependencies
Authentication via the ATAMS SSO factory, plus per-request domain collaborators
"""
from fastapi import Depends, Request

from atams.sso import create_atlas_client, create_auth_dependencies
from app.core.config import settings
from app.schemas.network import RequestMeta, TrustAssessment
from app.schemas.subject import Subject
from app.services.network_service import NetworkTrustAssessor

# Atlas role levels mapped onto campus roles
ADMIN_ROLE_LEVEL = 50
FACULTY_ROLE_LEVEL = 20

# Initialize Atlas SSO client using factory
atlas_client = create_atlas_client(settings)

# Create auth dependencies using factory
get_current_user, require_auth, require_min_role_level, require_role_level = create_auth_dependencies(atlas_client)

trust_assessor = NetworkTrustAssessor()


def subject_from_user(current_user: dict) -> Subject:
    role_level = current_user.get("role_level") or 0
    if role_level >= ADMIN_ROLE_LEVEL:
        role = "admin"
    elif role_level >= FACULTY_ROLE_LEVEL:
        role = "faculty"
    else:
        role = "student"

    return Subject(
        user_id=current_user["user_id"],
        role=role,
        department_id=current_user.get("department_id"),
        name=current_user.get("full_name") or current_user.get("username"),
    )


def get_current_subject(current_user: dict = Depends(require_auth)) -> Subject:
    return subject_from_user(current_user)


def get_trust_assessor() -> NetworkTrustAssessor:
    return trust_assessor


def get_trust_assessment(
    request: Request,
    assessor: NetworkTrustAssessor = Depends(get_trust_assessor)
) -> TrustAssessment:
    return assessor.assess(RequestMeta.from_request(request))


__all__ = [
    "atlas_client",
    "get_current_user",
    "require_auth",
    "require_min_role_level",
    "require_role_level",
    "get_current_subject",
    "get_trust_assessor",
    "get_trust_assessment",
]
