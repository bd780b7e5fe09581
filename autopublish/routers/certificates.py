from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from autopublish.db import get_db
from autopublish.errors import error_response
from autopublish.schemas import CertificateVerificationResponse
from autopublish.services.certificates import build_certificate_verification, get_certificate

router = APIRouter(prefix="/api/certificates", tags=["certificates"])


@router.get(
    "/verify/{certificate_id}",
    response_model=CertificateVerificationResponse,
    responses={404: {"description": "Certificate not found"}},
)
def verify_certificate(
    certificate_id: str,
    request: Request,
    db: Session = Depends(get_db),
) -> CertificateVerificationResponse | JSONResponse:
    certificate = get_certificate(db, certificate_id)
    if certificate is None:
        return error_response(
            request,
            status_code=404,
            code="CERTIFICATE_NOT_FOUND",
            message="Certificate not found.",
            extra={"valid": False, "exists": False},
        )
    return CertificateVerificationResponse.model_validate(build_certificate_verification(certificate))
