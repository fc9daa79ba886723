"""Lead endpoints: extraction trigger (internal) and exclusive claim."""

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, Response, status

from intake_core.auth.dependencies import require_roles
from intake_core.auth.internal_service import InternalAuthDep
from intake_core.database.models import Profile
from intake_core.database.session import get_session_context
from intake_core.dependencies import rate_limit
from intake_core.exceptions import AuthorizationError, DatabaseError, NotFoundError, ValidationError
from intake_core.models.leads import (
    ClaimLeadRequest,
    ClaimLeadResponse,
    LeadExtractionRequest,
)
from intake_core.services.claim_service import get_claim_service
from intake_core.services.extraction_service import get_lead_extraction_service
from intake_core.services.rate_limit_service import AUTHENTICATED

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/leads", tags=["leads"])


@router.post(
    "/extract",
    summary="Extract lead from transcript (Internal)",
    description=(
        "Runs the extraction model over a transcript, stores the result on the conversation, "
        "creates the lead and matches it to firms. Requires X-Internal-API-Key."
    ),
    dependencies=[InternalAuthDep],
)
async def extract_lead(request: LeadExtractionRequest, response: Response) -> Dict[str, Any]:
    if not request.conversationId or not request.transcript:
        response.status_code = status.HTTP_400_BAD_REQUEST
        return {"error": "Missing conversationId or transcript"}

    try:
        async with get_session_context() as session:
            service = get_lead_extraction_service(session)
            extracted = await service.process(request.conversationId, request.transcript)
    except (NotFoundError, DatabaseError) as e:
        logger.error(f"Lead extraction for {request.conversationId} could not update the conversation: {e}")
        response.status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
        return {"error": "Failed to update conversation"}

    if extracted is None:
        response.status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
        return {"error": "Failed to extract lead data"}

    return {
        "message": "Lead extraction completed",
        "extractedData": extracted.model_dump(by_alias=True),
    }


def _claiming_firm_id(profile: Profile, request: Optional[ClaimLeadRequest]) -> str:
    requested = request.law_firm_id if request else None
    if profile.role == "system_admin":
        if not requested:
            raise ValidationError("law_firm_id is required for system administrators")
        return requested

    if not profile.law_firm_id:
        raise AuthorizationError("Your profile is not associated with a law firm")
    if requested and requested != profile.law_firm_id:
        raise AuthorizationError("Cannot claim leads for another law firm")
    return profile.law_firm_id


@router.post(
    "/{lead_id}/claim",
    response_model=ClaimLeadResponse,
    summary="Claim a lead",
    description=(
        "Exclusively claims a lead for the caller's firm. Quota exhaustion and losing the race "
        "to another firm are reported with success=false and a message."
    ),
    dependencies=[rate_limit(AUTHENTICATED)],
)
async def claim_lead(
    lead_id: str,
    request: Optional[ClaimLeadRequest] = Body(default=None),
    profile: Profile = Depends(require_roles(["legal_admin", "system_admin"])),
) -> ClaimLeadResponse:
    firm_id = _claiming_firm_id(profile, request)
    async with get_session_context() as session:
        result = await get_claim_service(session).claim_lead(lead_id, firm_id, profile.id)

    if result.status == "not_found":
        raise NotFoundError("Lead", lead_id)
    return result
