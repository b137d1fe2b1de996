"""Payment-provider callback endpoint (unauthenticated, signature-checked)."""

from fastapi import APIRouter, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from app.api.deps import Session
from app.services.provider_events import SIGNATURE_HEADER, construct_event, handle_event

router = APIRouter(prefix="/provider", tags=["provider"])


@router.post("/events")
async def receive_provider_event(request: Request, session: Session) -> JSONResponse:
    """Verify and route a provider event.

    Incomplete provisioning answers 503 so the provider redelivers; the
    redelivery resumes the saga where it stopped.
    """
    body = await request.body()
    event = construct_event(body, request.headers.get(SIGNATURE_HEADER))
    outcome = await handle_event(session, event)

    code = status.HTTP_503_SERVICE_UNAVAILABLE if outcome.incomplete else status.HTTP_200_OK
    return JSONResponse(status_code=code, content=jsonable_encoder(outcome.as_dict()))
