# stockpulse/api/events.py
# Inbound application events. Guarded by EVENTS_SECRET when it is set.

from fastapi import APIRouter, Depends, HTTPException

from stockpulse.api.endpoints import get_orchestrator
from stockpulse.core.config import settings
from stockpulse.core.orchestrator import PipelineOrchestrator
from stockpulse.models.schema import UserCreatedEvent

router = APIRouter()

def check_token(token: str | None = None) -> None:
    if settings.EVENTS_SECRET and token != settings.EVENTS_SECRET:
        raise HTTPException(status_code=401, detail="invalid event token")

@router.post("/events/user-created", dependencies=[Depends(check_token)])
async def user_created(event: UserCreatedEvent, orch: PipelineOrchestrator = Depends(get_orchestrator)):
    summary = await orch.send_welcome(event.email, event.name)
    return {"success": summary.succeeded == 1, **summary.to_dict()}
