# stockpulse/api/endpoints.py
# Operational surface: manual pipeline runs, sentiment lookup, alert debug listing.

from fastapi import APIRouter, Depends, Request

from stockpulse.core.orchestrator import PipelineOrchestrator

router = APIRouter()

def get_orchestrator(request: Request) -> PipelineOrchestrator:
    return request.app.state.orchestrator

@router.post("/runs/alerts")
async def run_alerts(orch: PipelineOrchestrator = Depends(get_orchestrator)):
    return (await orch.run_price_alerts()).to_dict()

@router.post("/runs/digest")
async def run_digest(orch: PipelineOrchestrator = Depends(get_orchestrator)):
    return (await orch.run_daily_digest()).to_dict()

@router.get("/sentiment/{symbol}")
async def sentiment(symbol: str, orch: PipelineOrchestrator = Depends(get_orchestrator)):
    result = await orch.sentiment_for(symbol)
    return {"symbol": symbol.upper(), "sentiment": result.model_dump() if result else None}

@router.get("/debug/alerts")
def list_alerts(orch: PipelineOrchestrator = Depends(get_orchestrator)):
    return [a.model_dump(mode="json") for a in orch.alerts.store.list_alerts()]
