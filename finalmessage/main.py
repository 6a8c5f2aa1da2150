# finalmessage/main.py
import logging
from typing import List, Optional

from fastapi import Depends, FastAPI, HTTPException
from fastapi.responses import JSONResponse

# relative imports so this module is importable when run from the project root
from .settings import settings
from .crud import init_db
from .errors import WalletUnavailable
from .models import DeliveryRecord, UserActivity, VerificationProcessRecord, Verifier
from .schemas import (
    AnchorOut,
    CheckInIn,
    CompleteResult,
    CompleteVerificationIn,
    InactivityEvaluation,
    MessageIn,
    StartResult,
    VerificationResult,
    VerifierIn,
    WalletSummary,
)
from .services import Services, build_services
from .tasks import build_scheduler

log = logging.getLogger("api")

app = FastAPI(title="FinalMessage Release Service")

_services: Optional[Services] = None
scheduler = None


def get_services() -> Services:
    global _services
    if _services is None:
        _services = build_services()
    return _services


def _result_response(result):
    # failed workflow results are still rendered by the client
    if result.success:
        return result
    return JSONResponse(status_code=400, content=result.model_dump())


@app.on_event("startup")
async def startup():
    # async so the scheduler binds to the serving loop
    global scheduler
    logging.basicConfig(level=settings.LOG_LEVEL)
    init_db()
    scheduler = build_scheduler(get_services())
    try:
        scheduler.start()
    except Exception:
        # scheduler may already be running in dev reload
        log.warning("Scheduler did not start", exc_info=True)


@app.on_event("shutdown")
async def shutdown():
    if scheduler is not None and scheduler.running:
        scheduler.shutdown(wait=False)


# ---------- activity ----------
@app.post("/users/{user_id}/check-in", response_model=UserActivity)
def check_in(user_id: str, body: Optional[CheckInIn] = None, svc: Services = Depends(get_services)):
    """Record that the user is alive and active."""
    return svc.activity.record_check_in(user_id, body.threshold_days if body else None)


@app.get("/users/{user_id}/activity", response_model=InactivityEvaluation)
def get_activity(user_id: str, threshold_days: Optional[int] = None, svc: Services = Depends(get_services)):
    if threshold_days is not None and threshold_days <= 0:
        raise HTTPException(status_code=422, detail="threshold_days must be positive")
    return svc.activity.evaluate(user_id, threshold_days)


# ---------- verifiers ----------
@app.post("/users/{user_id}/verifiers", response_model=Verifier)
def register_verifier(user_id: str, data: VerifierIn, svc: Services = Depends(get_services)):
    if any(v.verifier_id == data.verifier_id for v in svc.repo.list_verifiers(user_id)):
        raise HTTPException(status_code=409, detail=f"Verifier {data.verifier_id} already registered")
    return svc.repo.add_verifier({"user_id": user_id, **data.model_dump()})


@app.get("/users/{user_id}/verifiers", response_model=List[Verifier])
def list_verifiers(user_id: str, svc: Services = Depends(get_services)):
    return svc.repo.list_verifiers(user_id)


# ---------- message ----------
@app.put("/users/{user_id}/message", response_model=AnchorOut)
async def store_message(user_id: str, data: MessageIn, svc: Services = Depends(get_services)):
    """
    Store the user's final message and anchor its hash.
    Fails with 503 when no wallet can be provisioned.
    """
    try:
        anchor = await svc.integrity.anchor_message(user_id, data.content, encrypt=data.encrypt)
    except WalletUnavailable as e:
        raise HTTPException(status_code=503, detail=str(e))
    return AnchorOut(**anchor.model_dump())


@app.post("/users/{user_id}/message/verify", response_model=VerificationResult)
async def verify_message(user_id: str, data: MessageIn, svc: Services = Depends(get_services)):
    return await svc.integrity.verify(user_id, data.content)


# ---------- verification workflow ----------
@app.post("/users/{user_id}/verification", response_model=StartResult)
async def start_verification(user_id: str, svc: Services = Depends(get_services)):
    return _result_response(await svc.coordinator.start_verification_process(user_id))


@app.get("/users/{user_id}/verification", response_model=List[VerificationProcessRecord])
def list_verifications(user_id: str, svc: Services = Depends(get_services)):
    return svc.coordinator.list_by_user(user_id)


@app.get("/verification/{process_id}", response_model=VerificationProcessRecord)
def get_verification(process_id: str, svc: Services = Depends(get_services)):
    process = svc.coordinator.get_status(process_id)
    if process is None:
        raise HTTPException(status_code=404, detail="Verification process not found")
    return process


@app.post("/verification/{process_id}/complete", response_model=CompleteResult)
async def complete_verification(process_id: str, data: CompleteVerificationIn, svc: Services = Depends(get_services)):
    if svc.coordinator.get_status(process_id) is None:
        raise HTTPException(status_code=404, detail="Verification process not found")
    return _result_response(await svc.coordinator.complete_verification(process_id, data.verifier_id, data.data))


@app.post("/verification/{process_id}/retry-release", response_model=CompleteResult)
async def retry_release(process_id: str, svc: Services = Depends(get_services)):
    return _result_response(await svc.coordinator.retry_release(process_id))


@app.get("/verification/{process_id}/delivery", response_model=DeliveryRecord)
def get_delivery(process_id: str, svc: Services = Depends(get_services)):
    record = svc.repo.get_delivery_for_process(process_id)
    if record is None:
        raise HTTPException(status_code=404, detail="No delivery recorded for this process")
    return record


# ---------- wallets ----------
@app.get("/wallets/{user_email}", response_model=WalletSummary)
async def wallet_summary(user_email: str, svc: Services = Depends(get_services)):
    return await svc.wallets.get_wallet_summary(user_email)


@app.delete("/wallets/{user_email}")
def reset_wallet(user_email: str, svc: Services = Depends(get_services)):
    return {"deleted": svc.wallets.reset_wallet(user_email)}
