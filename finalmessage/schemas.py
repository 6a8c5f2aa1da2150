# finalmessage/schemas.py
from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class InactivityEvaluation(BaseModel):
    user_id: str
    last_activity: datetime
    inactivity_threshold_days: int
    is_triggered: bool
    trigger_date: Optional[datetime] = None


class VerificationResult(BaseModel):
    is_valid: bool
    timestamp: datetime
    block_number: Optional[int] = None
    transaction_hash: Optional[str] = None
    error_message: Optional[str] = None


class StartResult(BaseModel):
    success: bool
    process_id: str = ""
    message: str


class CompleteResult(BaseModel):
    success: bool
    message: str
    all_completed: bool = False


class UserWalletInfo(BaseModel):
    user_email: str
    has_wallet: bool
    wallet_address: Optional[str] = None
    created_at: Optional[datetime] = None
    is_active: bool = False


class WalletSummary(BaseModel):
    has_wallet: bool
    wallet_address: Optional[str] = None
    network_connected: bool
    transaction_count: int
    can_use_features: bool


# ---------- request bodies ----------

class CheckInIn(BaseModel):
    threshold_days: Optional[int] = Field(default=None, gt=0)


class VerifierIn(BaseModel):
    verifier_id: str
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    relationship: Optional[str] = None
    channel: str = Field(default="email", pattern="^(email|sms)$")


class MessageIn(BaseModel):
    content: str
    # store the body sealed; ignored by verify
    encrypt: bool = True


class AnchorOut(BaseModel):
    message_hash: str
    chain_hash: str
    nonce: int
    anchored_at: int
    tx_hash: Optional[str] = None
    block_number: Optional[int] = None


class CompleteVerificationIn(BaseModel):
    verifier_id: str
    data: Dict[str, Any] = Field(default_factory=dict)
