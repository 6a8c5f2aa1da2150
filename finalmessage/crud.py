# finalmessage/crud.py

from typing import List, Optional

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlmodel import SQLModel, Session, select, create_engine, func

from finalmessage.errors import ProcessAlreadyPending, StaleRecordError
from finalmessage.models import (
    DeliveryRecord,
    MessageAnchor,
    StoredMessage,
    UserActivity,
    VerificationProcessRecord,
    Verifier,
    WalletRecord,
    utcnow,
)
from finalmessage.settings import settings


# ---------- Database Setup ----------
engine = create_engine(settings.DATABASE_URL, echo=False)


def init_db(bind=None):
    """Initialize all SQLModel tables."""
    SQLModel.metadata.create_all(bind or engine)


class Repository:
    """Keyed record storage shared by the workflow components."""

    def __init__(self, bind=None):
        self.engine = bind or engine

    # ---------- ACTIVITY ----------
    def get_activity(self, user_id: str) -> Optional[UserActivity]:
        with Session(self.engine) as s:
            return s.get(UserActivity, user_id)

    def save_activity(self, user_id: str, seen_at, threshold_days: Optional[int] = None) -> UserActivity:
        """Overwrite the user's last activity timestamp."""
        with Session(self.engine) as s:
            rec = s.get(UserActivity, user_id)
            if rec is None:
                rec = UserActivity(user_id=user_id, last_activity_seen=seen_at)
            rec.last_activity_seen = seen_at
            if threshold_days is not None:
                rec.inactivity_threshold_days = threshold_days
            s.add(rec)
            s.commit()
            s.refresh(rec)
            return rec

    # ---------- VERIFIERS ----------
    def add_verifier(self, obj: dict) -> Verifier:
        with Session(self.engine) as s:
            v = Verifier(**obj)
            s.add(v)
            s.commit()
            s.refresh(v)
            return v

    def list_verifiers(self, user_id: str) -> List[Verifier]:
        with Session(self.engine) as s:
            q = select(Verifier).where(Verifier.user_id == user_id).order_by(Verifier.id)
            return s.exec(q).all()

    def users_with_verifiers(self) -> List[str]:
        with Session(self.engine) as s:
            return s.exec(select(Verifier.user_id).distinct()).all()

    # ---------- MESSAGES ----------
    def get_message(self, user_id: str) -> Optional[StoredMessage]:
        with Session(self.engine) as s:
            return s.get(StoredMessage, user_id)

    def save_message(self, user_id: str, content: str, is_encrypted: bool = False) -> StoredMessage:
        with Session(self.engine) as s:
            msg = s.get(StoredMessage, user_id) or StoredMessage(user_id=user_id, content=content)
            msg.content = content
            msg.is_encrypted = is_encrypted
            msg.updated_at = utcnow()
            s.add(msg)
            s.commit()
            s.refresh(msg)
            return msg

    # ---------- ANCHORS ----------
    def add_anchor(self, obj: dict) -> MessageAnchor:
        with Session(self.engine) as s:
            a = MessageAnchor(**obj)
            s.add(a)
            s.commit()
            s.refresh(a)
            return a

    def list_anchors(self, user_id: str) -> List[MessageAnchor]:
        """Anchors for a user, oldest first."""
        with Session(self.engine) as s:
            q = select(MessageAnchor).where(MessageAnchor.user_id == user_id).order_by(MessageAnchor.id)
            return s.exec(q).all()

    def latest_anchor(self, user_id: str) -> Optional[MessageAnchor]:
        with Session(self.engine) as s:
            q = (
                select(MessageAnchor)
                .where(MessageAnchor.user_id == user_id)
                .order_by(MessageAnchor.id.desc())
                .limit(1)
            )
            return s.exec(q).first()

    def count_anchors(self, user_id: str) -> int:
        with Session(self.engine) as s:
            q = select(func.count()).select_from(MessageAnchor).where(MessageAnchor.user_id == user_id)
            return s.exec(q).one()

    # ---------- VERIFICATION PROCESSES ----------
    def create_process(self, process: VerificationProcessRecord) -> VerificationProcessRecord:
        """Insert a new process; a second pending process for the same user is refused."""
        with Session(self.engine) as s:
            s.add(process)
            try:
                s.commit()
            except IntegrityError as e:
                s.rollback()
                raise ProcessAlreadyPending(
                    "A verification process is already waiting for verifiers."
                ) from e
            s.refresh(process)
            return process

    def get_process(self, process_id: str) -> Optional[VerificationProcessRecord]:
        with Session(self.engine) as s:
            return s.get(VerificationProcessRecord, process_id)

    def list_processes(self, user_id: str) -> List[VerificationProcessRecord]:
        """Processes for a user, newest first."""
        with Session(self.engine) as s:
            q = (
                select(VerificationProcessRecord)
                .where(VerificationProcessRecord.user_id == user_id)
                .order_by(VerificationProcessRecord.start_date.desc())
            )
            return s.exec(q).all()

    def update_process(self, process: VerificationProcessRecord) -> VerificationProcessRecord:
        """
        Write back a process read earlier. The write only lands if the stored
        revision still equals process.revision; the revision is then bumped.
        """
        values = process.model_dump(exclude={"process_id", "revision"})
        with Session(self.engine) as s:
            res = s.exec(
                update(VerificationProcessRecord)
                .where(
                    VerificationProcessRecord.process_id == process.process_id,
                    VerificationProcessRecord.revision == process.revision,
                )
                .values(**values, revision=process.revision + 1)
            )
            if res.rowcount != 1:
                s.rollback()
                raise StaleRecordError(f"process {process.process_id} changed since revision {process.revision}")
            s.commit()
        process.revision += 1
        return process

    # ---------- DELIVERY ----------
    def create_delivery(self, obj: dict) -> DeliveryRecord:
        with Session(self.engine) as s:
            rec = DeliveryRecord(**obj)
            s.add(rec)
            s.commit()
            s.refresh(rec)
            return rec

    def get_delivery_for_process(self, process_id: str) -> Optional[DeliveryRecord]:
        with Session(self.engine) as s:
            q = select(DeliveryRecord).where(DeliveryRecord.verification_process_id == process_id)
            return s.exec(q).first()

    def list_deliveries(self, user_id: str) -> List[DeliveryRecord]:
        with Session(self.engine) as s:
            q = (
                select(DeliveryRecord)
                .where(DeliveryRecord.user_id == user_id)
                .order_by(DeliveryRecord.delivered_at.desc())
            )
            return s.exec(q).all()

    # ---------- WALLETS ----------
    def get_wallet(self, user_email: str) -> Optional[WalletRecord]:
        with Session(self.engine) as s:
            return s.get(WalletRecord, user_email)

    def create_wallet_if_absent(self, obj: dict) -> WalletRecord:
        """Insert a wallet row unless one exists; the stored row is returned either way."""
        with Session(self.engine) as s:
            rec = WalletRecord(**obj)
            s.add(rec)
            try:
                s.commit()
            except IntegrityError:
                s.rollback()
                return s.get(WalletRecord, obj["user_email"])
            s.refresh(rec)
            return rec

    def delete_wallet(self, user_email: str) -> bool:
        with Session(self.engine) as s:
            rec = s.get(WalletRecord, user_email)
            if not rec:
                return False
            s.delete(rec)
            s.commit()
            return True
