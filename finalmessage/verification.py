# finalmessage/verification.py
"""
Inactivity-triggered verification workflow.

A process is created when a user has been inactive past their threshold. Every
verifier registered at that moment is notified and must confirm; when the last
one confirms, the process is completed and the final message is released.

Process status only moves pending -> completed. Release has its own status
(pending -> released | release_failed) so a failed delivery never hides the
fact that all verifiers responded.
"""
import asyncio
import logging
from datetime import datetime, timezone
from typing import Callable, List, Optional

from finalmessage.activity import ActivityTracker
from finalmessage.crud import Repository
from finalmessage.delivery import MessageReleaseDispatcher
from finalmessage.errors import (
    FinalMessageError,
    NoVerifiers,
    NotTriggered,
    ProcessAlreadyPending,
    ProcessNotFound,
)
from finalmessage.locks import KeyedLocks
from finalmessage.models import VerificationProcessRecord, Verifier, utcnow
from finalmessage.schemas import CompleteResult, StartResult

log = logging.getLogger("verification")

PENDING = "pending"
COMPLETED = "completed"
RELEASED = "released"
RELEASE_FAILED = "release_failed"


def _epoch_millis(dt: datetime) -> int:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return int(dt.timestamp() * 1000)


class VerificationProcessCoordinator:
    def __init__(
        self,
        repo: Repository,
        activity: ActivityTracker,
        dispatcher: MessageReleaseDispatcher,
        notifier,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.repo = repo
        self.activity = activity
        self.dispatcher = dispatcher
        self.notifier = notifier
        self.clock = clock
        self._locks = KeyedLocks()

    async def _notify_verifiers(self, user_id: str, verifiers: List[Verifier]) -> list:
        message = f"Your confirmation is needed to release the final message of {user_id}."
        notifications = []
        for v in verifiers:
            entry = {"verifierId": v.verifier_id, "channel": v.channel, "status": "pending"}
            address = v.phone if v.channel == "sms" else v.email
            try:
                await asyncio.to_thread(self.notifier.send, v.verifier_id, message, v.channel, address)
            except Exception as e:
                # verifier can still confirm out-of-band
                log.warning("Notification to verifier %s failed: %s", v.verifier_id, e)
                entry["status"] = "failed"
                entry["error"] = str(e)
            else:
                entry["status"] = "sent"
                entry["sentAt"] = self.clock().isoformat()
            notifications.append(entry)
        return notifications

    # ---------- start ----------
    async def start_verification_process(self, user_id: str) -> StartResult:
        try:
            async with self._locks.hold(f"user:{user_id}"):
                return await self._start(user_id)
        except FinalMessageError as e:
            return StartResult(success=False, message=str(e))
        except Exception as e:
            log.exception("Starting verification for %s failed", user_id)
            return StartResult(success=False, message=f"Failed to start verification process: {e}")

    async def _start(self, user_id: str) -> StartResult:
        evaluation = self.activity.evaluate(user_id)
        if not evaluation.is_triggered:
            raise NotTriggered("The user is still active.")

        verifiers = self.repo.list_verifiers(user_id)
        if not verifiers:
            raise NoVerifiers("No verifiers are registered.")

        if any(p.status == PENDING for p in self.repo.list_processes(user_id)):
            raise ProcessAlreadyPending("A verification process is already waiting for verifiers.")

        now = self.clock()
        process_id = f"verification_{user_id}_{_epoch_millis(now)}"
        notifications = await self._notify_verifiers(user_id, verifiers)

        self.repo.create_process(VerificationProcessRecord(
            process_id=process_id,
            user_id=user_id,
            start_date=now,
            status=PENDING,
            verifiers=[v.verifier_id for v in verifiers],
            notifications=notifications,
            completed_verifications=[],
        ))

        sent = sum(1 for n in notifications if n["status"] == "sent")
        log.info("Verification process %s started, %d/%d notified", process_id, sent, len(verifiers))
        return StartResult(
            success=True,
            process_id=process_id,
            message=f"Verification process started. Notified {sent} of {len(verifiers)} verifiers.",
        )

    # ---------- complete ----------
    async def complete_verification(self, process_id: str, verifier_id: str, verification_data: Optional[dict] = None) -> CompleteResult:
        try:
            async with self._locks.hold(process_id):
                return await self._complete(process_id, verifier_id, verification_data or {})
        except FinalMessageError as e:
            return CompleteResult(success=False, message=str(e))
        except Exception as e:
            log.exception("Completing verification %s for %s failed", process_id, verifier_id)
            return CompleteResult(success=False, message=f"Failed to record verification: {e}")

    async def _complete(self, process_id: str, verifier_id: str, data: dict) -> CompleteResult:
        process = self.repo.get_process(process_id)
        if process is None:
            raise ProcessNotFound(f"Verification process {process_id} was not found.")

        if process.status == COMPLETED:
            return CompleteResult(success=False, message="This verification process is already completed.", all_completed=True)
        if verifier_id not in process.verifiers:
            return CompleteResult(success=False, message=f"{verifier_id} is not a verifier for this process.")
        if any(c["verifierId"] == verifier_id for c in process.completed_verifications):
            return CompleteResult(success=False, message=f"Verification from {verifier_id} was already recorded.")

        process.completed_verifications = [
            *process.completed_verifications,
            {"verifierId": verifier_id, "completedAt": self.clock().isoformat(), "data": data},
        ]
        all_completed = len(process.completed_verifications) == len(process.verifiers)
        if all_completed:
            process.status = COMPLETED
            process.completed_at = self.clock()
        self.repo.update_process(process)

        if not all_completed:
            return CompleteResult(success=True, message="Verification recorded.", all_completed=False)

        log.info("All verifiers confirmed process %s", process_id)
        process = await self._release(process)
        if process.release_status == RELEASED:
            message = "All verifications are complete. The message has been released."
        else:
            message = "All verifications are complete, but the message could not be released."
        return CompleteResult(success=True, message=message, all_completed=True)

    async def _release(self, process: VerificationProcessRecord) -> VerificationProcessRecord:
        try:
            record = await self.dispatcher.release(process.user_id, process)
        except Exception as e:
            log.exception("Message release failed for process %s", process.process_id)
            process.release_status = RELEASE_FAILED
            process.release_error = str(e)
        else:
            process.release_status = RELEASED
            process.release_error = None
            process.released_at = record.delivered_at
        return self.repo.update_process(process)

    async def retry_release(self, process_id: str) -> CompleteResult:
        """Manually re-run a failed release for a completed process."""
        async with self._locks.hold(process_id):
            process = self.repo.get_process(process_id)
            if process is None:
                return CompleteResult(success=False, message=f"Verification process {process_id} was not found.")
            if process.status != COMPLETED:
                return CompleteResult(success=False, message="Verification is not complete yet.")
            if process.release_status == RELEASED:
                return CompleteResult(success=False, message="The message was already released.", all_completed=True)

            process = await self._release(process)
        released = process.release_status == RELEASED
        return CompleteResult(
            success=released,
            message="The message has been released." if released else f"Release failed: {process.release_error}",
            all_completed=True,
        )

    # ---------- queries ----------
    def get_status(self, process_id: str) -> Optional[VerificationProcessRecord]:
        return self.repo.get_process(process_id)

    def list_by_user(self, user_id: str) -> List[VerificationProcessRecord]:
        return self.repo.list_processes(user_id)
