# finalmessage/delivery.py
import asyncio
import logging
from datetime import datetime
from typing import Callable, Optional

from finalmessage.crud import Repository
from finalmessage.errors import DeliveryFailed, IntegrityCheckFailed
from finalmessage.integrity import MessageIntegrityChecker
from finalmessage.models import DeliveryRecord, VerificationProcessRecord, Verifier, utcnow

log = logging.getLogger("delivery")


class MessageReleaseDispatcher:
    """
    Delivers a user's final message once verification is complete. Recipients
    are served concurrently; one recipient failing never blocks the others,
    and the delivery record is written only after every attempt has settled.
    """

    def __init__(self, repo: Repository, integrity: MessageIntegrityChecker, notifier, clock: Callable[[], datetime] = utcnow):
        self.repo = repo
        self.integrity = integrity
        self.notifier = notifier
        self.clock = clock

    async def _send(self, verifier_id: str, contact: Optional[Verifier], message: str):
        channel = contact.channel if contact else "email"
        address = None
        if contact:
            address = contact.phone if channel == "sms" else contact.email
        try:
            await asyncio.to_thread(self.notifier.send, verifier_id, message, channel, address)
        except Exception as e:
            raise DeliveryFailed(str(e)) from e

    async def _deliver_one(self, verifier_id: str, contact: Optional[Verifier], message: str) -> dict:
        try:
            await self._send(verifier_id, contact, message)
        except DeliveryFailed as e:
            log.warning("Delivery to %s failed: %s", verifier_id, e)
            return {"verifierId": verifier_id, "status": "failed", "error": str(e)}
        return {"verifierId": verifier_id, "status": "delivered", "deliveredAt": self.clock().isoformat()}

    async def release(self, user_id: str, process: VerificationProcessRecord) -> DeliveryRecord:
        existing = self.repo.get_delivery_for_process(process.process_id)
        if existing is not None:
            return existing

        log.info("Releasing final message for %s (process %s)", user_id, process.process_id)
        try:
            message = self.integrity.load_message(user_id)
        except ValueError as e:
            raise IntegrityCheckFailed(f"Stored message for {user_id} cannot be decrypted") from e
        if message is None:
            raise IntegrityCheckFailed(f"No stored message for {user_id}")

        result = await self.integrity.verify(user_id, message)
        if not result.is_valid:
            raise IntegrityCheckFailed(result.error_message or "Message integrity verification failed")

        contacts = {v.verifier_id: v for v in self.repo.list_verifiers(user_id)}
        outcomes = await asyncio.gather(
            *(self._deliver_one(vid, contacts.get(vid), message) for vid in process.verifiers)
        )

        record = self.repo.create_delivery({
            "user_id": user_id,
            "verification_process_id": process.process_id,
            "delivered_at": self.clock(),
            "message_hash": self.integrity.anchors.generate_hash(message),
            "recipients": list(process.verifiers),
            "outcomes": list(outcomes),
        })
        delivered = sum(1 for o in outcomes if o["status"] == "delivered")
        log.info("Delivery finished for %s: %d/%d recipients", user_id, delivered, len(outcomes))
        return record
