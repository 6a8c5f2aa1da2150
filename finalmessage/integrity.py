# finalmessage/integrity.py
import logging
from typing import Optional

from finalmessage.anchoring import HashAnchorStore
from finalmessage.crud import Repository
from finalmessage.encryption import seal, unseal
from finalmessage.errors import NoAnchor, WalletUnavailable
from finalmessage.models import MessageAnchor, utcnow
from finalmessage.schemas import VerificationResult
from finalmessage.settings import settings
from finalmessage.wallets import WalletProvisioner

log = logging.getLogger("integrity")

TAMPER_WARNING = "The message may have been tampered with: its hash does not match the anchored hash."
BROKEN_CHAIN_WARNING = "The message may have been tampered with: the anchor history no longer verifies."


class MessageIntegrityChecker:
    def __init__(self, repo: Repository, anchors: HashAnchorStore, wallets: WalletProvisioner,
                 message_secret: Optional[str] = None):
        self.repo = repo
        self.anchors = anchors
        self.wallets = wallets
        self.message_secret = message_secret or settings.MESSAGE_SECRET

    def _password(self, user_id: str) -> str:
        return f"{self.message_secret}:{user_id}"

    async def anchor_message(self, user_id: str, content: str, encrypt: bool = True) -> MessageAnchor:
        """Store the message body (sealed unless encrypt=False) and append its plaintext hash to the user's chain."""
        if not await self.wallets.ensure_ready(user_id):
            raise WalletUnavailable(f"Wallet system unavailable for {user_id}")
        body = seal(content, self._password(user_id)) if encrypt else content
        self.repo.save_message(user_id, body, is_encrypted=encrypt)
        return await self.anchors.append(user_id, self.anchors.generate_hash(content))

    def load_message(self, user_id: str) -> Optional[str]:
        """Plaintext of the stored message; ValueError if a sealed body cannot be opened."""
        msg = self.repo.get_message(user_id)
        if msg is None:
            return None
        if not msg.is_encrypted:
            return msg.content
        return unseal(msg.content, self._password(user_id))

    async def verify(self, user_id: str, original_message: str) -> VerificationResult:
        log.info("Verifying message integrity for %s", user_id)
        try:
            if not await self.wallets.ensure_ready(user_id):
                raise WalletUnavailable("The wallet system is not reachable.")

            stored_hash = self.anchors.get_stored_hash(user_id)
            if not stored_hash:
                raise NoAnchor("No anchored message hash was found.")

            chain_intact = self.anchors.verify_chain(user_id)
            is_valid = chain_intact and self.anchors.generate_hash(original_message) == stored_hash
            latest = self.anchors.latest(user_id)
        except (WalletUnavailable, NoAnchor) as e:
            return VerificationResult(is_valid=False, timestamp=utcnow(), error_message=str(e))
        except Exception as e:
            log.exception("Integrity check failed for %s", user_id)
            return VerificationResult(is_valid=False, timestamp=utcnow(), error_message=f"Verification error: {e}")

        if not chain_intact:
            log.warning("Anchor chain for %s does not verify", user_id)
        log.info("Integrity check for %s: %s", user_id, "ok" if is_valid else "MISMATCH")
        return VerificationResult(
            is_valid=is_valid,
            timestamp=utcnow(),
            block_number=latest.block_number if latest else None,
            transaction_hash=latest.tx_hash if latest else None,
            error_message=None if is_valid else (TAMPER_WARNING if chain_intact else BROKEN_CHAIN_WARNING),
        )
