# finalmessage/anchoring.py
import asyncio
import logging
import time
from typing import Optional

from finalmessage.blockchain import BlockchainClient
from finalmessage.crud import Repository
from finalmessage.encryption import generate_chain_hash, generate_message_hash
from finalmessage.locks import KeyedLocks
from finalmessage.models import MessageAnchor
from finalmessage.settings import settings

log = logging.getLogger("anchoring")

GENESIS_HASH = "0" * 64


class HashAnchorStore:
    """
    Append-only chain of message hashes per user. Each link commits to the
    previous link's chain hash, so rewriting history breaks every later link.
    """

    def __init__(self, repo: Repository, chain: Optional[BlockchainClient] = None, difficulty: Optional[int] = None):
        self.repo = repo
        self.chain = chain
        self.difficulty = settings.ANCHOR_DIFFICULTY if difficulty is None else difficulty
        self._locks = KeyedLocks()

    def generate_hash(self, content: str) -> str:
        return generate_message_hash(content)

    def anchor(self, previous_hash: str, new_hash: str, timestamp: int) -> dict:
        return generate_chain_hash(previous_hash, new_hash, timestamp, difficulty=self.difficulty)

    def get_stored_hash(self, user_id: str) -> Optional[str]:
        latest = self.repo.latest_anchor(user_id)
        return latest.message_hash if latest else None

    def latest(self, user_id: str) -> Optional[MessageAnchor]:
        return self.repo.latest_anchor(user_id)

    async def append(self, user_id: str, message_hash: str) -> MessageAnchor:
        """
        Link `message_hash` onto the user's chain and, when configured, record it
        on-chain. The proof-of-work and the chain call run in worker threads;
        storage stays on the caller's loop. Appends for one user are serialized
        so two links never share a predecessor.
        """
        async with self._locks.hold(user_id):
            return await self._append(user_id, message_hash)

    async def _append(self, user_id: str, message_hash: str) -> MessageAnchor:
        latest = self.repo.latest_anchor(user_id)
        previous = latest.chain_hash if latest else GENESIS_HASH
        timestamp = int(time.time())
        link = await asyncio.to_thread(self.anchor, previous, message_hash, timestamp)

        tx_hash = None
        block_number = None
        if self.chain is not None and self.chain.can_anchor_onchain:
            receipt = await asyncio.to_thread(self.chain.store_message_hash, message_hash)
            tx_hash = receipt.transactionHash.hex() if hasattr(receipt, "transactionHash") else str(receipt)
            block_number = getattr(receipt, "blockNumber", None)

        rec = self.repo.add_anchor({
            "user_id": user_id,
            "message_hash": message_hash,
            "previous_hash": previous,
            "chain_hash": link["hash"],
            "nonce": link["nonce"],
            "anchored_at": timestamp,
            "tx_hash": tx_hash,
            "block_number": block_number,
        })
        log.info("Anchored hash for %s (link %s)", user_id, rec.chain_hash[:12])
        return rec

    def verify_chain(self, user_id: str) -> bool:
        """Recompute every link of the user's chain."""
        previous = GENESIS_HASH
        for rec in self.repo.list_anchors(user_id):
            if rec.previous_hash != previous:
                return False
            digest = generate_message_hash(f"{rec.previous_hash}{rec.message_hash}{rec.anchored_at}{rec.nonce}")
            if digest != rec.chain_hash:
                return False
            previous = rec.chain_hash
        return True
