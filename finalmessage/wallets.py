# finalmessage/wallets.py
import asyncio
import logging
from typing import Optional

from finalmessage.blockchain import BlockchainClient
from finalmessage.crud import Repository
from finalmessage.encryption import seal, unseal
from finalmessage.errors import WalletUnavailable
from finalmessage.locks import KeyedLocks
from finalmessage.models import WalletRecord
from finalmessage.schemas import UserWalletInfo, WalletSummary

log = logging.getLogger("wallets")


class WalletProvisioner:
    """
    Provisions one wallet per user on first need. Users never see the wallet;
    it exists so message hashes can be anchored under an identity.
    """

    def __init__(self, repo: Repository, chain: BlockchainClient):
        self.repo = repo
        self.chain = chain
        self._locks = KeyedLocks()

    def _password(self, user_email: str) -> str:
        return f"{self.chain.wallet_secret}:{user_email}"

    def _decode(self, rec: WalletRecord) -> UserWalletInfo:
        try:
            return UserWalletInfo.model_validate_json(unseal(rec.encrypted_info, self._password(rec.user_email)))
        except ValueError as e:
            raise WalletUnavailable(f"Wallet record for {rec.user_email} cannot be read") from e

    def get_wallet_info(self, user_email: str) -> Optional[UserWalletInfo]:
        rec = self.repo.get_wallet(user_email)
        if rec is None:
            return None
        try:
            return self._decode(rec)
        except WalletUnavailable:
            log.error("Wallet info lookup failed for %s", user_email)
            return None

    async def setup_wallet(self, user_email: str) -> UserWalletInfo:
        """Return the user's wallet, creating it if absent. Concurrent callers share one creation."""
        async with self._locks.hold(user_email):
            rec = self.repo.get_wallet(user_email)
            if rec is not None:
                return self._decode(rec)

            log.info("Creating wallet for %s", user_email)
            wallet = await asyncio.to_thread(self.chain.create_wallet, user_email)
            info = UserWalletInfo(
                user_email=user_email,
                has_wallet=True,
                wallet_address=wallet["address"],
                created_at=wallet["createdAt"],
                is_active=True,
            )
            rec = self.repo.create_wallet_if_absent({
                "user_email": user_email,
                "encrypted_info": seal(info.model_dump_json(), self._password(user_email)),
                "encrypted_private_key": wallet["encryptedKey"],
                "created_at": wallet["createdAt"],
            })
            return self._decode(rec)

    async def ensure_ready(self, user_email: str) -> bool:
        try:
            info = await self.setup_wallet(user_email)
        except Exception as e:
            log.warning("Wallet unavailable for %s: %s", user_email, e)
            return False

        status = await asyncio.to_thread(self.chain.get_network_status)
        if not status.get("connected"):
            log.warning("Blockchain network unreachable; wallet %s not usable", info.wallet_address)
            return False
        return True

    async def get_wallet_summary(self, user_email: str) -> WalletSummary:
        info = self.get_wallet_info(user_email)
        status = await asyncio.to_thread(self.chain.get_network_status)
        connected = bool(status.get("connected"))
        return WalletSummary(
            has_wallet=bool(info and info.has_wallet),
            wallet_address=info.wallet_address if info else None,
            network_connected=connected,
            transaction_count=self.repo.count_anchors(user_email),
            can_use_features=bool(info and info.is_active and connected),
        )

    def reset_wallet(self, user_email: str) -> bool:
        deleted = self.repo.delete_wallet(user_email)
        if deleted:
            log.info("Wallet reset for %s", user_email)
        return deleted
