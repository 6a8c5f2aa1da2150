# finalmessage/blockchain.py
import json
import logging
import os

from eth_account import Account
from web3 import Web3

from finalmessage.encryption import seal, unseal
from finalmessage.models import utcnow
from finalmessage.settings import settings

log = logging.getLogger("blockchain")

def _load_abi(name: str = "FinalMessage.json") -> list:
    with open(os.path.join(os.path.dirname(__file__), "artifacts", name)) as f:
        artifact = json.load(f)
    return artifact["abi"] if isinstance(artifact, dict) else artifact


ABI = _load_abi()


def _broadcast_and_wait(w3, signed_tx):
    """Send the signed storeMessageHash call and block until its receipt arrives."""
    raw = getattr(signed_tx, "raw_transaction", None) or getattr(signed_tx, "rawTransaction", None)
    if raw is None:
        raise RuntimeError("signed transaction has no raw bytes to broadcast")
    return w3.eth.wait_for_transaction_receipt(w3.eth.send_raw_transaction(raw))


class BlockchainClient:
    """
    Wallet/identity collaborator. Keys are generated locally with eth-account;
    the chain is only contacted when RPC_URL is configured. Without it the
    client runs in local-ledger mode and anchors live in the database only.
    """

    def __init__(self, rpc_url=None, contract_address=None, chain_id=None, submitter_pk=None, wallet_secret=None):
        self.rpc_url = rpc_url if rpc_url is not None else settings.RPC_URL
        self.contract_address = contract_address if contract_address is not None else settings.CONTRACT_ADDRESS
        self.chain_id = int(chain_id if chain_id is not None else settings.CHAIN_ID)
        self.submitter_pk = submitter_pk if submitter_pk is not None else settings.SUBMITTER_PK
        self.wallet_secret = wallet_secret if wallet_secret is not None else settings.WALLET_SECRET
        self._w3 = None
        self._contract = None

    @property
    def local_mode(self) -> bool:
        return not self.rpc_url

    @property
    def w3(self) -> Web3:
        if self._w3 is None:
            self._w3 = Web3(Web3.HTTPProvider(self.rpc_url))
        return self._w3

    @property
    def contract(self):
        if self._contract is None:
            self._contract = self.w3.eth.contract(address=Web3.to_checksum_address(self.contract_address), abi=ABI)
        return self._contract

    @property
    def can_anchor_onchain(self) -> bool:
        return bool(self.rpc_url and self.contract_address and self.submitter_pk)

    # ---------- wallets ----------
    def _wallet_password(self, user_id: str) -> str:
        return f"{self.wallet_secret}:{user_id}"

    def create_wallet(self, user_id: str) -> dict:
        """Generate a fresh key pair for `user_id`; the private key is returned encrypted."""
        acct = Account.create()
        return {
            "address": acct.address,
            "encryptedKey": seal(acct.key.hex(), self._wallet_password(user_id)),
            "createdAt": utcnow(),
        }

    def decrypt_private_key(self, user_id: str, encrypted_key: str) -> str:
        return unseal(encrypted_key, self._wallet_password(user_id))

    # ---------- network ----------
    def get_network_status(self) -> dict:
        if self.local_mode:
            return {"connected": True, "networkId": self.chain_id, "blockNumber": None, "mode": "local"}
        try:
            if not self.w3.is_connected():
                return {"connected": False}
            return {
                "connected": True,
                "networkId": self.w3.eth.chain_id,
                "blockNumber": self.w3.eth.block_number,
                "mode": "rpc",
            }
        except Exception as e:
            log.warning("Network status check failed: %s", e)
            return {"connected": False}

    # ---------- anchoring ----------
    def store_message_hash(self, message_hash: str):
        """Submit `message_hash` to the contract from the submitter account; returns the receipt."""
        acct = self.w3.eth.account.from_key(self.submitter_pk)

        tx = self.contract.functions.storeMessageHash(message_hash).build_transaction({
            "from": acct.address,
            "nonce": self.w3.eth.get_transaction_count(acct.address),
            "chainId": self.chain_id,
            "gas": 200000,
            "gasPrice": self.w3.eth.gas_price,
        })

        signed = self.w3.eth.account.sign_transaction(tx, private_key=self.submitter_pk)
        receipt = _broadcast_and_wait(self.w3, signed)
        log.info("Stored message hash on-chain: %s", receipt.transactionHash.hex())
        return receipt
