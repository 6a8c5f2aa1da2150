# finalmessage/encryption.py
import hashlib
import json
import logging
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

log = logging.getLogger("encryption")

PBKDF2_ITERATIONS = 100000
TAG_LENGTH = 16


def generate_message_hash(message: str) -> str:
    """
    SHA-256 hex digest of the exact UTF-8 bytes of `message`.
    No normalization is applied: every anchored hash depends on this.
    """
    return hashlib.sha256(message.encode("utf-8")).hexdigest()


def generate_chain_hash(previous_hash: str, message_hash: str, timestamp: int, difficulty: int = 4, nonce: int = 0) -> dict:
    """
    Build one link of a hash chain: sha256(previous + message + timestamp + nonce),
    searching nonces until the digest starts with `difficulty` zero hex digits.
    Returns {"hash": ..., "nonce": ...}.
    """
    prefix = "0" * difficulty
    while True:
        digest = generate_message_hash(f"{previous_hash}{message_hash}{timestamp}{nonce}")
        if digest.startswith(prefix):
            return {"hash": digest, "nonce": nonce}
        nonce += 1


def _derive_key(password: str, salt: bytes) -> bytes:
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=32,
        salt=salt,
        iterations=PBKDF2_ITERATIONS,
    )
    return kdf.derive(password.encode())


def encrypt_message(message: str, password: str) -> dict:
    """
    AES-256-GCM with a PBKDF2-derived key. All fields are hex strings:
    encryptedData, iv, salt, tag.
    """
    salt = os.urandom(16)
    iv = os.urandom(12)
    sealed = AESGCM(_derive_key(password, salt)).encrypt(iv, message.encode(), None)
    return {
        "encryptedData": sealed[:-TAG_LENGTH].hex(),
        "iv": iv.hex(),
        "salt": salt.hex(),
        "tag": sealed[-TAG_LENGTH:].hex(),
    }


def decrypt_message(blob: dict, password: str) -> str:
    salt = bytes.fromhex(blob["salt"])
    sealed = bytes.fromhex(blob["encryptedData"]) + bytes.fromhex(blob["tag"])
    try:
        plain = AESGCM(_derive_key(password, salt)).decrypt(bytes.fromhex(blob["iv"]), sealed, None)
    except InvalidTag:
        log.error("Decryption failed: bad password or corrupted data")
        raise ValueError("Invalid password or corrupted data")
    return plain.decode()


def seal(message: str, password: str) -> str:
    """encrypt_message, serialized to a JSON string for storage."""
    return json.dumps(encrypt_message(message, password))


def unseal(sealed: str, password: str) -> str:
    return decrypt_message(json.loads(sealed), password)
