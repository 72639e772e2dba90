"""Signature and password utilities.

Wallet signatures are EIP-191 personal messages (``personal_sign``); the
signer's address is recovered with ``eth_account`` and compared against the
claimed wallet. Admin passwords are stored as bcrypt hashes.
"""

from __future__ import annotations

import logging
import secrets
import string

import bcrypt
from eth_account import Account
from eth_account.messages import encode_defunct

from eventpass.core.errors import MalformedSignatureError

logger = logging.getLogger(__name__)

SIGNATURE_LENGTH_BYTES = 65
CSRF_TOKEN_LENGTH = 32
BCRYPT_MAX_PASSWORD_BYTES = 72
CSRF_TOKEN_ALPHABET = string.ascii_letters + string.digits

# Compared against when an account is unknown so both branches pay the bcrypt cost.
_DUMMY_PASSWORD_HASH = bcrypt.hashpw(b"eventpass-dummy", bcrypt.gensalt(rounds=4))


def normalize_wallet(wallet: str) -> str:
    """Return the canonical lowercase form of a wallet address."""
    return wallet.strip().lower()


def _decode_signature(signature: str) -> bytes:
    cleaned = signature.strip()
    if cleaned[:2].lower() == "0x":
        cleaned = cleaned[2:]
    try:
        raw = bytes.fromhex(cleaned)
    except ValueError as err:
        raise MalformedSignatureError("Signature is not valid hex") from err
    if len(raw) != SIGNATURE_LENGTH_BYTES:
        raise MalformedSignatureError(
            f"Signature must be {SIGNATURE_LENGTH_BYTES} bytes, got {len(raw)}"
        )
    return raw


def recover_wallet(message: str, signature: str) -> str:
    """Recover the address that produced ``signature`` over ``message``.

    Args:
        message: The exact text that was signed with ``personal_sign``.
        signature: Hex-encoded 65-byte ``r || s || v`` signature.

    Returns:
        The recovered address, lowercased.

    Raises:
        MalformedSignatureError: If the signature cannot be decoded or no
            public key can be recovered from it.
    """
    raw = _decode_signature(signature)
    try:
        recovered = Account.recover_message(encode_defunct(text=message), signature=raw)
    except Exception as err:
        raise MalformedSignatureError("Signature could not be recovered") from err
    return normalize_wallet(recovered)


def verify_wallet_signature(message: str, signature: str, claimed_wallet: str) -> bool:
    """Return True if ``claimed_wallet`` signed ``message``.

    A signature from a different key is an expected outcome and yields False;
    only undecodable signatures raise.

    Raises:
        MalformedSignatureError: If the signature bytes are malformed.
    """
    return recover_wallet(message, signature) == normalize_wallet(claimed_wallet)


def _password_bytes(password: str) -> bytes:
    # bcrypt only looks at the first 72 bytes and newer releases reject longer input.
    return password.encode("utf-8")[:BCRYPT_MAX_PASSWORD_BYTES]


def hash_password(password: str, *, rounds: int = 12) -> str:
    """Hash a password with bcrypt."""
    return bcrypt.hashpw(_password_bytes(password), bcrypt.gensalt(rounds=rounds)).decode()


def verify_password(password: str, password_hash: str | None) -> bool:
    """Check a password against a bcrypt hash in roughly constant time."""
    if not password_hash:
        bcrypt.checkpw(_password_bytes(password), _DUMMY_PASSWORD_HASH)
        return False
    try:
        return bcrypt.checkpw(_password_bytes(password), password_hash.encode("utf-8"))
    except ValueError:
        logger.warning("Stored password hash is not a valid bcrypt hash")
        return False


def generate_csrf_token() -> str:
    """Return a random 32 character alphanumeric CSRF token."""
    return "".join(secrets.choice(CSRF_TOKEN_ALPHABET) for _ in range(CSRF_TOKEN_LENGTH))
