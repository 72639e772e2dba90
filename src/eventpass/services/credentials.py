"""Admin credential storage."""

from __future__ import annotations

import logging
from typing import Final

from eventpass.core.security import normalize_wallet, verify_password
from eventpass.db.store import DocumentStore
from eventpass.schemas.credential import AdminCredential

logger = logging.getLogger(__name__)

ADMINS_KEY: Final[str] = "admins"
DEFAULT_ADMIN_ID: Final[str] = "default"


class CredentialStore:
    """Holds admin password hashes and wallet bindings."""

    def __init__(self, store: DocumentStore, admin_wallet: str) -> None:
        self._store = store
        self._admin_wallet = normalize_wallet(admin_wallet)

    @property
    def admin_wallet(self) -> str:
        return self._admin_wallet

    def is_admin_wallet(self, wallet: str) -> bool:
        """Return True if ``wallet`` is the configured admin wallet."""
        return normalize_wallet(wallet) == self._admin_wallet

    def bootstrap(self, email: str, password_hash: str) -> AdminCredential:
        """Ensure exactly one admin record is bound to the configured wallet.

        The record bound to the admin wallet (or, failing that, the one with
        the configured email) is updated in place; any other record that still
        claims the admin wallet loses its binding.
        """
        with self._store.transaction(ADMINS_KEY, list) as admins:
            records = [AdminCredential.model_validate(raw) for raw in admins]
            bound = next((r for r in records if r.wallet == self._admin_wallet), None)
            if bound is None:
                bound = next((r for r in records if r.email == email), None)
            if bound is None:
                bound = AdminCredential(id=DEFAULT_ADMIN_ID)
                records.append(bound)
                logger.info("Created admin credential for configured wallet")

            updated: list[AdminCredential] = []
            for record in records:
                if record is bound:
                    record = record.model_copy(
                        update={
                            "email": email,
                            "password_hash": password_hash,
                            "wallet": self._admin_wallet,
                        }
                    )
                    bound = record
                elif record.wallet == self._admin_wallet:
                    logger.warning("Unbinding admin wallet from credential %s", record.id)
                    record = record.model_copy(update={"wallet": None})
                updated.append(record)
            admins[:] = [r.model_dump(mode="json") for r in updated]
        return bound

    def all(self) -> list[AdminCredential]:
        return [AdminCredential.model_validate(raw) for raw in self._store.get(ADMINS_KEY, [])]

    def find_by_email(self, email: str) -> AdminCredential | None:
        wanted = email.strip().lower()
        for record in self.all():
            if record.email and record.email.lower() == wanted:
                return record
        return None

    def find_by_wallet(self, wallet: str) -> AdminCredential | None:
        wanted = normalize_wallet(wallet)
        for record in self.all():
            if record.wallet == wanted:
                return record
        return None

    def authenticate(self, email: str, password: str) -> AdminCredential | None:
        """Return the admin record if ``password`` matches, else None.

        Unknown emails still run a bcrypt comparison.
        """
        record = self.find_by_email(email)
        if not verify_password(password, record.password_hash if record else None):
            return None
        return record
