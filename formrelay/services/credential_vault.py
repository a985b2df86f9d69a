"""
Credential vault: one encrypted credential record per account.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from formrelay.clients.sqlite_store import KeyValueStore
from formrelay.models.account import Account
from formrelay.services.token_cipher import TokenCipherService

_SORT_KEY = "credentials"


def _partition_key(external_id: str) -> str:
    return f"account#{external_id}"


class CredentialVault:
    """Get and put accounts by external id; tokens are encrypted at rest."""

    def __init__(self, store: KeyValueStore, token_cipher: TokenCipherService) -> None:
        self._store = store
        self._cipher = token_cipher

    def get(self, external_id: str) -> Optional[Account]:
        record = self._store.get_item(
            partition_key=_partition_key(external_id), sort_key=_SORT_KEY
        )
        if not record:
            return None

        data = {key: value for key, value in record.items() if key not in {"pk", "sk"}}
        data["access_token"] = self._cipher.decrypt_optional(
            data.pop("access_token_encrypted", None)
        )
        data["refresh_token"] = self._cipher.decrypt_optional(
            data.pop("refresh_token_encrypted", None)
        )
        return Account.model_validate(data)

    def put(self, account: Account) -> None:
        record = account.model_dump(mode="json", exclude={"access_token", "refresh_token"})
        record.update(
            {
                "pk": _partition_key(account.external_id),
                "sk": _SORT_KEY,
                "access_token_encrypted": self._cipher.encrypt_optional(
                    account.access_token
                ),
                "refresh_token_encrypted": self._cipher.encrypt_optional(
                    account.refresh_token
                ),
            }
        )
        self._store.put_item(record)

    @staticmethod
    def is_expired(account: Account, now: Optional[datetime] = None) -> bool:
        """True once the stored expiry has passed; expiry never triggers renewal."""
        return account.is_token_expired(now)


__all__ = ["CredentialVault"]
