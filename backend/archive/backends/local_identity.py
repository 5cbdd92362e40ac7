"""Identity provider that keeps accounts in the document store.

Passwords are stored as argon2 hashes through passlib. Password reset only
records a reset token; mail delivery is outside this service.
"""
import asyncio
import logging
import secrets
from typing import Any, Dict, Optional

from passlib.context import CryptContext

from archive.errors import AuthFailed

from .base import SERVER_TIMESTAMP, DocumentStore, Identity, IdentityProvider

logger = logging.getLogger(__name__)

ACCOUNTS = "_accounts"
PASSWORD_RESETS = "_password_resets"

pwd_context = CryptContext(schemes=["argon2"], deprecated="auto")


class LocalIdentityProvider(IdentityProvider):

    def __init__(self, store: DocumentStore, min_password_length: int = 6) -> None:
        self._store = store
        self._min_password_length = min_password_length

    async def sign_up(
        self,
        email: str,
        password: str,
        display_name: str,
        attrs: Optional[Dict[str, Any]] = None,
    ) -> Identity:
        email = email.strip().lower()
        if len(password) < self._min_password_length:
            raise AuthFailed(
                f"Password should be at least {self._min_password_length} characters",
                title="Registration Failed",
            )

        password_hash = await asyncio.to_thread(pwd_context.hash, password)
        async with self._store.transaction() as txn:
            existing = await txn.query(ACCOUNTS, where=[("email", email)], limit=1)
            if existing.items:
                raise AuthFailed(
                    "The email address is already in use by another account.",
                    title="Registration Failed",
                )
            user_id = await txn.create(ACCOUNTS, {
                "email": email,
                "displayName": display_name,
                "passwordHash": password_hash,
                "attrs": attrs or {},
                "createdAt": SERVER_TIMESTAMP,
            })

        logger.info("[LocalIdentityProvider] Created account %s for %s", user_id, email)
        return Identity(user_id=user_id, email=email, display_name=display_name)

    async def sign_in(self, email: str, password: str) -> Identity:
        email = email.strip().lower()
        page = await self._store.query(ACCOUNTS, where=[("email", email)], limit=1)
        if not page.items:
            raise AuthFailed("Invalid email or password")

        account = page.items[0]
        if not await asyncio.to_thread(pwd_context.verify, password, account["passwordHash"]):
            raise AuthFailed("Invalid email or password")

        return Identity(
            user_id=account["id"],
            email=account["email"],
            display_name=account.get("displayName", ""),
        )

    async def sign_out(self, user_id: str) -> None:
        logger.debug("[LocalIdentityProvider] sign_out for %s (stateless)", user_id)

    async def send_password_reset(self, email: str) -> None:
        email = email.strip().lower()
        page = await self._store.query(ACCOUNTS, where=[("email", email)], limit=1)
        if not page.items:
            raise AuthFailed(
                "There is no user record corresponding to this email.",
                title="Error",
            )
        await self._store.create(PASSWORD_RESETS, {
            "userId": page.items[0]["id"],
            "token": secrets.token_urlsafe(32),
            "createdAt": SERVER_TIMESTAMP,
        })
        # Delivery would be handled by a mail worker
        logger.info("Password reset requested for %s", email)
