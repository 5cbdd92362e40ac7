"""Firebase Authentication adapter (Identity Toolkit REST API).

Implements the email/password flows the archive needs:
1. accounts:signUp + accounts:update (display name)
2. accounts:signInWithPassword
3. accounts:sendOobCode (PASSWORD_RESET)
"""
import logging
from typing import Any, Dict, Optional

import httpx

from archive.errors import AuthFailed, BackendError

from .base import Identity, IdentityProvider

logger = logging.getLogger(__name__)

# Identity Toolkit error codes → messages shown to users
_FRIENDLY_ERRORS = {
    "EMAIL_EXISTS": "The email address is already in use by another account.",
    "EMAIL_NOT_FOUND": "There is no user record corresponding to this email.",
    "INVALID_PASSWORD": "Invalid email or password",
    "INVALID_LOGIN_CREDENTIALS": "Invalid email or password",
    "USER_DISABLED": "This account has been disabled.",
    "TOO_MANY_ATTEMPTS_TRY_LATER": "Too many attempts. Please try again later.",
}


class FirebaseIdentityProvider(IdentityProvider):
    """Talks to Firebase Auth over HTTPS with an API key."""

    BASE_URL = "https://identitytoolkit.googleapis.com/v1"

    def __init__(
        self,
        api_key: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        if not api_key:
            raise ValueError("Firebase api_key is required")
        self.api_key = api_key
        self._timeout = timeout
        self._transport = transport

    async def _post(self, endpoint: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            try:
                resp = await client.post(
                    f"{self.BASE_URL}/accounts:{endpoint}",
                    params={"key": self.api_key},
                    json=payload,
                )
            except httpx.HTTPError as e:
                logger.error(f"Firebase {endpoint} request failed: {e}")
                raise BackendError(f"Identity service unreachable: {e}") from e

        try:
            data = resp.json()
        except ValueError:
            data = {}
        if resp.status_code >= 400 or "error" in data:
            code = data.get("error", {}).get("message", str(resp.status_code))
            # Codes may carry detail after a colon, e.g. "WEAK_PASSWORD : ..."
            key = code.split(":")[0].strip()
            raise AuthFailed(_FRIENDLY_ERRORS.get(key, code))
        return data

    async def sign_up(
        self,
        email: str,
        password: str,
        display_name: str,
        attrs: Optional[Dict[str, Any]] = None,
    ) -> Identity:
        data = await self._post("signUp", {
            "email": email,
            "password": password,
            "returnSecureToken": True,
        })
        await self._post("update", {
            "idToken": data["idToken"],
            "displayName": display_name,
            "returnSecureToken": False,
        })
        return Identity(
            user_id=data["localId"],
            email=data.get("email", email),
            display_name=display_name,
            id_token=data["idToken"],
        )

    async def sign_in(self, email: str, password: str) -> Identity:
        data = await self._post("signInWithPassword", {
            "email": email,
            "password": password,
            "returnSecureToken": True,
        })
        return Identity(
            user_id=data["localId"],
            email=data.get("email", email),
            display_name=data.get("displayName", ""),
            id_token=data.get("idToken"),
        )

    async def sign_out(self, user_id: str) -> None:
        # ID tokens are bearer tokens; discarding the session is enough.
        logger.debug("Firebase sign_out for %s", user_id)

    async def send_password_reset(self, email: str) -> None:
        await self._post("sendOobCode", {
            "requestType": "PASSWORD_RESET",
            "email": email,
        })
