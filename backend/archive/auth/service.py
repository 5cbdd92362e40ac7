"""AuthService — sign-up, sign-in and profile management.

Wraps the configured identity provider, keeps the member's profile document
in ``users/{uid}`` and opens / closes sessions in the :class:`SessionStore`.
Every outcome is also reported to the client as a toast.
"""
import logging
from typing import Any, Dict, Optional

from archive.backends import SERVER_TIMESTAMP, Backends, Unavailable, with_deadline
from archive.errors import ArchiveError, NotAuthenticated, NotFound, ValidationFailed
from archive.memories.schemas import USERS
from archive.ui.toasts import ICON_MAIL, ICON_OK, ICON_PARTY, ICON_WARNING, ICON_WAVE, ToastCenter, notify
from archive.validation import is_valid_email

from .schemas import NotificationPreferences, Session
from .session_store import SessionStore

logger = logging.getLogger(__name__)


class AuthService:
    """Account flows for one deployment.

    Args:
        backends: Provides the identity provider and the document store.
        sessions: Registry the opened sessions are stored in.
        call_timeout: Deadline in seconds for each provider call.
        session_ttl_seconds: Lifetime of a newly opened session.
    """

    def __init__(
        self,
        backends: Backends,
        sessions: SessionStore,
        call_timeout: float = 30.0,
        session_ttl_seconds: Optional[int] = None,
    ) -> None:
        self._backends = backends
        self._sessions = sessions
        self._call_timeout = call_timeout
        self._session_ttl = session_ttl_seconds

    @property
    def sessions(self) -> SessionStore:
        return self._sessions

    async def register(
        self,
        email: str,
        password: str,
        display_name: str,
        class_year: Optional[str] = None,
        client_id: str = "default",
        toasts: Optional[ToastCenter] = None,
    ) -> Session:
        try:
            if not is_valid_email(email.strip()):
                raise ValidationFailed("Please enter a valid email address", title="Registration Failed")
            identity_provider = self._backends.require_identity()
            documents = self._backends.require_documents()

            identity = await with_deadline(
                identity_provider.sign_up(
                    email, password, display_name, attrs={"classYear": class_year}
                ),
                self._call_timeout,
                "Registration",
            )
            await with_deadline(
                documents.set(USERS, identity.user_id, {
                    "email": identity.email,
                    "displayName": display_name,
                    "classYear": class_year,
                    "createdAt": SERVER_TIMESTAMP,
                    "notificationPreferences": NotificationPreferences().model_dump(),
                }),
                self._call_timeout,
                "Saving profile",
            )
        except ArchiveError as e:
            logger.error("Registration error: %s", e.message)
            notify(toasts, "Registration Failed", e.message, ICON_WARNING)
            raise

        session = await self._sessions.open(
            identity.user_id,
            identity.email,
            display_name=display_name,
            client_id=client_id,
            ttl_seconds=self._session_ttl,
        )
        logger.info("[auth] Registered %s", identity.user_id)
        notify(toasts, "Welcome to the Archive!", "Your account has been created successfully", ICON_PARTY)
        return session

    async def login(
        self,
        email: str,
        password: str,
        client_id: str = "default",
        toasts: Optional[ToastCenter] = None,
    ) -> Session:
        try:
            identity = await with_deadline(
                self._backends.require_identity().sign_in(email, password),
                self._call_timeout,
                "Sign in",
            )
        except ArchiveError as e:
            logger.error("Login error: %s", e.message)
            notify(toasts, e.title, e.message, ICON_WARNING)
            raise

        session = await self._sessions.open(
            identity.user_id,
            identity.email,
            display_name=identity.display_name,
            client_id=client_id,
            ttl_seconds=self._session_ttl,
        )
        notify(toasts, "Welcome Back!", "You have successfully signed in", ICON_WAVE)
        return session

    async def logout(self, session: Optional[Session], toasts: Optional[ToastCenter] = None) -> None:
        if session is None:
            return
        provider = self._backends.identity
        try:
            # The local session is always dropped, even in demo mode.
            if not isinstance(provider, Unavailable):
                await with_deadline(provider.sign_out(session.user_id), self._call_timeout, "Sign out")
        except ArchiveError as e:
            logger.error("Logout error: %s", e.message)
            notify(toasts, e.title, e.message, ICON_WARNING)
            raise
        finally:
            await self._sessions.close(session.token)
        notify(toasts, "Signed Out", "You have been signed out successfully", ICON_OK)

    async def reset_password(self, email: str, toasts: Optional[ToastCenter] = None) -> None:
        try:
            if not email.strip():
                raise ValidationFailed("Please enter your email address", title="Email Required")
            await with_deadline(
                self._backends.require_identity().send_password_reset(email.strip()),
                self._call_timeout,
                "Password reset",
            )
        except ArchiveError as e:
            logger.error("Password reset error: %s", e.message)
            notify(toasts, e.title, e.message, ICON_WARNING)
            raise
        notify(toasts, "Email Sent", "Check your inbox for password reset instructions", ICON_MAIL)

    async def load_profile(self, session: Optional[Session]) -> Dict[str, Any]:
        if session is None:
            raise NotAuthenticated("Please sign in to view your profile")
        profile = await with_deadline(
            self._backends.require_documents().get(USERS, session.user_id),
            self._call_timeout,
            "Loading profile",
        )
        if profile is None:
            raise NotFound(f"No profile for user {session.user_id}")
        return profile

    async def update_notification_preferences(
        self,
        session: Optional[Session],
        preferences: NotificationPreferences,
        toasts: Optional[ToastCenter] = None,
    ) -> NotificationPreferences:
        if session is None:
            raise NotAuthenticated("Please sign in to update your preferences")
        try:
            await with_deadline(
                self._backends.require_documents().set(
                    USERS,
                    session.user_id,
                    {"notificationPreferences": preferences.model_dump()},
                    merge=True,
                ),
                self._call_timeout,
                "Saving preferences",
            )
        except ArchiveError as e:
            logger.error("Error saving preferences: %s", e.message)
            notify(toasts, e.title, e.message, ICON_WARNING)
            raise
        notify(toasts, "Preferences Saved", "Your notification settings have been updated", ICON_OK)
        return preferences
