"""Dashboard session state."""

from dataclasses import dataclass
from datetime import datetime

from frontdesk.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class Session:
    """Signed-in dashboard user, created on login and torn down on logout.

    Passed by reference to whatever needs to know who is acting.
    """

    user: str | None = None
    role: str | None = None
    signed_in_at: datetime | None = None

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None

    @property
    def actor(self) -> str:
        return self.user or "anonymous"

    def login(self, user: str, role: str = "staff") -> None:
        if not user:
            raise ValueError("User is required to sign in")
        self.user = user
        self.role = role
        self.signed_in_at = datetime.now()
        logger.info("session_started", user=user, role=role)

    def logout(self) -> None:
        if self.user is not None:
            logger.info("session_ended", user=self.user)
        self.user = None
        self.role = None
        self.signed_in_at = None
