"""
Location permission negotiation.

Background location is requested only after foreground is granted and the
driver has accepted the background-location disclosure. Acceptance is kept
in a durable flag store so it survives restarts until explicitly reset.
"""

import enum
import logging
from typing import Optional

from pydantic import BaseModel

from driver_backend.app.core.config import settings
from driver_backend.app.domain.ports import FlagStore, PermissionProvider, PermissionStatus

logger = logging.getLogger(__name__)

DISCLOSURE_ACCEPTED = "true"


class PermissionState(str, enum.Enum):
    UNKNOWN = "unknown"
    FOREGROUND_DENIED = "foreground_denied"
    FOREGROUND_GRANTED = "foreground_granted"
    NEEDS_DISCLOSURE = "needs_disclosure"
    BACKGROUND_GRANTED = "background_granted"
    BACKGROUND_DENIED = "background_denied"


class PermissionAdvisory(BaseModel):
    """Prompt shown after a denial, pointing the driver at system settings."""
    title: str
    message: str
    action: str = "open_settings"


FOREGROUND_ADVISORY = PermissionAdvisory(
    title="Location Permission Required",
    message=(
        "CCT Driver needs location access to track trips. "
        "Please enable location in your device settings."
    ),
)

BACKGROUND_ADVISORY = PermissionAdvisory(
    title="Background Location Required",
    message=(
        "For accurate trip tracking while using other apps, please enable "
        "\"Allow all the time\" location access in settings."
    ),
)


class PermissionSnapshot(BaseModel):
    state: PermissionState
    has_foreground_permission: bool
    has_background_permission: bool
    has_accepted_disclosure: bool
    needs_disclosure: bool
    error_message: Optional[str] = None
    advisory: Optional[PermissionAdvisory] = None


class PermissionNegotiator:
    """
    Sequences foreground and background consent.

    Nothing here raises on denial or provider failure: the outcome is
    reflected in the flags, `state` and `advisory`, and callers keep running
    with foreground-only location or none at all.
    """

    def __init__(
        self,
        permissions: PermissionProvider,
        flags: FlagStore,
        disclosure_key: Optional[str] = None,
    ):
        self._permissions = permissions
        self._flags = flags
        self.disclosure_key = disclosure_key or settings.disclosure_flag_key

        self.state = PermissionState.UNKNOWN
        self.has_foreground_permission = False
        self.has_background_permission = False
        self.has_accepted_disclosure = False
        self.needs_disclosure = False
        self.error_message: Optional[str] = None
        self.advisory: Optional[PermissionAdvisory] = None

    async def initialize(self) -> PermissionSnapshot:
        """Read the current OS state and the stored disclosure flag."""
        self.has_accepted_disclosure = await self._load_disclosure()

        try:
            status = await self._permissions.query_foreground_permission()
        except Exception:
            logger.exception("Error checking foreground location permission")
            status = PermissionStatus.UNDETERMINED

        if status == PermissionStatus.GRANTED:
            self._foreground_granted()
        else:
            await self.request_foreground_permission()

        if self.has_foreground_permission:
            try:
                background = await self._permissions.query_background_permission()
            except Exception:
                logger.exception("Error checking background location permission")
                background = PermissionStatus.UNDETERMINED
            if background == PermissionStatus.GRANTED:
                self._background_granted()

        return self.snapshot()

    async def request_foreground_permission(self) -> bool:
        try:
            status = await self._permissions.request_foreground_permission()
        except Exception:
            logger.exception("Error requesting foreground location permission")
            self.error_message = "Failed to request location permission"
            self.state = PermissionState.FOREGROUND_DENIED
            return False

        if status != PermissionStatus.GRANTED:
            self.has_foreground_permission = False
            self.state = PermissionState.FOREGROUND_DENIED
            self.error_message = "Permission to access location was denied"
            self.advisory = FOREGROUND_ADVISORY
            return False

        self._foreground_granted()
        return True

    async def request_tracking(self) -> bool:
        """
        Called when a trip becomes active. Returns True once background
        permission is held; False means tracking continues degraded or waits
        on the disclosure.
        """
        if not self.has_foreground_permission:
            return False
        if self.has_background_permission:
            return True
        return await self.request_background_permission()

    async def request_background_permission(self) -> bool:
        if not self.has_accepted_disclosure:
            self.needs_disclosure = True
            self.state = PermissionState.NEEDS_DISCLOSURE
            return False
        if not self.has_foreground_permission:
            return False

        try:
            status = await self._permissions.request_background_permission()
        except Exception:
            logger.exception("Error requesting background location permission")
            self.error_message = "Failed to request background location permission"
            self.state = PermissionState.BACKGROUND_DENIED
            return False

        if status != PermissionStatus.GRANTED:
            self.has_background_permission = False
            self.state = PermissionState.BACKGROUND_DENIED
            self.advisory = BACKGROUND_ADVISORY
            return False

        self._background_granted()
        return True

    async def accept_disclosure(self) -> bool:
        """Persist acceptance and, if tracking was waiting on it, request background."""
        try:
            await self._flags.set(self.disclosure_key, DISCLOSURE_ACCEPTED)
        except Exception:
            logger.exception("Error saving location disclosure acceptance")
            return False

        self.has_accepted_disclosure = True
        if self.needs_disclosure:
            return await self.request_background_permission()
        return False

    async def reset_disclosure(self) -> None:
        try:
            await self._flags.remove(self.disclosure_key)
        except Exception:
            logger.exception("Error resetting location disclosure")
            return
        self.has_accepted_disclosure = False

    def decline_disclosure(self) -> None:
        """Driver dismissed the disclosure. Foreground tracking continues."""
        self.needs_disclosure = False
        if self.has_foreground_permission and not self.has_background_permission:
            self.state = PermissionState.FOREGROUND_GRANTED

    def dismiss_advisory(self) -> None:
        self.advisory = None

    def snapshot(self) -> PermissionSnapshot:
        return PermissionSnapshot(
            state=self.state,
            has_foreground_permission=self.has_foreground_permission,
            has_background_permission=self.has_background_permission,
            has_accepted_disclosure=self.has_accepted_disclosure,
            needs_disclosure=self.needs_disclosure,
            error_message=self.error_message,
            advisory=self.advisory,
        )

    async def _load_disclosure(self) -> bool:
        try:
            return await self._flags.get(self.disclosure_key) == DISCLOSURE_ACCEPTED
        except Exception:
            logger.exception("Error reading location disclosure flag")
            return False

    def _foreground_granted(self) -> None:
        self.has_foreground_permission = True
        self.error_message = None
        if not self.has_background_permission:
            self.state = PermissionState.FOREGROUND_GRANTED

    def _background_granted(self) -> None:
        self.has_background_permission = True
        self.needs_disclosure = False
        self.state = PermissionState.BACKGROUND_GRANTED
