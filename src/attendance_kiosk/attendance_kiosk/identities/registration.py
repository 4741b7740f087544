"""Card registration mode.

While armed, the next scanned token is held as the card to link instead of
being validated as attendance. Linking writes to the remote store only, then
asks for a Pull so the new card reaches the local mirror.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Callable, Optional

from ..common.validators import clean_token
from ..core.enums import TagLink
from ..core.exceptions import AccessDenied, RemoteUnavailable
from ..sync.connectivity import ConnectivityMonitor
from ..sync.remote import RemoteStore

logger = logging.getLogger(__name__)

REGISTRATION_NEEDS_CONNECTIVITY = "registration requires connectivity"


@dataclass(frozen=True)
class LinkedTag:
    external_id: str
    tag_id: str
    result: TagLink

    def to_dict(self) -> dict:
        return {"external_id": self.external_id, "tag_id": self.tag_id, "result": self.result.value}


class CardRegistration:
    def __init__(
        self,
        remote: RemoteStore,
        connectivity: ConnectivityMonitor,
        *,
        is_active: Callable[[], bool],
        request_pull: Callable[[], object],
    ):
        self._remote = remote
        self._connectivity = connectivity
        self._is_active = is_active
        self._request_pull = request_pull

        self._lock = threading.Lock()
        self._armed = False
        self._captured: Optional[str] = None

    @property
    def armed(self) -> bool:
        return self._armed

    @property
    def captured_tag(self) -> Optional[str]:
        return self._captured

    def arm(self) -> None:
        if not self._is_active():
            raise AccessDenied("No active kiosk session")
        with self._lock:
            self._armed = True
            self._captured = None
        logger.info("Registration mode on; next card scan will be held for linking")

    def disarm(self) -> None:
        with self._lock:
            self._armed = False
            self._captured = None

    def capture(self, token: str) -> Optional[str]:
        """Hold `token` if armed. Returns the held tag, or None when not armed."""
        tag = clean_token(token)
        with self._lock:
            if not self._armed or not tag:
                return None
            self._armed = False
            self._captured = tag
        logger.info("Registration captured card %s", tag)
        return tag

    def link(self, external_id: str, tag_id: Optional[str] = None) -> LinkedTag:
        """Link a card to a student on the remote store.

        Uses the captured card unless `tag_id` is given. Raises
        RemoteUnavailable while offline and UnknownIdentity when the remote
        knows no such student.
        """
        if not self._is_active():
            raise AccessDenied("No active kiosk session")
        tag = clean_token(tag_id or "") or self._captured
        if not tag:
            raise ValueError("no card captured")
        if not self._connectivity.online:
            raise RemoteUnavailable(REGISTRATION_NEEDS_CONNECTIVITY)

        try:
            result = self._remote.link_tag(external_id, tag)
        except RemoteUnavailable as e:
            self._connectivity.mark_offline(str(e))
            raise

        with self._lock:
            if self._captured == tag:
                self._captured = None
        self._request_pull()
        return LinkedTag(external_id=external_id, tag_id=tag, result=result)
