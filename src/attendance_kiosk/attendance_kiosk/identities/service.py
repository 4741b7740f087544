from __future__ import annotations

import logging
from dataclasses import replace
from typing import Optional

from ..cache.repository import LocalCache
from ..core.enums import Collection
from ..core.exceptions import UnknownIdentity
from .model import Identity

logger = logging.getLogger(__name__)


class IdentityService:
    def __init__(self, cache: LocalCache):
        self._cache = cache

    def get(self, external_id: str) -> Optional[Identity]:
        matches = self._cache.query_where(Collection.IDENTITIES, external_id=external_id)
        return matches[0] if matches else None

    def save_descriptor(self, external_id: str, descriptor: bytes) -> Identity:
        """Attach a locally computed biometric descriptor to a cached identity.

        The descriptor never leaves the kiosk; Pull carries it over by external id.
        """
        identity = self.get(external_id)
        if identity is None:
            raise UnknownIdentity(external_id)
        stored = self._cache.put(Collection.IDENTITIES, replace(identity, biometric_descriptor=bytes(descriptor)))
        logger.info("Stored %d-byte descriptor for %s", len(descriptor), external_id)
        return stored
