"""Combine freshly pulled identities with what the local cache already knows.

Only fields in ``LOCAL_ONLY_FIELDS`` are ever carried over from the cached
record; everything else comes from the remote record as-is.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Dict, Iterable, List, Optional

from .model import Identity

LOCAL_ONLY_FIELDS = ("biometric_descriptor",)


def merge_identity(remote: Identity, cached: Optional[Identity]) -> Identity:
    if cached is None:
        return remote

    carried = {}
    for name in LOCAL_ONLY_FIELDS:
        if getattr(remote, name) is None and getattr(cached, name) is not None:
            carried[name] = getattr(cached, name)

    return replace(remote, **carried) if carried else remote


def merge_identities(remote: Iterable[Identity], cached: Iterable[Identity]) -> List[Identity]:
    """Merge by external_id; cached identities missing remotely are dropped."""
    by_external_id: Dict[str, Identity] = {c.external_id: c for c in cached}
    return [merge_identity(r, by_external_id.get(r.external_id)) for r in remote]
