from __future__ import annotations

from dataclasses import dataclass, field
from typing import FrozenSet, Optional


@dataclass(frozen=True)
class Identity:
    """Cached record of one enrolled person and their tag/courses."""

    id: str
    external_id: str
    full_name: str
    tag_id: str
    enrolled_course_codes: FrozenSet[str] = field(default_factory=frozenset)
    biometric_descriptor: Optional[bytes] = None
    photo_url: Optional[str] = None

    def is_enrolled_in(self, course_code: str) -> bool:
        return course_code in self.enrolled_course_codes
