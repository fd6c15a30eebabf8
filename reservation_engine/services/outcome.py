from dataclasses import dataclass, field
from typing import Any, Optional

from reservation_engine.errors import SideEffectFailed


@dataclass
class MutationOutcome:
    """
    Result of any mutating operation.

    ``reservation`` is None after a delete. ``released_availability`` is the
    record of the date a reservation moved away from, when it moved.
    """

    reservation: Optional[dict[str, Any]]
    availability: dict[str, Any]
    warnings: list[SideEffectFailed] = field(default_factory=list)
    released_availability: Optional[dict[str, Any]] = None
