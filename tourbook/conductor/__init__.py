from tourbook.conductor.feed import ConductorStatusFeed
from tourbook.conductor.state_machine import (
    ConductorAvailabilityTracker,
    StatusTrigger,
    effective_state,
    next_state,
)

__all__ = [
    "ConductorAvailabilityTracker",
    "ConductorStatusFeed",
    "StatusTrigger",
    "effective_state",
    "next_state",
]
