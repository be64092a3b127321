from tourbook.repositories.base import (
    BlockedPeriodRepository,
    ConductorSessionRepository,
    ReservationRepository,
)
from tourbook.repositories.memory import (
    InMemoryBlockedPeriodRepository,
    InMemoryConductorSessionRepository,
    InMemoryReservationRepository,
)
from tourbook.repositories.rest import (
    RestBlockedPeriodRepository,
    RestConductorSessionRepository,
    RestReservationRepository,
    StoreClient,
)

__all__ = [
    "ReservationRepository",
    "BlockedPeriodRepository",
    "ConductorSessionRepository",
    "InMemoryReservationRepository",
    "InMemoryBlockedPeriodRepository",
    "InMemoryConductorSessionRepository",
    "RestReservationRepository",
    "RestBlockedPeriodRepository",
    "RestConductorSessionRepository",
    "StoreClient",
]
