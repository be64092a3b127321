"""
Offline console demo: availability checks against a seeded in-memory store.

Uses the real resolver, projector and conductor tracker
with in-memory repositories. No network calls.

Usage:
    python main.py day 2025-08-20
    python main.py check 2025-08-20 10:00 --tour panoramic
    python main.py alternatives 2025-08-20 --tour sunset
    python main.py conductor --busy 30
"""

import argparse
import asyncio

from tourbook.conductor import ConductorAvailabilityTracker
from tourbook.config import settings
from tourbook.logging_context import request_scope
from tourbook.repositories import (
    InMemoryBlockedPeriodRepository,
    InMemoryConductorSessionRepository,
    InMemoryReservationRepository,
)
from tourbook.schemas.availability_schema import SlotStatus
from tourbook.schemas.block_schema import BlockedPeriod
from tourbook.schemas.conductor_schema import ConductorSession
from tourbook.schemas.reservation_schema import Reservation, ReservationStatus
from tourbook.scheduling.catalog import get_all_tours
from tourbook.scheduling.conflict_resolver import ConflictResolver
from tourbook.scheduling.projector import DayAvailabilityProjector

GREEN = "\033[92m"
YELLOW = "\033[93m"
RED = "\033[91m"
DIM = "\033[2m"
RESET = "\033[0m"
BOLD = "\033[1m"

DEMO_DATE = "2025-08-20"

STATUS_COLOURS = {
    SlotStatus.AVAILABLE: GREEN,
    SlotStatus.OCCUPIED: YELLOW,
    SlotStatus.BLOCKED: RED,
}


def seed_store() -> tuple[InMemoryReservationRepository, InMemoryBlockedPeriodRepository]:
    """A day with two tours booked and one slot blocked."""
    reservations = InMemoryReservationRepository([
        Reservation(
            date=DEMO_DATE, time="10:00", tour_type="furnas", party_size=2,
            status=ReservationStatus.CONFIRMED, customer_name="Ana",
            customer_email="ana@example.com",
        ),
        Reservation(
            date=DEMO_DATE, time="14:00", tour_type="sunset", party_size=4,
            customer_name="Tom", customer_email="tom@example.com",
        ),
    ])
    blocks = InMemoryBlockedPeriodRepository([
        BlockedPeriod(date=DEMO_DATE, start_time="17:00", end_time="17:00", reason="Maintenance"),
    ])
    return reservations, blocks


async def show_day(date: str) -> None:
    reservations, blocks = seed_store()
    projector = DayAvailabilityProjector(reservations=reservations, blocks=blocks)
    grid = await projector.project_date(date)
    print(f"{BOLD}{date}{RESET}")
    for slot in grid:
        colour = STATUS_COLOURS[slot.status]
        detail = slot.reason or slot.reservation_id or ""
        print(f"  {slot.time}  {colour}{slot.status.value:<9}{RESET} {DIM}{detail}{RESET}")
    print(f"{DIM}  >> {projector.summarize(grid)}{RESET}")


async def check(date: str, time: str, tour: str, people: int) -> None:
    reservations, blocks = seed_store()
    resolver = ConflictResolver(reservations, blocks)
    result = await resolver.check_availability(date, time, people, tour)
    colour = GREEN if result.is_available else RED
    print(f"{colour}{BOLD}{result.message}{RESET}")
    if result.alternative_times:
        print(f"  Next free start: {', '.join(result.alternative_times)}")


async def alternatives(date: str, tour: str) -> None:
    reservations, blocks = seed_store()
    resolver = ConflictResolver(reservations, blocks)
    slots = await resolver.generate_alternative_times(date, tour_type=tour)
    print(f"{BOLD}{tour} on {date}:{RESET} {', '.join(slots) or 'nothing fits'}")


async def conductor(busy_minutes: int) -> None:
    sessions = InMemoryConductorSessionRepository([ConductorSession(conductor_id="driver-1", name="Rui")])
    tracker = ConductorAvailabilityTracker(sessions)
    for status in (
        await tracker.set_active("driver-1"),
        await tracker.set_busy_for("driver-1", busy_minutes),
        await tracker.get_live_conductor(),
        await tracker.set_available("driver-1"),
    ):
        print(f"  {status.state.value:<9} {DIM}{status.message}{RESET}")


def main() -> None:
    parser = argparse.ArgumentParser(description=f"{settings.app_name} offline console demo")
    sub = parser.add_subparsers(dest="command", required=True)

    day_cmd = sub.add_parser("day", help="Show the slot grid of a day")
    day_cmd.add_argument("date", nargs="?", default=DEMO_DATE)

    check_cmd = sub.add_parser("check", help="Check a requested start time")
    check_cmd.add_argument("date")
    check_cmd.add_argument("time")
    check_cmd.add_argument("--tour", default="panoramic", choices=[t["id"] for t in get_all_tours()])
    check_cmd.add_argument("--people", type=int, default=2)

    alt_cmd = sub.add_parser("alternatives", help="List every slot where a tour fits")
    alt_cmd.add_argument("date")
    alt_cmd.add_argument("--tour", default="panoramic", choices=[t["id"] for t in get_all_tours()])

    cond_cmd = sub.add_parser("conductor", help="Walk the conductor through a busy window")
    cond_cmd.add_argument("--busy", type=int, default=settings.conductor.default_busy_minutes)

    args = parser.parse_args()

    if args.command == "day":
        run = show_day(args.date)
    elif args.command == "check":
        run = check(args.date, args.time, args.tour, args.people)
    elif args.command == "alternatives":
        run = alternatives(args.date, args.tour)
    else:
        run = conductor(args.busy)
    with request_scope():
        asyncio.run(run)


if __name__ == "__main__":
    main()
