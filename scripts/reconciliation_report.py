import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import argparse

from reservation_engine.db.engine import engine
from reservation_engine.logging_config import setup_logging
from reservation_engine.services.calendar import NEEDS_RECONCILIATION, CalendarProjector

setup_logging()


def report(owner_id: str, year: int, month: int) -> int:
    """Print every day of the owner's calendar that needs reconciliation; return the count."""
    days = CalendarProjector(engine).owner_month(owner_id, year, month)
    flagged = [d for d in days if d.status == NEEDS_RECONCILIATION]

    for day in flagged:
        print(f"⚠️ {day.resource_id} {day.date.isoformat()}: {'; '.join(day.issues)}")
    if not flagged:
        print(f"✅ {owner_id} {year}-{month:02d}: calendar and reservations agree")
    return len(flagged)


# === CLI ===

if __name__ == "__main__":
    parser = argparse.ArgumentParser(
        description="List calendar days where availability and reservations disagree."
    )
    parser.add_argument("owner_id", help="Owner whose resources are checked")
    parser.add_argument("year", type=int)
    parser.add_argument("month", type=int)
    args = parser.parse_args()

    # Non-zero exit when something needs an owner's attention
    sys.exit(1 if report(args.owner_id, args.year, args.month) else 0)
