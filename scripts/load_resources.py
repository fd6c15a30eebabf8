import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import argparse
import json

from reservation_engine.db.engine import engine
from reservation_engine.db.writers.resources import upsert_resources
from reservation_engine.logging_config import setup_logging

setup_logging()

# === CLI ===

if __name__ == "__main__":
    parser = argparse.ArgumentParser(
        description="Mirror venues and services from a JSON export into the resources table."
    )
    parser.add_argument(
        "path", help="JSON file: a list of {id, resource_type, owner_id, name} objects"
    )
    args = parser.parse_args()

    with open(args.path) as f:
        resources = json.load(f)

    with engine.begin() as conn:
        upsert_resources(conn, resources)

    print(f"✅ Loaded {len(resources)} resources from {args.path}")
