"""Load showroom inventory from a CSV export.

Usage: python -m showroom.seed inventory.csv

Rows go through the same validation as the admin form; invalid rows and
duplicate SKUs are reported and skipped.
"""
import csv
import sys
from pathlib import Path
from typing import Dict, Tuple

from sqlalchemy.orm import Session

from showroom.application.inventory_service import InventoryService

# CSV header -> item field
COLUMN_RENAMES = {
    "leadTime": "lead_time",
    "imageUrl": "image_url",
    "qty": "stock",
}

def load_inventory(db: Session, path: Path) -> Tuple[int, Dict[int, dict]]:
    """Insert every valid row; returns (rows loaded, {line number: errors})."""
    service = InventoryService(db)
    loaded = 0
    skipped: Dict[int, dict] = {}
    with open(path, newline="", encoding="utf-8") as f:
        # header is line 1
        for line_no, row in enumerate(csv.DictReader(f), start=2):
            data = {COLUMN_RENAMES.get(k, k): v for k, v in row.items() if k}
            result = service.create(data)
            if result.success:
                loaded += 1
            else:
                skipped[line_no] = result.errors or {"_form": [result.message]}
    return loaded, skipped

def main(argv=None):
    argv = sys.argv[1:] if argv is None else argv
    if len(argv) != 1:
        raise SystemExit("usage: python -m showroom.seed <inventory.csv>")

    from showroom.infrastructure.db import SessionLocal, init_models
    init_models()
    with SessionLocal() as db:
        loaded, skipped = load_inventory(db, Path(argv[0]))
    for line_no, errors in skipped.items():
        print(f"Row {line_no} skipped: {errors}")
    print(f"Loaded {loaded} inventory item(s)")

if __name__ == "__main__":
    main()
