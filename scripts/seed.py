#!/usr/bin/env python3
"""Seed the database with the sample leads."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "backend"))

from pathlib import Path

from leadflow.database import Base, SessionLocal, engine
from leadflow.logging_config import configure_logging
from leadflow.services.importer import import_csv
import leadflow.models  # noqa: F401

SAMPLES_DIR = Path(__file__).parent.parent / "samples"


def seed():
    configure_logging(debug=True)
    Base.metadata.create_all(engine)

    with SessionLocal() as session:
        summary = import_csv(SAMPLES_DIR / "leads.csv", session)

    print(f"Added {summary.added} leads, skipped {summary.skipped} existing")
    for error in summary.errors:
        print(f"  rejected: {error}")


if __name__ == "__main__":
    seed()
