"""Lead import from a CSV export of the lead sheet.

Columns are located by header name, so exports with reordered or extra
columns import the same way.
"""

import csv
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path

import structlog
from sqlalchemy.orm import Session

from leadflow.models.lead import LeadStatus
from leadflow.repositories import ActivityLog, LeadRepository
from leadflow.services.lifecycle import parse_last_contact

logger = structlog.get_logger()

REQUIRED_COLUMNS = ("First Name", "Email", "Last Service")
OPTIONAL_COLUMNS = ("Phone", "Status", "Last Contact", "Lead ID")


class MissingColumnsError(Exception):
    def __init__(self, missing: list[str]):
        self.missing = missing
        super().__init__(f"Missing required columns: {', '.join(missing)}")


@dataclass
class ImportSummary:
    added: int = 0
    skipped: int = 0
    errors: list[str] = field(default_factory=list)


def map_columns(header: list[str]) -> dict[str, int]:
    """Header name -> column index. Raises MissingColumnsError if a required one is absent."""
    columns = {}
    for index, name in enumerate(header):
        name = (name or "").strip()
        if name and name not in columns:
            columns[name] = index
    missing = [c for c in REQUIRED_COLUMNS if c not in columns]
    if missing:
        raise MissingColumnsError(missing)
    return columns


def _cell(row: list[str], columns: dict[str, int], name: str) -> str:
    index = columns.get(name)
    if index is None or index >= len(row):
        return ""
    return (row[index] or "").strip()


def import_rows(rows: Iterable[list[str]], session: Session) -> ImportSummary:
    """Append leads from ``rows`` (header first). Existing leads are left untouched."""
    iterator = iter(rows)
    header = next(iterator, None)
    if header is None:
        raise MissingColumnsError(list(REQUIRED_COLUMNS))
    columns = map_columns(header)

    leads = LeadRepository(session)
    activity = ActivityLog(session)
    summary = ImportSummary()

    for line, row in enumerate(iterator, start=2):
        if not any(cell.strip() for cell in row):
            continue
        email = _cell(row, columns, "Email")
        lead_id = _cell(row, columns, "Lead ID") or None
        if not email:
            summary.errors.append(f"row {line}: missing email")
            continue
        if leads.exists(lead_id=lead_id, email=email):
            summary.skipped += 1
            continue

        status_text = _cell(row, columns, "Status").upper()
        try:
            status = LeadStatus(status_text) if status_text else LeadStatus.PENDING
        except ValueError:
            summary.errors.append(f"row {line}: unknown status {status_text!r}")
            continue

        try:
            last_contact = parse_last_contact(_cell(row, columns, "Last Contact"))
        except ValueError:
            logger.warning("import_last_contact_invalid", row=line, email=email)
            last_contact = None

        lead = leads.add(
            email=email,
            first_name=_cell(row, columns, "First Name"),
            last_service=_cell(row, columns, "Last Service"),
            phone=_cell(row, columns, "Phone") or None,
            status=status,
            last_contact=last_contact,
            lead_id=lead_id,
        )
        activity.record("lead_imported", lead.lead_id, lead.email, f"Imported with status {status.value}.")
        summary.added += 1

    session.commit()
    logger.info("leads_imported", added=summary.added, skipped=summary.skipped, errors=len(summary.errors))
    return summary


def import_csv(path: str | Path, session: Session) -> ImportSummary:
    with open(path, newline="", encoding="utf-8-sig") as f:
        return import_rows(csv.reader(f), session)
