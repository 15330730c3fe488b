"""Tests for CSV lead import."""

import pytest
from sqlalchemy import select

from leadflow.models.lead import Lead, LeadStatus
from leadflow.repositories import LeadRepository
from leadflow.services.importer import MissingColumnsError, import_csv, import_rows, map_columns

HEADER = ["Lead ID", "First Name", "Email", "Phone", "Last Service", "Status", "Last Contact"]


class TestMapColumns:
    def test_reordered_columns(self):
        columns = map_columns(["Email", "Notes", "Last Service", "First Name"])
        assert columns["Email"] == 0
        assert columns["First Name"] == 3

    def test_missing_required(self):
        with pytest.raises(MissingColumnsError) as exc:
            map_columns(["First Name", "Phone"])
        assert exc.value.missing == ["Email", "Last Service"]


class TestImportRows:
    def test_imports_new_leads(self, session):
        rows = [
            HEADER,
            ["", "Ana", "Ana@Example.com", "555-0100", "SEO", "", ""],
            ["L-9", "Bob", "bob@example.com", "", "PPC", "sent", "2025-03-10"],
        ]
        summary = import_rows(rows, session)
        assert summary.added == 2
        assert summary.errors == []

        ana = LeadRepository(session).find(email="ana@example.com")
        assert ana.status == LeadStatus.PENDING
        assert ana.lead_id is None
        assert ana.phone == "555-0100"
        bob = LeadRepository(session).get("L-9")
        assert bob.status == LeadStatus.SENT
        assert bob.last_contact is not None

    def test_existing_leads_skipped(self, session):
        LeadRepository(session).add(email="ana@example.com", first_name="Ana", status=LeadStatus.HOT)
        session.commit()
        summary = import_rows([HEADER, ["", "Ana", "ANA@example.com", "", "SEO", "", ""]], session)
        assert summary.skipped == 1
        assert summary.added == 0
        leads = list(session.execute(select(Lead)).scalars())
        assert len(leads) == 1
        assert leads[0].status == LeadStatus.HOT

    def test_row_errors_collected(self, session):
        rows = [
            HEADER,
            ["", "NoEmail", "", "", "SEO", "", ""],
            ["", "Weird", "weird@example.com", "", "SEO", "MAYBE", ""],
            ["", "", "", "", "", "", ""],
        ]
        summary = import_rows(rows, session)
        assert summary.added == 0
        assert len(summary.errors) == 2
        assert "missing email" in summary.errors[0]
        assert "unknown status" in summary.errors[1]

    def test_bad_last_contact_imported_without_date(self, session):
        summary = import_rows([HEADER, ["", "Ana", "ana@example.com", "", "SEO", "SENT", "someday"]], session)
        assert summary.added == 1
        assert LeadRepository(session).find(email="ana@example.com").last_contact is None

    def test_empty_file(self, session):
        with pytest.raises(MissingColumnsError):
            import_rows([], session)


class TestImportCsv:
    def test_reads_bom_file(self, session, tmp_path):
        path = tmp_path / "leads.csv"
        path.write_text("\ufeffFirst Name,Email,Last Service\nAna,ana@example.com,SEO\n", encoding="utf-8")
        summary = import_csv(path, session)
        assert summary.added == 1
