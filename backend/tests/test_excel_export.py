"""
Tests for services/excel_export.py — reconciliation workbook layout and formats.
"""

import sys
import os
from datetime import datetime

import pytest
from openpyxl import load_workbook

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from models.schemas import Submission, Payment
from services.reconciliation import reconcile, build_submission_balances
from services.duplicates import find_duplicate_links
from services.excel_export import generate_report, CURRENCY_FORMAT, NUMBER_FORMAT


@pytest.fixture
def report_inputs():
    submissions = [
        Submission(id="s1", owner_email="a@x.com", views=2000, payment_amount=1.0,
                   video_url="https://x.com/v/1"),
        Submission(id="s2", owner_email="b@x.com", views=10000, payment_amount=5.0,
                   video_url="https://x.com/v/1"),
        Submission(id="s3", owner_email=None, views=500, payment_amount=0.25),
    ]
    payments = [Payment(id="p1", owner_email="a@x.com", total_views=2000, amount=1.0,
                        submission_ids=["s1"])]
    return (
        reconcile(submissions, payments),
        build_submission_balances(submissions, payments),
        find_duplicate_links(submissions),
    )


@pytest.fixture
def workbook(report_inputs, tmp_path):
    path = generate_report(*report_inputs, output_dir=str(tmp_path),
                           generated_at=datetime(2026, 3, 1, 9, 30, 0))
    return path, load_workbook(path)


class TestGenerateReport:

    def test_filename(self, workbook):
        path, _ = workbook
        assert os.path.basename(path) == "Clipper Reconciliation 2026-03-01 093000.xlsx"
        assert os.path.exists(path)

    def test_three_tabs(self, workbook):
        _, wb = workbook
        assert wb.sheetnames == ["Contributor Summary", "Submission Audit", "Duplicate Links"]

    def test_summary_rows_sorted_by_pending(self, workbook):
        _, wb = workbook
        ws = wb["Contributor Summary"]
        rows = list(ws.iter_rows(min_row=2, values_only=True))

        assert [r[0] for r in rows] == ["b@x.com", "a@x.com"]
        b_row = rows[0]
        assert b_row[2] == 10000       # total views
        assert b_row[6] == 5.0         # pending payment
        assert ws.cell(row=2, column=7).number_format == CURRENCY_FORMAT
        assert ws.cell(row=2, column=3).number_format == NUMBER_FORMAT

    def test_audit_excludes_unowned(self, workbook):
        _, wb = workbook
        ids = [r[1] for r in wb["Submission Audit"].iter_rows(min_row=2, values_only=True)]
        assert ids == ["s1", "s2"]

    def test_duplicates_one_row_per_member(self, workbook):
        _, wb = workbook
        rows = list(wb["Duplicate Links"].iter_rows(min_row=2, values_only=True))
        assert rows == [
            ("https://x.com/v/1", 2, "s1", "a@x.com"),
            ("https://x.com/v/1", 2, "s2", "b@x.com"),
        ]

    def test_headers_bold_and_frozen(self, workbook):
        _, wb = workbook
        for ws in wb.worksheets:
            assert ws.freeze_panes == "A2"
            assert all(cell.font.bold for cell in ws[1])

    def test_empty_report(self, tmp_path):
        path = generate_report([], [], [], output_dir=str(tmp_path))
        wb = load_workbook(path)
        assert wb["Contributor Summary"].max_row == 1
