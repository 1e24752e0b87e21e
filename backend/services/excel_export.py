"""
Reconciliation report export.

Creates a 3-tab .xlsx file:
  Tab 1: "Contributor Summary" — one row per contributor (ContributorSummary)
  Tab 2: "Submission Audit"    — one row per owned submission (SubmissionBalance)
  Tab 3: "Duplicate Links"     — one row per submission in a duplicate group

File naming: "Clipper Reconciliation {YYYY-MM-DD HHMMSS}.xlsx"

Formatting:
  - Bold header rows on all tabs
  - Auto-fit column widths (with min/max constraints)
  - Freeze top row (header) on all tabs
  - Currency format for money columns ($#,##0.00)
  - Comma-separated number format for view counts (#,##0)
"""

import os
import logging
from datetime import datetime
from typing import Optional

from openpyxl import Workbook
from openpyxl.styles import Font, Alignment
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.worksheet import Worksheet

import config
from models.schemas import ContributorSummary, SubmissionBalance, DuplicateLinkGroup

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------
MIN_COL_WIDTH = 10
MAX_COL_WIDTH = 50
HEADER_FONT = Font(bold=True)
CURRENCY_FORMAT = '$#,##0.00'
NUMBER_FORMAT = '#,##0'


# ===========================================================================
# Public API
# ===========================================================================

def generate_report(
    summaries: list[ContributorSummary],
    balances: list[SubmissionBalance],
    duplicates: list[DuplicateLinkGroup],
    output_dir: Optional[str] = None,
    generated_at: Optional[datetime] = None,
) -> str:
    """
    Generate the .xlsx reconciliation report.

    Args:
        summaries:    Per-contributor rows for Tab 1
        balances:     Per-submission rows for Tab 2
        duplicates:   Duplicate link groups for Tab 3
        output_dir:   Directory to save the file (defaults to config.OUTPUT_DIR)
        generated_at: Timestamp used in the filename (defaults to now)

    Returns:
        File path of the generated .xlsx report.
    """
    if output_dir is None:
        output_dir = config.OUTPUT_DIR
    if generated_at is None:
        generated_at = datetime.now()

    os.makedirs(output_dir, exist_ok=True)

    filename = f"Clipper Reconciliation {generated_at.strftime('%Y-%m-%d %H%M%S')}.xlsx"
    filepath = os.path.join(output_dir, filename)

    logger.info(f"Generating report: {filepath}")

    wb = Workbook()

    ws1 = wb.active
    ws1.title = "Contributor Summary"
    _build_tab1_contributor_summary(ws1, summaries)

    ws2 = wb.create_sheet("Submission Audit")
    _build_tab2_submission_audit(ws2, balances)

    ws3 = wb.create_sheet("Duplicate Links")
    _build_tab3_duplicates(ws3, duplicates)

    wb.save(filepath)
    logger.info(
        f"Report saved: {filepath} "
        f"({len(summaries)} contributors, {len(balances)} submissions, "
        f"{len(duplicates)} duplicate groups)"
    )

    return filepath


# ===========================================================================
# Tab 1: Contributor Summary
# ===========================================================================

def _build_tab1_contributor_summary(
    ws: Worksheet,
    summaries: list[ContributorSummary],
) -> None:
    """
    Columns:
      Email | Submissions | Total Views | Payment Potential |
      Paid | Pending Views | Pending Payment | Pending Submissions

    Sorted by Pending Payment descending.
    """
    ws.append([
        "Email",
        "Submissions",
        "Total Views",
        "Payment Potential",
        "Paid",
        "Pending Views",
        "Pending Payment",
        "Pending Submissions",
    ])

    for s in sorted(summaries, key=lambda s: s.pending_payment, reverse=True):
        ws.append([
            s.email,
            len(s.submission_ids),
            s.total_views,
            s.total_payment_potential,
            s.paid_amount,
            round(s.pending_views),
            s.pending_payment,
            len(s.pending_submission_ids),
        ])

    _format_header_row(ws)
    _freeze_top_row(ws)

    for col_idx in [4, 5, 7]:
        _apply_column_format(ws, col_idx=col_idx, fmt=CURRENCY_FORMAT, start_row=2)
    for col_idx in [2, 3, 6, 8]:
        _apply_column_format(ws, col_idx=col_idx, fmt=NUMBER_FORMAT, start_row=2)

    _auto_fit_columns(ws)


# ===========================================================================
# Tab 2: Submission Audit
# ===========================================================================

def _build_tab2_submission_audit(
    ws: Worksheet,
    balances: list[SubmissionBalance],
) -> None:
    """
    Columns:
      Email | Submission ID | Views | Paid Views | Pending Views |
      Payment Amount | Paid | Pending Payment

    Sorted by Email, then Submission ID.
    """
    ws.append([
        "Email",
        "Submission ID",
        "Views",
        "Paid Views",
        "Pending Views",
        "Payment Amount",
        "Paid",
        "Pending Payment",
    ])

    for b in sorted(balances, key=lambda b: (b.owner_email, b.submission_id)):
        ws.append([
            b.owner_email,
            b.submission_id,
            b.views,
            round(b.paid_views),
            round(b.pending_views),
            b.payment_amount,
            round(b.paid_amount, 2),
            round(b.pending_payment, 2),
        ])

    _format_header_row(ws)
    _freeze_top_row(ws)

    for col_idx in [3, 4, 5]:
        _apply_column_format(ws, col_idx=col_idx, fmt=NUMBER_FORMAT, start_row=2)
    for col_idx in [6, 7, 8]:
        _apply_column_format(ws, col_idx=col_idx, fmt=CURRENCY_FORMAT, start_row=2)

    _auto_fit_columns(ws)


# ===========================================================================
# Tab 3: Duplicate Links
# ===========================================================================

def _build_tab3_duplicates(
    ws: Worksheet,
    duplicates: list[DuplicateLinkGroup],
) -> None:
    """
    Columns:
      Link | Group Size | Submission ID | Email

    One row per member so each submission can be reviewed individually.
    """
    ws.append(["Link", "Group Size", "Submission ID", "Email"])

    for group in duplicates:
        for submission_id, email in zip(group.submission_ids, group.owner_emails):
            ws.append([group.link, group.count, submission_id, email])

    _format_header_row(ws)
    _freeze_top_row(ws)
    _auto_fit_columns(ws)


# ===========================================================================
# Formatting helpers
# ===========================================================================

def _format_header_row(ws: Worksheet) -> None:
    for cell in ws[1]:
        cell.font = HEADER_FONT
        cell.alignment = Alignment(horizontal="center", vertical="center")


def _freeze_top_row(ws: Worksheet) -> None:
    ws.freeze_panes = "A2"


def _apply_column_format(
    ws: Worksheet,
    col_idx: int,
    fmt: str,
    start_row: int = 2,
) -> None:
    for row in range(start_row, ws.max_row + 1):
        cell = ws.cell(row=row, column=col_idx)
        if cell.value is not None:
            cell.number_format = fmt


def _auto_fit_columns(ws: Worksheet) -> None:
    """Width = longest value + 2, clamped to [MIN_COL_WIDTH, MAX_COL_WIDTH]."""
    for col_idx in range(1, ws.max_column + 1):
        max_length = 0
        for row in range(1, ws.max_row + 1):
            value = ws.cell(row=row, column=col_idx).value
            if value is not None:
                max_length = max(max_length, len(str(value)))

        width = min(max(max_length + 2, MIN_COL_WIDTH), MAX_COL_WIDTH)
        ws.column_dimensions[get_column_letter(col_idx)].width = width
