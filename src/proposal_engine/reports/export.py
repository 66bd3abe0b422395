"""
Proposal exports - tabular views of a proposal and its change history.

Frames are built with pandas; workbooks are written through openpyxl.
"""
import logging
from pathlib import Path
from typing import Iterable, Optional

import pandas as pd

from ..engine.aggregator import recalculate
from ..engine.models import ProposalTree
from ..tracking.change_display import describe, service_display_name
from ..tracking.models import ChangeRecord

logger = logging.getLogger(__name__)

LINE_COLUMNS = [
    'Location', 'Date', 'Service #', 'Service', 'Pros', 'Hours', 'Appointments',
    'Hourly Rate', 'Discount %', 'Recurring Discount %', 'Original Price',
    'Service Cost', 'Pro Revenue', 'Selected Option',
]

CHANGE_COLUMNS = ['Context', 'Field', 'Change', 'Old Value', 'New Value', 'Status', 'Timestamp']


def _as_tree(tree: ProposalTree | dict) -> ProposalTree:
    return ProposalTree.from_dict(tree) if isinstance(tree, dict) else tree


def proposal_lines_frame(tree: ProposalTree | dict) -> pd.DataFrame:
    """One row per service line, after recalculation."""
    tree = recalculate(_as_tree(tree))
    rows = []
    for location, date, index, line in tree.iter_lines():
        option_name = None
        if line.has_options:
            option_name = line.pricing_options[line.selected_option].name
        rows.append({
            'Location': location,
            'Date': date,
            'Service #': index + 1,
            'Service': service_display_name(line.service_type),
            'Pros': line.num_pros,
            'Hours': line.total_hours,
            'Appointments': line.total_appointments,
            'Hourly Rate': line.hourly_rate,
            'Discount %': line.discount_percent,
            'Recurring Discount %': line.recurring_discount,
            'Original Price': line.original_price,
            'Service Cost': line.service_cost,
            'Pro Revenue': line.pro_revenue,
            'Selected Option': option_name,
        })
    return pd.DataFrame(rows, columns=LINE_COLUMNS)


def summary_frame(tree: ProposalTree | dict) -> pd.DataFrame:
    """Proposal totals as Metric/Value rows, custom line items included."""
    tree = recalculate(_as_tree(tree))
    summary = tree.summary
    rows = [
        ('Client', tree.client_name),
        ('Event Dates', ', '.join(tree.event_dates)),
        ('Total Appointments', summary.total_appointments),
    ]
    rows += [(f"Line Item: {item.name}", item.amount) for item in tree.custom_line_items]
    rows += [
        ('Subtotal Before Discount', summary.subtotal_before_discount),
        ('Auto Recurring Discount %', tree.auto_recurring_discount),
        ('Auto Recurring Savings', summary.auto_recurring_savings),
        ('Subtotal Before Gratuity', summary.subtotal_before_gratuity),
        ('Gratuity', summary.gratuity_amount),
        ('Total Event Cost', summary.total_event_cost),
        ('Professional Revenue', summary.total_pro_revenue),
        ('Net Profit', summary.net_profit),
        ('Profit Margin %', summary.profit_margin),
    ]
    return pd.DataFrame(rows, columns=['Metric', 'Value'])


def change_log_frame(records: Optional[Iterable[ChangeRecord]]) -> pd.DataFrame:
    """Described changes, one row per record."""
    rows = []
    for record in records or []:
        display = describe(record)
        rows.append({
            'Context': display.context or '',
            'Field': display.field_name,
            'Change': display.action,
            'Old Value': display.old_value_display,
            'New Value': display.new_value_display,
            'Status': record.status.value,
            'Timestamp': record.timestamp,
        })
    return pd.DataFrame(rows, columns=CHANGE_COLUMNS)


def export_workbook(
    path: str | Path,
    tree: ProposalTree | dict,
    records: Optional[Iterable[ChangeRecord]] = None,
) -> Path:
    """
    Write the proposal to an .xlsx workbook.

    Sheets: Lines, Summary, and Changes (empty when no records are given).
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with pd.ExcelWriter(path, engine="openpyxl") as writer:
        proposal_lines_frame(tree).to_excel(writer, sheet_name="Lines", index=False)
        summary_frame(tree).to_excel(writer, sheet_name="Summary", index=False)
        change_log_frame(records).to_excel(writer, sheet_name="Changes", index=False)
    logger.info("Exported proposal workbook to %s", path)
    return path


def export_csv(path: str | Path, tree: ProposalTree | dict) -> Path:
    """Write the service lines to CSV."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    proposal_lines_frame(tree).to_csv(path, index=False)
    logger.info("Exported proposal lines to %s", path)
    return path
