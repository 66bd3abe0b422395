import pandas as pd
import pytest
import sys
import os

# Add src to path for internal imports
src_path = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), 'src')
if src_path not in sys.path:
    sys.path.insert(0, src_path)

from proposal_engine.engine.proposal_editor import apply_operations
from proposal_engine.reports.export import (
    LINE_COLUMNS,
    change_log_frame,
    export_csv,
    export_workbook,
    proposal_lines_frame,
    summary_frame,
)
from proposal_engine.tracking.change_tracker import diff


@pytest.fixture
def edited(simple_tree):
    return apply_operations(simple_tree, [
        {'op': 'set_discount', 'location': 'HQ', 'date': '2026-02-18', 'serviceIndex': 0, 'discountPercent': 10},
    ]).tree


def test_lines_frame(busy_tree):
    frame = proposal_lines_frame(busy_tree)

    assert list(frame.columns) == LINE_COLUMNS
    assert len(frame) == 5
    hq_first = frame[(frame['Location'] == 'HQ') & (frame['Date'] == '2026-03-04')]
    assert list(hq_first['Service']) == ['Massage', 'Facial']
    assert list(hq_first['Service Cost']) == [1105, pytest.approx(994.5)]


def test_lines_frame_accepts_dict(simple_tree):
    frame = proposal_lines_frame(simple_tree.to_dict())
    assert frame.loc[0, 'Appointments'] == 24


def test_summary_frame(simple_tree):
    frame = summary_frame(simple_tree).set_index('Metric')
    assert frame.loc['Total Event Cost', 'Value'] == 1105
    assert frame.loc['Client', 'Value'] == 'Acme Corp'


def test_change_log_frame(simple_tree, edited):
    frame = change_log_frame(diff(simple_tree, edited))

    discount = frame[frame['Field'] == 'Discount Percent'].iloc[0]
    assert discount['Old Value'] == '0%'
    assert discount['New Value'] == '10%'
    assert discount['Change'] == 'Updated'
    assert discount['Context'] == 'HQ · 2026-02-18 · Service 1'


def test_change_log_frame_empty():
    assert change_log_frame(None).empty


def test_export_workbook(tmp_path, simple_tree, edited):
    path = export_workbook(tmp_path / 'out' / 'proposal.xlsx', edited, diff(simple_tree, edited))
    sheets = pd.read_excel(path, sheet_name=None)

    assert set(sheets) == {'Lines', 'Summary', 'Changes'}
    assert sheets['Lines'].loc[0, 'Service Cost'] == pytest.approx(994.5)
    assert 'Discount Percent' in set(sheets['Changes']['Field'])


def test_export_csv(tmp_path, simple_tree):
    path = export_csv(tmp_path / 'lines.csv', simple_tree)
    frame = pd.read_csv(path)

    assert list(frame.columns) == LINE_COLUMNS
    assert frame.loc[0, 'Service Cost'] == 1105
