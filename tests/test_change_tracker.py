"""
Change tracker tests: structural diff, re-apply, collapsing and authorship.
"""
import copy
import pytest
import sys
import os

# Add src to path for internal imports
src_path = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), 'src')
if src_path not in sys.path:
    sys.path.insert(0, src_path)

from proposal_engine.engine.aggregator import recalculate
from proposal_engine.engine.proposal_editor import apply_operations
from proposal_engine.tracking.change_tracker import (
    ProposalShapeError,
    apply_changes,
    collapse_changes,
    diff,
    track_edit_history,
)
from proposal_engine.tracking.models import ChangeSource, ChangeType, ReviewStatus

from conftest import massage, proposal

DISCOUNT_PATH = ('services', 'HQ', '2026-02-18', 'services', 0, 'discountPercent')
HQ_LINE = {'location': 'HQ', 'date': '2026-02-18', 'serviceIndex': 0}


@pytest.fixture
def original(simple_tree):
    return recalculate(simple_tree)


def test_diff_identity(busy_tree):
    tree = recalculate(busy_tree)
    assert diff(tree, tree) == []
    assert diff(tree.to_dict(), copy.deepcopy(tree.to_dict())) == []


def test_diff_reports_leaf_update(original):
    edited = apply_operations(original, [{'op': 'set_discount', **HQ_LINE, 'discountPercent': 10}]).tree
    changes = {change.field_path: change for change in diff(original, edited)}

    discount = changes[DISCOUNT_PATH]
    assert discount.change_type == ChangeType.UPDATE
    assert (discount.old_value, discount.new_value) == (0, 10)
    assert changes[('summary', 'totalEventCost')].new_value == pytest.approx(994.5)


def test_diff_add_and_remove():
    before = proposal({'HQ': {'2026-02-18': [massage(), massage()]}})
    after = proposal({'HQ': {'2026-02-18': [massage()], '2026-02-19': [massage()]}})
    del after['clientEmail']
    after['notes'] = 'bring towels'
    changes = {change.field_path: change for change in diff(before, after)}

    removed = changes[('services', 'HQ', '2026-02-18', 'services', 1)]
    assert removed.change_type == ChangeType.REMOVE
    assert removed.new_value is None
    assert removed.old_value['serviceType'] == 'massage'

    added = changes[('services', 'HQ', '2026-02-19')]
    assert added.change_type == ChangeType.ADD
    assert added.old_value is None

    assert changes[('clientEmail',)].change_type == ChangeType.REMOVE
    assert changes[('notes',)].change_type == ChangeType.ADD


def test_diff_keeps_traversal_order():
    before = {'services': {}, 'a': 1, 'b': 2}
    after = {'services': {}, 'b': 3, 'c': 4, 'a': 5}

    assert [change.field_path for change in diff(before, after)] == [('a',), ('b',), ('c',)]


def test_bool_and_number_are_different():
    changes = diff({'services': {}, 'isAutoRecurring': True}, {'services': {}, 'isAutoRecurring': 1})
    assert len(changes) == 1
    assert changes[0].change_type == ChangeType.UPDATE


def test_equal_numbers_of_different_types_match():
    assert diff({'services': {}, 'gratuityValue': 10}, {'services': {}, 'gratuityValue': 10.0}) == []


def test_reorder_shows_as_positional_updates():
    before = proposal({'HQ': {'2026-02-18': [massage(), massage(serviceType='facial')]}})
    after = proposal({'HQ': {'2026-02-18': [massage(serviceType='facial'), massage()]}})
    changes = diff(before, after)

    assert [change.field_path[-2:] for change in changes] == [(0, 'serviceType'), (1, 'serviceType')]
    assert all(change.change_type == ChangeType.UPDATE for change in changes)


def test_one_timestamp_per_call(original):
    edited = apply_operations(original, [
        {'op': 'set_discount', **HQ_LINE, 'discountPercent': 10},
        {'op': 'set_gratuity', 'type': 'dollar', 'value': 50},
    ]).tree
    changes = diff(original, edited)

    assert len(changes) > 2
    assert len({change.timestamp for change in changes}) == 1
    assert len({change.id for change in changes}) == len(changes)


@pytest.mark.parametrize("before, after", [
    ([], {'services': {}}),
    ({'services': {}}, 'proposal'),
    ({'services': []}, {'services': {}}),
    (None, None),
])
def test_diff_rejects_non_trees(before, after):
    with pytest.raises(ProposalShapeError):
        diff(before, after)


def test_shape_error_is_a_type_error():
    assert issubclass(ProposalShapeError, TypeError)


def test_diff_does_not_modify_inputs(original):
    before = original.to_dict()
    after = apply_operations(original, [{'op': 'remove_service', **HQ_LINE}]).tree.to_dict()
    snapshot = copy.deepcopy((before, after))
    diff(before, after)
    assert (before, after) == snapshot


def test_round_trip_reproduces_target(busy_tree):
    a = recalculate(busy_tree)
    b = apply_operations(a, [
        {'op': 'remove_service', 'location': 'HQ', 'date': '2026-03-04', 'serviceIndex': 0},
        {'op': 'add_service', 'location': 'Midtown', 'date': '2026-05-01', 'service': {'serviceType': 'nails'}},
        {'op': 'set_discount', 'location': 'Annex', 'date': '2026-02-18', 'serviceIndex': 0, 'discountPercent': 5},
        {'op': 'remove_line_item', 'itemIndex': 0},
        {'op': 'remove_gratuity'},
        {'op': 'add_pricing_options', 'location': 'HQ', 'date': 'TBD', 'serviceIndex': 0},
    ]).tree
    changes = diff(a, b)

    assert apply_changes(a.to_dict(), changes) == b.to_dict()
    assert apply_changes(a, changes).to_dict() == b.to_dict()


def test_round_trip_with_shrinking_lists():
    a = proposal({'HQ': {'2026-02-18': [massage(), massage(numPros=1), massage(numPros=3)]}})
    b = proposal({'HQ': {'2026-02-18': [massage(numPros=3)]}}, eventDates=['2026-02-18'])

    assert apply_changes(a, diff(a, b)) == b


def test_apply_only_approved(original):
    edited = apply_operations(original, [{'op': 'update_client_info', 'clientName': 'Globex'}]).tree
    changes = diff(original, edited)

    assert apply_changes(original.to_dict(), changes, only_approved=True) == original.to_dict()
    for change in changes:
        change.review(ReviewStatus.APPROVED, reviewer='ops@example.com')
    assert apply_changes(original.to_dict(), changes, only_approved=True)['clientName'] == 'Globex'


def test_collapse_keeps_first_old_and_last_new(original):
    step1 = apply_operations(original, [{'op': 'set_discount', **HQ_LINE, 'discountPercent': 10}]).tree
    step2 = apply_operations(step1, [{'op': 'set_discount', **HQ_LINE, 'discountPercent': 15}]).tree
    collapsed = {c.field_path: c for c in collapse_changes(diff(original, step1) + diff(step1, step2))}

    assert (collapsed[DISCOUNT_PATH].old_value, collapsed[DISCOUNT_PATH].new_value) == (0, 15)


def test_collapse_drops_reverted_changes(original):
    step1 = apply_operations(original, [{'op': 'set_discount', **HQ_LINE, 'discountPercent': 10}]).tree
    step2 = apply_operations(step1, [{'op': 'set_discount', **HQ_LINE, 'discountPercent': 0}]).tree

    assert collapse_changes(diff(original, step1) + diff(step1, step2)) == []


def test_collapse_add_then_remove_disappears():
    a = {'services': {}}
    b = {'services': {}, 'notes': 'x'}
    assert collapse_changes(diff(a, b) + diff(b, a)) == []


def test_edit_history_attributes_authors(original):
    client_edited = apply_operations(original, [{'op': 'update_client_info', 'clientName': 'Globex'}]).tree
    final = apply_operations(client_edited, [{'op': 'set_discount', **HQ_LINE, 'discountPercent': 10}]).tree

    client_set, staff_set = track_edit_history(
        original, client_edited, final, client='pat@globex.example', staff='ops@example.com',
    )

    assert client_set.change_source == ChangeSource.CLIENT
    assert client_set.actor == 'pat@globex.example'
    assert [c.field_path for c in client_set.changes] == [('clientName',)]

    assert staff_set.change_source == ChangeSource.STAFF
    assert DISCOUNT_PATH in {c.field_path for c in staff_set.changes}
    assert ('clientName',) not in {c.field_path for c in staff_set.changes}


def test_edit_history_without_client_edits(original):
    final = apply_operations(original, [{'op': 'remove_gratuity'}, {'op': 'set_gratuity', 'type': 'dollar', 'value': 10}]).tree
    sets = track_edit_history(original, None, final, staff='ops@example.com')

    assert [s.change_source for s in sets] == [ChangeSource.STAFF]


def test_change_set_review(original):
    final = apply_operations(original, [{'op': 'update_client_info', 'clientName': 'Globex'}]).tree
    (change_set,) = track_edit_history(original, final, final, client='pat@globex.example')
    change_set.approve('ops@example.com', comment='ok')

    assert change_set.status == ReviewStatus.APPROVED
    assert all(c.status == ReviewStatus.APPROVED and c.reviewed_by == 'ops@example.com' for c in change_set.changes)
    assert change_set.to_dict()['changes'][0]['field'] == 'clientName'
