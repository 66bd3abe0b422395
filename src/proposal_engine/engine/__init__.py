"""Engine subpackage - proposal pricing, aggregation and editing."""
from .aggregator import recalculate
from .models import ProposalTree, ServiceLine, DateBlock, Summary
from .proposal_editor import apply_operations, EditResult, ProposalEditError
from .service_calculator import compute_service

__all__ = [
    'recalculate',
    'ProposalTree',
    'ServiceLine',
    'DateBlock',
    'Summary',
    'apply_operations',
    'EditResult',
    'ProposalEditError',
    'compute_service',
]
