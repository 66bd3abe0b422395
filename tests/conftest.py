import copy
import os
import sys

import pytest

# Add src to path for internal imports
src_path = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), 'src')
if src_path not in sys.path:
    sys.path.insert(0, src_path)

from proposal_engine.engine.models import ProposalTree, ServiceLine

MASSAGE = {
    'serviceType': 'massage',
    'totalHours': 4,
    'numPros': 2,
    'proHourly': 50,
    'hourlyRate': 135,
    'earlyArrival': 25,
    'discountPercent': 0,
    'appTime': 20,
}


def massage(**overrides) -> dict:
    """Persisted massage line: 24 appointments, $1,105 cost, $425 payout."""
    data = copy.deepcopy(MASSAGE)
    data.update(overrides)
    return data


def mindfulness(class_length=45, **overrides) -> dict:
    data = {
        'serviceType': 'mindfulness',
        'classLength': class_length,
        'totalHours': 0.75,
        'numPros': 1,
        'appTime': class_length,
        'participants': 'unlimited',
    }
    data.update(overrides)
    return data


def proposal(services: dict, **fields) -> dict:
    """Persisted proposal with location → date → list of service dicts."""
    data = {
        'clientName': 'Acme Corp',
        'clientEmail': 'events@acme.example',
        'locations': list(services),
        'services': {
            location: {date: {'services': lines} for date, lines in dates.items()}
            for location, dates in services.items()
        },
        'eventDates': [],
        'summary': {},
        'customLineItems': [],
    }
    data.update(fields)
    return data


@pytest.fixture
def massage_line():
    return ServiceLine.from_dict(massage())


@pytest.fixture
def simple_tree():
    """One massage line at HQ on 2026-02-18."""
    return ProposalTree.from_dict(proposal({'HQ': {'2026-02-18': [massage()]}}))


@pytest.fixture
def busy_tree():
    """Two locations, several dates, gratuity and a custom line item."""
    return ProposalTree.from_dict(proposal(
        {
            'HQ': {
                '2026-03-04': [massage(), massage(serviceType='facial', discountPercent=10)],
                '2026-02-18': [mindfulness(60)],
                'TBD': [massage(totalHours=2, numPros=1)],
            },
            'Annex': {
                '2026-02-18': [massage(isRecurring=True, recurringFrequency={'type': 'weekly', 'occurrences': 9})],
            },
        },
        gratuityType='percentage',
        gratuityValue=18,
        customLineItems=[{'name': 'Travel', 'amount': 250}],
    ))
