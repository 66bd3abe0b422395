"""
Typed accessor for service lines inside a proposal tree.

A ServiceLineRef names one line by location, date and position and knows the
field path the change tracker uses for it, so callers never build raw path
lists by hand.
"""
from dataclasses import dataclass, replace
from typing import Optional, Sequence

from .models import LINE_NUMBER_FIELDS, ProposalTree, ServiceLine
from .normalize import is_mindfulness

SERVICES_KEY = 'services'

COMMON_LINE_FIELDS = frozenset(LINE_NUMBER_FIELDS) | {
    'serviceType', 'totalAppointments', 'isRecurring', 'recurringFrequency',
    'pricingOptions', 'selectedOption',
}
MINDFULNESS_LINE_FIELDS = COMMON_LINE_FIELDS | {'classLength', 'participants', 'fixedPrice'}


def fields_for(service_type: str) -> frozenset:
    """Field names a line of this kind carries."""
    return MINDFULNESS_LINE_FIELDS if is_mindfulness(service_type) else COMMON_LINE_FIELDS


@dataclass(frozen=True)
class ServiceLineRef:
    """Address of one service line: location, date key, position on that date."""
    location: str
    date: str
    index: int

    def path(self, field: Optional[str] = None) -> tuple:
        """Field path from the tree root, as used in change records."""
        base = (SERVICES_KEY, self.location, self.date, SERVICES_KEY, self.index)
        return base + (field,) if field else base

    def get(self, tree: ProposalTree) -> ServiceLine:
        """Look the line up, with a message naming what exists when it does not."""
        if self.location not in tree.locations:
            raise KeyError(
                f"Location \"{self.location}\" not found in proposal. "
                f"Available: {', '.join(tree.locations)}"
            )
        dates = tree.locations[self.location]
        if self.date not in dates:
            raise KeyError(
                f"Date \"{self.date}\" not found at location \"{self.location}\". "
                f"Available: {', '.join(dates)}"
            )
        services = dates[self.date].services
        if not 0 <= self.index < len(services):
            raise IndexError(
                f"serviceIndex {self.index} is out of bounds. Location \"{self.location}\" "
                f"date \"{self.date}\" has {len(services)} service(s)"
            )
        return services[self.index]

    def value(self, tree: ProposalTree, field: str):
        """Read one persisted field of the line, checking it exists for the kind."""
        line = self.get(tree)
        check_field(line, field)
        return line.to_dict().get(field)

    def put(self, tree: ProposalTree, line: ServiceLine) -> ProposalTree:
        """Return a new tree with this line replaced; other branches are shared."""
        self.get(tree)
        block = tree.locations[self.location][self.date]
        services = list(block.services)
        services[self.index] = line
        dates = dict(tree.locations[self.location])
        dates[self.date] = replace(block, services=services)
        locations = dict(tree.locations)
        locations[self.location] = dates
        return replace(tree, locations=locations)


def check_field(line: ServiceLine, field: str):
    if field not in fields_for(line.service_type):
        raise ValueError(f"Service type '{line.service_type}' has no field '{field}'")


def parse_path(path: Sequence) -> Optional[tuple[ServiceLineRef, tuple]]:
    """
    Split a change path into the service line it touches and the remainder.

    Returns None when the path does not point inside a service line.
    """
    path = tuple(path)
    if len(path) < 5:
        return None
    root, location, date, key, index = path[:5]
    if root != SERVICES_KEY or key != SERVICES_KEY or not isinstance(index, int) or isinstance(index, bool):
        return None
    return ServiceLineRef(str(location), str(date), index), path[5:]
