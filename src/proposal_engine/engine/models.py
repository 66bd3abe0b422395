"""
Data models for the proposal engine.

Uses dataclasses for structured, type-safe data representation. Each model
converts to and from the persisted camelCase dict shape; conversion from a
dict runs the normalization helpers so the engine always sees clean values.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from .normalize import (
    UNLIMITED,
    clamp_percent,
    fixed_price_for,
    is_mindfulness,
    non_negative,
    normalize_date_key,
    snap_class_length,
    to_appointments,
    to_number,
    to_participants,
)


class ServiceKind(str, Enum):
    MASSAGE = 'massage'
    FACIAL = 'facial'
    HAIR = 'hair'
    NAILS = 'nails'
    MAKEUP = 'makeup'
    HEADSHOT = 'headshot'
    HAIR_MAKEUP = 'hair-makeup'
    HEADSHOT_HAIR_MAKEUP = 'headshot-hair-makeup'
    MINDFULNESS = 'mindfulness'
    MINDFULNESS_SOLES = 'mindfulness-soles'
    MINDFULNESS_MOVEMENT = 'mindfulness-movement'
    MINDFULNESS_PRO = 'mindfulness-pro'
    MINDFULNESS_CLE = 'mindfulness-cle'
    MINDFULNESS_PRO_REACTIVITY = 'mindfulness-pro-reactivity'

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional['ServiceKind']:
        """Return the kind for a raw service type, or None when unknown."""
        try:
            return cls(str(value or '').strip().lower())
        except ValueError:
            return None


# camelCase key → attribute, for the plain numeric service fields
LINE_NUMBER_FIELDS = {
    'totalHours': 'total_hours',
    'numPros': 'num_pros',
    'proHourly': 'pro_hourly',
    'hourlyRate': 'hourly_rate',
    'appTime': 'app_time',
    'earlyArrival': 'early_arrival',
    'retouchingCost': 'retouching_cost',
    'discountPercent': 'discount_percent',
    'serviceCost': 'service_cost',
    'proRevenue': 'pro_revenue',
    'originalPrice': 'original_price',
    'recurringDiscount': 'recurring_discount',
    'recurringSavings': 'recurring_savings',
}

# Parameters a pricing option can carry independently of its line
OPTION_PARAM_FIELDS = {
    'totalHours': 'total_hours',
    'hourlyRate': 'hourly_rate',
    'numPros': 'num_pros',
    'discountPercent': 'discount_percent',
}

_LINE_KEYS = set(LINE_NUMBER_FIELDS) | {
    'serviceType', 'totalAppointments', 'classLength', 'participants',
    'fixedPrice', 'isRecurring', 'recurringFrequency', 'pricingOptions',
    'selectedOption',
}


@dataclass
class ServiceResult:
    """Costing of a single service line."""
    total_appointments: int | str
    service_cost: float
    pro_revenue: float
    original_price: float
    warnings: list[str] = field(default_factory=list)

    def add_warning(self, warning: str):
        """Add a warning for this result."""
        self.warnings.append(warning)

    def to_dict(self) -> dict:
        return {
            'totalAppointments': self.total_appointments,
            'serviceCost': self.service_cost,
            'proRevenue': self.pro_revenue,
            'originalPrice': self.original_price,
        }


@dataclass
class RecurringFrequency:
    """How often a recurring service repeats."""
    type: str = 'custom'
    occurrences: int = 0

    def to_dict(self) -> dict:
        return {'type': self.type, 'occurrences': self.occurrences}

    @classmethod
    def from_dict(cls, data: Any) -> Optional['RecurringFrequency']:
        if not isinstance(data, dict):
            return None
        occurrences = non_negative(data.get('occurrences'))
        return cls(type=str(data.get('type') or 'custom'), occurrences=int(occurrences))


@dataclass
class PricingOption:
    """An alternate costing of the same service line."""
    name: str
    total_hours: float = 0
    hourly_rate: float = 0
    num_pros: float = 0
    discount_percent: float = 0
    total_appointments: int | str = 0
    service_cost: float = 0
    original_price: float = 0
    pro_revenue: float = 0
    # camelCase parameter names edited directly on this option
    overrides: tuple[str, ...] = ()

    def to_dict(self) -> dict:
        return {
            'name': self.name,
            'totalHours': self.total_hours,
            'hourlyRate': self.hourly_rate,
            'numPros': self.num_pros,
            'discountPercent': self.discount_percent,
            'totalAppointments': self.total_appointments,
            'serviceCost': self.service_cost,
            'originalPrice': self.original_price,
            'proRevenue': self.pro_revenue,
            'overrides': list(self.overrides),
        }

    @classmethod
    def from_dict(cls, data: dict, position: int = 0) -> 'PricingOption':
        overrides = data.get('overrides')
        if not isinstance(overrides, (list, tuple)):
            overrides = ()
        return cls(
            name=str(data.get('name') or f"Option {position + 1}"),
            total_hours=non_negative(data.get('totalHours')),
            hourly_rate=to_number(data.get('hourlyRate')),
            num_pros=non_negative(data.get('numPros')),
            discount_percent=clamp_percent(data.get('discountPercent')),
            total_appointments=to_appointments(data.get('totalAppointments')),
            service_cost=to_number(data.get('serviceCost')),
            original_price=to_number(data.get('originalPrice')),
            pro_revenue=to_number(data.get('proRevenue')),
            overrides=tuple(sorted(k for k in overrides if isinstance(k, str) and k in OPTION_PARAM_FIELDS)),
        )


@dataclass
class ServiceLine:
    """One quoted service instance on a given date at a given location."""
    service_type: str
    total_hours: float = 0
    num_pros: float = 0
    pro_hourly: float = 0
    hourly_rate: float = 0
    app_time: float = 0
    early_arrival: float = 0
    retouching_cost: float = 0
    discount_percent: float = 0

    # Derived by the calculator
    total_appointments: int | str = 0
    service_cost: float = 0
    pro_revenue: float = 0
    original_price: float = 0

    # Mindfulness-specific fields
    class_length: Optional[int] = None
    participants: Optional[int | str] = None
    fixed_price: Optional[float] = None

    # Line-scoped recurrence
    is_recurring: bool = False
    recurring_frequency: Optional[RecurringFrequency] = None
    recurring_discount: float = 0
    recurring_savings: float = 0

    pricing_options: Optional[list[PricingOption]] = None
    selected_option: int = 0

    # Keys the engine does not interpret (date, location, massageType, ...)
    extra: dict = field(default_factory=dict)

    @property
    def kind(self) -> Optional[ServiceKind]:
        return ServiceKind.parse(self.service_type)

    @property
    def is_mindfulness(self) -> bool:
        return is_mindfulness(self.service_type)

    @property
    def has_options(self) -> bool:
        return bool(self.pricing_options)

    def to_dict(self) -> dict:
        data = dict(self.extra)
        data['serviceType'] = self.service_type
        for key, attr in LINE_NUMBER_FIELDS.items():
            if key in ('recurringDiscount', 'recurringSavings'):
                continue
            data[key] = getattr(self, attr)
        data['totalAppointments'] = self.total_appointments
        if self.class_length is not None:
            data['classLength'] = self.class_length
        if self.participants is not None:
            data['participants'] = self.participants
        if self.fixed_price is not None:
            data['fixedPrice'] = self.fixed_price
        data['isRecurring'] = self.is_recurring
        data['recurringFrequency'] = (
            self.recurring_frequency.to_dict() if self.recurring_frequency else None
        )
        data['recurringDiscount'] = self.recurring_discount
        data['recurringSavings'] = self.recurring_savings
        if self.pricing_options is not None:
            data['pricingOptions'] = [option.to_dict() for option in self.pricing_options]
            data['selectedOption'] = self.selected_option
        return data

    @classmethod
    def from_dict(cls, data: dict) -> 'ServiceLine':
        """Build a line from persisted data, defaulting anything missing."""
        service_type = str(data.get('serviceType') or '').strip().lower()
        values = {attr: to_number(data.get(key)) for key, attr in LINE_NUMBER_FIELDS.items()}
        values['total_hours'] = non_negative(data.get('totalHours'))
        values['num_pros'] = non_negative(data.get('numPros'))
        values['discount_percent'] = clamp_percent(data.get('discountPercent'))

        class_length = participants = fixed_price = None
        if is_mindfulness(service_type):
            class_length = snap_class_length(data.get('classLength'))
            fixed_price = fixed_price_for(class_length)
            participants = to_participants(data.get('participants'))

        options = data.get('pricingOptions')
        pricing_options = None
        if isinstance(options, list):
            pricing_options = [
                PricingOption.from_dict(option, i)
                for i, option in enumerate(options)
                if isinstance(option, dict)
            ]

        return cls(
            service_type=service_type,
            total_appointments=to_appointments(data.get('totalAppointments')),
            class_length=class_length,
            participants=participants,
            fixed_price=fixed_price,
            is_recurring=bool(data.get('isRecurring')),
            recurring_frequency=RecurringFrequency.from_dict(data.get('recurringFrequency')),
            pricing_options=pricing_options,
            selected_option=int(non_negative(data.get('selectedOption'))),
            extra={k: v for k, v in data.items() if k not in _LINE_KEYS},
            **values,
        )


@dataclass
class DateBlock:
    """Services booked at one location on one date, with cached totals."""
    services: list[ServiceLine] = field(default_factory=list)
    total_cost: float = 0
    total_appointments: int | str = 0

    def to_dict(self) -> dict:
        return {
            'services': [line.to_dict() for line in self.services],
            'totalCost': self.total_cost,
            'totalAppointments': self.total_appointments,
        }

    @classmethod
    def from_dict(cls, data: Any) -> 'DateBlock':
        if not isinstance(data, dict):
            return cls()
        services = data.get('services')
        if not isinstance(services, list):
            services = []
        return cls(
            services=[ServiceLine.from_dict(s) for s in services if isinstance(s, dict)],
            total_cost=to_number(data.get('totalCost')),
            total_appointments=to_appointments(data.get('totalAppointments')),
        )


@dataclass
class CustomLineItem:
    """An ad-hoc charge added to the proposal outside any service."""
    name: str
    amount: float = 0
    extra: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        data = dict(self.extra)
        data['name'] = self.name
        data['amount'] = self.amount
        return data

    @classmethod
    def from_dict(cls, data: dict) -> 'CustomLineItem':
        return cls(
            name=str(data.get('name') or data.get('description') or ''),
            amount=to_number(data.get('amount')),
            extra={k: v for k, v in data.items() if k not in ('name', 'amount')},
        )


@dataclass
class Summary:
    """Proposal-level roll-up of every line."""
    total_appointments: int = 0
    total_event_cost: float = 0
    total_pro_revenue: float = 0
    net_profit: float = 0
    profit_margin: float = 0
    subtotal_before_gratuity: float = 0
    gratuity_amount: float = 0
    subtotal_before_discount: float = 0
    auto_recurring_savings: float = 0
    custom_line_items_total: float = 0
    location_totals: dict[str, dict] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            'totalAppointments': self.total_appointments,
            'totalEventCost': self.total_event_cost,
            'totalProRevenue': self.total_pro_revenue,
            'netProfit': self.net_profit,
            'profitMargin': self.profit_margin,
            'subtotalBeforeGratuity': self.subtotal_before_gratuity,
            'gratuityAmount': self.gratuity_amount,
            'subtotalBeforeDiscount': self.subtotal_before_discount,
            'autoRecurringSavings': self.auto_recurring_savings,
            'customLineItemsTotal': self.custom_line_items_total,
            'locationTotals': {k: dict(v) for k, v in self.location_totals.items()},
        }

    @classmethod
    def from_dict(cls, data: Any) -> 'Summary':
        if not isinstance(data, dict):
            return cls()
        location_totals = data.get('locationTotals')
        return cls(
            total_appointments=int(non_negative(data.get('totalAppointments'))),
            total_event_cost=to_number(data.get('totalEventCost')),
            total_pro_revenue=to_number(data.get('totalProRevenue')),
            net_profit=to_number(data.get('netProfit')),
            profit_margin=to_number(data.get('profitMargin')),
            subtotal_before_gratuity=to_number(data.get('subtotalBeforeGratuity')),
            gratuity_amount=to_number(data.get('gratuityAmount')),
            subtotal_before_discount=to_number(data.get('subtotalBeforeDiscount')),
            auto_recurring_savings=to_number(data.get('autoRecurringSavings')),
            custom_line_items_total=to_number(data.get('customLineItemsTotal')),
            location_totals=dict(location_totals) if isinstance(location_totals, dict) else {},
        )


_TREE_KEYS = {
    'clientName', 'clientEmail', 'locations', 'services', 'eventDates', 'summary',
    'gratuityType', 'gratuityValue', 'isAutoRecurring', 'autoRecurringDiscount',
    'customLineItems',
}


@dataclass
class ProposalTree:
    """The nested location → date → service record representing one quote."""
    client_name: str = ''
    client_email: Optional[str] = None
    # location → date key → block; persisted under "services"
    locations: dict[str, dict[str, DateBlock]] = field(default_factory=dict)
    event_dates: list[str] = field(default_factory=list)
    summary: Summary = field(default_factory=Summary)
    gratuity_type: Optional[str] = None
    gratuity_value: Optional[float] = None
    is_auto_recurring: bool = False
    auto_recurring_discount: float = 0
    custom_line_items: list[CustomLineItem] = field(default_factory=list)
    extra: dict = field(default_factory=dict)

    def iter_lines(self):
        """Yield (location, date, index, line) for every service line."""
        for location, dates in self.locations.items():
            for date, block in dates.items():
                for index, line in enumerate(block.services):
                    yield location, date, index, line

    def to_dict(self) -> dict:
        data = dict(self.extra)
        data.update({
            'clientName': self.client_name,
            'clientEmail': self.client_email,
            'locations': list(self.locations),
            'services': {
                location: {date: block.to_dict() for date, block in dates.items()}
                for location, dates in self.locations.items()
            },
            'eventDates': list(self.event_dates),
            'summary': self.summary.to_dict(),
            'gratuityType': self.gratuity_type,
            'gratuityValue': self.gratuity_value,
            'isAutoRecurring': self.is_auto_recurring,
            'autoRecurringDiscount': self.auto_recurring_discount,
            'customLineItems': [item.to_dict() for item in self.custom_line_items],
        })
        return data

    @classmethod
    def from_dict(cls, data: dict) -> 'ProposalTree':
        """Build a tree from persisted data, degrading malformed branches to empty."""
        services = data.get('services')
        if not isinstance(services, dict):
            # Accept the location map under "locations" as well
            services = data.get('locations') if isinstance(data.get('locations'), dict) else {}

        locations: dict[str, dict[str, DateBlock]] = {}
        for location, dates in services.items():
            blocks = locations.setdefault(str(location), {})
            if not isinstance(dates, dict):
                continue
            for date, block in dates.items():
                blocks[normalize_date_key(date)] = DateBlock.from_dict(block)

        names = data.get('locations')
        if isinstance(names, list):
            # Locations listed without services still belong to the proposal
            for name in names:
                locations.setdefault(str(name), {})

        gratuity_type = data.get('gratuityType')
        gratuity_value = data.get('gratuityValue')
        items = data.get('customLineItems')
        if not isinstance(items, list):
            items = []
        event_dates = data.get('eventDates')
        if not isinstance(event_dates, list):
            event_dates = []

        return cls(
            client_name=str(data.get('clientName') or ''),
            client_email=data.get('clientEmail'),
            locations=locations,
            event_dates=[str(d) for d in event_dates if d is not None],
            summary=Summary.from_dict(data.get('summary')),
            gratuity_type=gratuity_type if gratuity_type in ('percentage', 'dollar') else None,
            gratuity_value=None if gratuity_value is None else non_negative(gratuity_value),
            is_auto_recurring=bool(data.get('isAutoRecurring')),
            auto_recurring_discount=clamp_percent(data.get('autoRecurringDiscount')),
            custom_line_items=[
                CustomLineItem.from_dict(item) for item in items if isinstance(item, dict)
            ],
            extra={k: v for k, v in data.items() if k not in _TREE_KEYS},
        )


__all__ = [
    'UNLIMITED',
    'ServiceKind',
    'ServiceResult',
    'RecurringFrequency',
    'PricingOption',
    'ServiceLine',
    'DateBlock',
    'CustomLineItem',
    'Summary',
    'ProposalTree',
    'LINE_NUMBER_FIELDS',
    'OPTION_PARAM_FIELDS',
]
