"""
Service Cost Calculator - costs a single service line.

Hour-based services are priced from hours, rate and staffing; mindfulness
classes carry a fixed price keyed to the class length. The calculator never
raises: unknown kinds cost nothing and come back with a warning.
"""
import math

from ..config.settings import get_settings
from .models import ServiceLine, ServiceResult, UNLIMITED
from .normalize import clamp_percent, fixed_price_for, non_negative, to_number


def money(value: float) -> float:
    """Round a currency amount to cents."""
    return round(float(value), 2)


def count_appointments(total_hours: float, app_time: float, num_pros: float) -> int:
    """Whole appointments that fit in the booked hours, across all pros."""
    if app_time <= 0 or total_hours <= 0 or num_pros <= 0:
        return 0
    per_pro = math.floor(total_hours * 60 / app_time + 1e-9)
    return max(0, int(per_pro * num_pros))


def compute_service(line: ServiceLine) -> ServiceResult:
    """
    Calculate appointments, cost, payout and pre-discount price for one line.

    Discount is applied once against the base price; line-scoped recurring
    discount is layered on afterwards by the discount resolver.
    """
    kind = line.kind
    total_hours = non_negative(line.total_hours)
    num_pros = non_negative(line.num_pros)
    discount = clamp_percent(line.discount_percent)
    early_arrival = to_number(line.early_arrival)

    if kind is None:
        result = ServiceResult(total_appointments=0, service_cost=0, pro_revenue=0, original_price=0)
        result.add_warning(f"Unknown service type '{line.service_type}' - no cost formula applied")
        return result

    if line.is_mindfulness:
        base_price = fixed_price_for(line.class_length)
        participants = line.participants if line.participants is not None else UNLIMITED
        total_appointments = participants if participants == UNLIMITED else int(non_negative(participants))
        pro_revenue = base_price * get_settings().mindfulness_pro_share
    else:
        retouching = to_number(line.retouching_cost)
        base_price = total_hours * to_number(line.hourly_rate) * num_pros + early_arrival + retouching
        total_appointments = count_appointments(total_hours, to_number(line.app_time), num_pros)
        pro_revenue = total_hours * to_number(line.pro_hourly) * num_pros + early_arrival

    service_cost = base_price * (1 - discount / 100)

    return ServiceResult(
        total_appointments=total_appointments,
        service_cost=money(service_cost),
        pro_revenue=money(pro_revenue),
        original_price=money(base_price),
    )
