"""Proposal totals: line totals, topic totals, discount and agency commission."""
from decimal import Decimal
from typing import Any, Dict, Optional


def _dec(value: Any, default: str = "0") -> Decimal:
    if value is None or value == "":
        return Decimal(default)
    return Decimal(str(value))


def adjustment_amount(base: Decimal, adjustment: Optional[Dict[str, Any]]) -> Decimal:
    if not adjustment:
        return Decimal(0)
    value = _dec(adjustment.get("value"))
    if adjustment.get("type") == "percentage":
        return base * value / Decimal(100)
    return value


def price_proposal(data: Dict[str, Any]) -> Dict[str, Any]:
    """Recompute every derived amount of a proposal document in place."""
    subtotal = Decimal(0)
    topics = []
    for topic in data.get("topics") or []:
        topic_total = Decimal(0)
        services = []
        for line in topic.get("services") or []:
            line = dict(line)
            line_total = _dec(line.get("unit_price")) * _dec(line.get("quantity"), "1") * _dec(line.get("days"), "1")
            line["total"] = line_total
            topic_total += line_total
            services.append(line)
        topics.append({**topic, "services": services, "total": topic_total})
        subtotal += topic_total

    discount = min(adjustment_amount(subtotal, data.get("discount")), subtotal)
    discounted = subtotal - discount
    commission = adjustment_amount(discounted, data.get("agency_commission"))

    data["topics"] = topics
    data["subtotal"] = subtotal
    data["total_amount"] = discounted + commission
    return data
