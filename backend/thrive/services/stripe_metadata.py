# backend/thrive/services/stripe_metadata.py
"""
Stripe metadata helpers.

Stripe stores metadata values as strings. Values are flattened on the way
out and parsed back on the way in; ids can come back as ints after
parsing and must be normalized with ``metadata_id``.
"""

from typing import Any, Dict, Optional


def to_stripe_format(data: Dict[str, Any]) -> Dict[str, str]:
    """Drop None values and stringify the rest."""
    result: Dict[str, str] = {}
    for key, value in data.items():
        if value is None:
            continue
        if isinstance(value, bool):
            result[key] = "true" if value else "false"
        else:
            result[key] = str(value)
    return result


def from_stripe_format(metadata: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Parse ASCII digit strings to int and "true"/"false" to bool; keep everything else."""
    result: Dict[str, Any] = {}
    for key, value in (metadata or {}).items():
        if isinstance(value, str):
            if value.isascii() and value.isdigit():
                result[key] = int(value)
                continue
            if value == "true":
                result[key] = True
                continue
            if value == "false":
                result[key] = False
                continue
        result[key] = value
    return result


def metadata_id(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    return str(value)


def create_payment_intent_metadata(
    *,
    student_id: str,
    user_id: str,
    service_type: str,
    teacher_id: Optional[str] = None,
    start_at: Optional[str] = None,
    end_at: Optional[str] = None,
    product_id: Optional[str] = None,
    price_id: Optional[str] = None,
    notes: Optional[str] = None,
    source: str = "api",
    session_id: Optional[str] = None,
    booking_id: Optional[str] = None,
) -> Dict[str, str]:
    metadata = {
        "student_id": student_id,
        "user_id": user_id,
        "service_type": service_type,
        "teacher_id": teacher_id,
        "start_at": start_at,
        "end_at": end_at,
        "product_id": product_id,
        "price_id": price_id,
        "notes": notes,
        "source": source,
        "session_id": session_id,
        "booking_id": booking_id,
    }
    return to_stripe_format(metadata)


def create_customer_metadata(user_id: str, student_id: str, source: str = "api") -> Dict[str, str]:
    return to_stripe_format({"user_id": user_id, "student_id": student_id, "source": source})
