from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any

from order_sync.shared.logging import get_logger

log = get_logger(__name__)

CENTS = Decimal("0.01")
# Numeric(12, 2) columns
MAX_AMOUNT = Decimal("9999999999.99")


@dataclass(frozen=True)
class OrderPayload:
    order_id: str | None
    customer_email: str | None
    customer_name: str | None
    customer_phone: str | None
    customer_document: str | None
    total_amount: Decimal
    payment_method: str | None

    @property
    def is_actionable(self) -> bool:
        return bool(self.order_id and self.customer_email)


def _first(*values: Any) -> Any:
    # Empty strings and zeros count as absent, like the gateway's own clients.
    for value in values:
        if value not in (None, "", 0, {}, []):
            return value
    return None


def _text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _amount(value: Any) -> Decimal:
    if value is None:
        return Decimal("0")
    try:
        amount = Decimal(str(value).strip())
        if not amount.is_finite() or abs(amount) > MAX_AMOUNT:
            raise InvalidOperation(value)
        return amount.quantize(CENTS)
    except (InvalidOperation, ValueError):
        log.warning("unusable order amount; using 0", extra={"amount": str(value)[:64]})
        return Decimal("0")


def unwrap(payload: dict[str, Any]) -> dict[str, Any]:
    data = payload.get("data")
    return data if isinstance(data, dict) else payload


def event_name(payload: dict[str, Any]) -> Any:
    data = payload.get("data")
    nested = data.get("event") if isinstance(data, dict) else None
    return _first(payload.get("event"), payload.get("type"), nested)


def raw_status(payload: dict[str, Any]) -> Any:
    return _first(unwrap(payload).get("status"), payload.get("status"))


def extract_order(payload: dict[str, Any]) -> OrderPayload:
    """Pull order and customer fields from a flat or ``data``-wrapped payload."""
    data = unwrap(payload)
    order = data.get("order") if isinstance(data.get("order"), dict) else {}
    customer = _first(data.get("customer"), payload.get("customer"))
    if not isinstance(customer, dict):
        customer = {}

    order_id = _text(
        _first(
            data.get("order_id"),
            data.get("appmax_order_id"),
            order.get("id"),
            payload.get("order_id"),
            payload.get("appmax_order_id"),
        )
    )
    email = _text(
        _first(
            data.get("customer_email"),
            payload.get("customer_email"),
            customer.get("email"),
            payload.get("email"),
        )
    )
    if email:
        email = email.lower()

    name = _text(
        _first(
            data.get("customer_name"),
            payload.get("customer_name"),
            customer.get("name"),
            customer.get("fullname"),
        )
    )
    if not name and email:
        name = email.split("@", 1)[0]

    return OrderPayload(
        order_id=order_id,
        customer_email=email,
        customer_name=name,
        customer_phone=_text(
            _first(data.get("customer_phone"), payload.get("customer_phone"), customer.get("phone"))
        ),
        customer_document=_text(
            _first(data.get("customer_cpf"), payload.get("customer_cpf"), customer.get("cpf"))
        ),
        total_amount=_amount(
            _first(
                data.get("total_amount"),
                data.get("amount"),
                data.get("total"),
                payload.get("total_amount"),
                payload.get("amount"),
            )
        ),
        payment_method=_text(
            _first(
                data.get("payment_method"),
                payload.get("payment_method"),
                data.get("payment_type"),
            )
        ),
    )
