"""Translate gateway event names and status labels into canonical order states.

Appmax reports the same lifecycle step under API-style event names
(``order.paid``), Portuguese dashboard labels (``Pedido Pago``) and bare
status strings, with inconsistent case and accents. Both lookup tables are
keyed by :func:`normalize_label` output and built through
:func:`_build_table`, which refuses two raw labels collapsing onto one key.
"""

from __future__ import annotations

import unicodedata
from dataclasses import dataclass
from enum import Enum
from typing import Union


class OrderStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    PAID = "paid"
    REFUSED = "refused"
    CANCELLED = "cancelled"
    EXPIRED = "expired"
    REFUNDED = "refunded"
    CHARGEBACK = "chargeback"
    COMPLETED = "completed"


@dataclass(frozen=True)
class Unmapped:
    """A status string no table knows, kept lower-cased as a best effort."""

    value: str


CanonicalStatus = Union[OrderStatus, Unmapped]

# sales.status and checkout_attempts.status are VARCHAR(255)
UNMAPPED_MAX_LENGTH = 255

SUCCESS_STATUSES = frozenset({OrderStatus.APPROVED, OrderStatus.PAID, OrderStatus.COMPLETED})
FAILURE_STATUSES = frozenset(
    {
        OrderStatus.REFUSED,
        OrderStatus.CANCELLED,
        OrderStatus.EXPIRED,
        OrderStatus.REFUNDED,
        OrderStatus.CHARGEBACK,
    }
)


@dataclass(frozen=True)
class StatusResolution:
    status: CanonicalStatus
    failure_reason: str | None = None

    @property
    def value(self) -> str:
        return self.status.value

    @property
    def is_success(self) -> bool:
        return self.status in SUCCESS_STATUSES

    @property
    def is_failure(self) -> bool:
        return self.status in FAILURE_STATUSES

    @property
    def recovery_status(self) -> str:
        if self.is_success:
            return "recovered"
        if self.is_failure:
            return "abandoned"
        return "pending"


def normalize_label(value: object) -> str:
    if value is None:
        return ""
    decomposed = unicodedata.normalize("NFD", str(value))
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return stripped.casefold().strip()


def _build_table(
    entries: list[tuple[str, OrderStatus, str | None]],
) -> dict[str, StatusResolution]:
    table: dict[str, StatusResolution] = {}
    for raw, status, reason in entries:
        key = normalize_label(raw)
        if key in table:
            raise ValueError(f"duplicate status label after normalization: {raw!r}")
        table[key] = StatusResolution(status, reason)
    return table


EVENT_TABLE = _build_table(
    [
        # API events
        ("order.approved", OrderStatus.APPROVED, None),
        ("order.paid", OrderStatus.PAID, None),
        ("order.pending", OrderStatus.PENDING, None),
        ("order.rejected", OrderStatus.REFUSED, "Pedido recusado"),
        ("order.cancelled", OrderStatus.CANCELLED, "Pedido cancelado"),
        ("order.refunded", OrderStatus.REFUNDED, "Estornado"),
        ("pix.generated", OrderStatus.PENDING, None),
        ("pix.paid", OrderStatus.PAID, None),
        ("pix.expired", OrderStatus.EXPIRED, "PIX expirado"),
        # Dashboard labels
        ("Pedido Aprovado", OrderStatus.APPROVED, None),
        ("Pedido Autorizado", OrderStatus.APPROVED, None),
        ("Pedido Pago", OrderStatus.PAID, None),
        ("Pedido pendente de integração", OrderStatus.PENDING, None),
        ("Pedido Integrado", OrderStatus.APPROVED, None),
        (
            "Pedido autorizado com atraso (60min)",
            OrderStatus.APPROVED,
            "Autorizado com atraso (60min)",
        ),
        ("Pagamento não autorizado", OrderStatus.REFUSED, "Pagamento nao autorizado"),
        (
            "Pagamento não autorizado com atraso (60min)",
            OrderStatus.REFUSED,
            "Pagamento nao autorizado (60min)",
        ),
        ("Boleto gerado", OrderStatus.PENDING, None),
        ("Pedido com boleto vencido", OrderStatus.EXPIRED, "Boleto vencido"),
        ("PIX gerado", OrderStatus.PENDING, None),
        ("PIX pago", OrderStatus.PAID, None),
        ("PIX expirado", OrderStatus.EXPIRED, "PIX expirado"),
        ("Pedido estornado", OrderStatus.REFUNDED, "Estornado"),
        ("Pedido chargeback em tratamento", OrderStatus.CHARGEBACK, "Chargeback em analise"),
        ("Pedido chargeback ganho", OrderStatus.APPROVED, None),
        ("Upsell pago", OrderStatus.PAID, None),
    ]
)

STATUS_ALIASES = _build_table(
    [
        ("approved", OrderStatus.APPROVED, None),
        ("paid", OrderStatus.PAID, None),
        ("completed", OrderStatus.COMPLETED, None),
        ("aprovado", OrderStatus.APPROVED, None),
        ("pago", OrderStatus.PAID, None),
        ("autorizado", OrderStatus.APPROVED, None),
        ("pending", OrderStatus.PENDING, None),
        ("pendente", OrderStatus.PENDING, None),
        ("processing", OrderStatus.PENDING, None),
        ("refused", OrderStatus.REFUSED, "Pagamento recusado"),
        ("rejected", OrderStatus.REFUSED, "Pagamento recusado"),
        ("failed", OrderStatus.REFUSED, "Pagamento recusado"),
        ("não autorizado", OrderStatus.REFUSED, "Pagamento nao autorizado"),
        ("payment_not_authorized", OrderStatus.REFUSED, "Pagamento nao autorizado"),
        ("cancelled", OrderStatus.CANCELLED, "Pedido cancelado"),
        ("canceled", OrderStatus.CANCELLED, "Pedido cancelado"),
        ("cancelado", OrderStatus.CANCELLED, "Pedido cancelado"),
        ("expired", OrderStatus.EXPIRED, "Expirado"),
        ("expirado", OrderStatus.EXPIRED, "Expirado"),
        ("boleto vencido", OrderStatus.EXPIRED, "Boleto vencido"),
        ("pix expirado", OrderStatus.EXPIRED, "PIX expirado"),
        ("pedido estornado", OrderStatus.REFUNDED, "Estornado"),
        ("refunded", OrderStatus.REFUNDED, "Estornado"),
        ("estornado", OrderStatus.REFUNDED, "Estornado"),
        ("chargeback", OrderStatus.CHARGEBACK, "Chargeback"),
    ]
)


def resolve_status(event: object = None, status: object = None) -> StatusResolution | None:
    """Event name wins over status; ``None`` means there is nothing to act on."""
    normalized_event = normalize_label(event)
    if normalized_event and normalized_event in EVENT_TABLE:
        return EVENT_TABLE[normalized_event]

    normalized_status = normalize_label(status)
    if not normalized_status:
        return None
    if normalized_status in STATUS_ALIASES:
        return STATUS_ALIASES[normalized_status]
    return StatusResolution(Unmapped(normalized_status[:UNMAPPED_MAX_LENGTH]))
