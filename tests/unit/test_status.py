from __future__ import annotations

import pytest

from order_sync.application.status import (
    EVENT_TABLE,
    STATUS_ALIASES,
    UNMAPPED_MAX_LENGTH,
    OrderStatus,
    Unmapped,
    _build_table,
    normalize_label,
    resolve_status,
)


class TestNormalizeLabel:
    def test_strips_accents_and_case(self) -> None:
        assert normalize_label("  Pagamento NÃO Autorizado ") == "pagamento nao autorizado"

    def test_none_is_empty(self) -> None:
        assert normalize_label(None) == ""


class TestResolveStatus:
    @pytest.mark.parametrize(
        "event,expected",
        [
            ("order.paid", OrderStatus.PAID),
            ("ORDER.APPROVED", OrderStatus.APPROVED),
            ("pix.expired", OrderStatus.EXPIRED),
            ("Pedido Pago", OrderStatus.PAID),
            ("pedido pago", OrderStatus.PAID),
            ("Pagamento nao autorizado", OrderStatus.REFUSED),
            ("Pedido chargeback ganho", OrderStatus.APPROVED),
        ],
    )
    def test_event_table(self, event: str, expected: OrderStatus) -> None:
        resolution = resolve_status(event, None)
        assert resolution is not None
        assert resolution.status is expected

    def test_localized_label_with_accents_carries_reason(self) -> None:
        resolution = resolve_status("Pagamento não autorizado", None)
        assert resolution.status is OrderStatus.REFUSED
        assert resolution.failure_reason == "Pagamento nao autorizado"
        assert resolution.is_failure
        assert resolution.recovery_status == "abandoned"

    def test_event_wins_over_status(self) -> None:
        resolution = resolve_status("order.paid", "cancelled")
        assert resolution.status is OrderStatus.PAID

    def test_unknown_event_falls_back_to_status_alias(self) -> None:
        resolution = resolve_status("order.something_new", "Cancelado")
        assert resolution.status is OrderStatus.CANCELLED
        assert resolution.failure_reason == "Pedido cancelado"

    def test_unknown_status_is_passed_through_lowercased(self) -> None:
        resolution = resolve_status(None, "Em Análise")
        assert resolution.status == Unmapped("em analise")
        assert resolution.value == "em analise"
        assert not resolution.is_success
        assert not resolution.is_failure
        assert resolution.recovery_status == "pending"

    def test_nothing_to_act_on(self) -> None:
        assert resolve_status(None, None) is None
        assert resolve_status("unknown.event", "") is None

    def test_success_statuses(self) -> None:
        for label in ("approved", "paid", "completed"):
            resolution = resolve_status(None, label)
            assert resolution.is_success
            assert resolution.recovery_status == "recovered"

    def test_refunded_is_a_failure(self) -> None:
        resolution = resolve_status("Pedido estornado", None)
        assert resolution.status is OrderStatus.REFUNDED
        assert resolution.is_failure


class TestTables:
    def test_keys_are_normalized(self) -> None:
        for key in list(EVENT_TABLE) + list(STATUS_ALIASES):
            assert key == normalize_label(key)

    def test_collision_after_normalization_is_rejected(self) -> None:
        with pytest.raises(ValueError):
            _build_table(
                [
                    ("Pedido Pago", OrderStatus.PAID, None),
                    ("PEDIDO PAGO", OrderStatus.PAID, None),
                ]
            )


def test_localized_refund_status() -> None:
    resolution = resolve_status(None, "PEDIDO ESTORNADO")
    assert resolution.status is OrderStatus.REFUNDED
    assert resolution.failure_reason == "Estornado"


class TestLongLabels:
    def test_long_unknown_status_is_kept_whole(self) -> None:
        label = "Pedido aguardando confirmação do banco emissor"
        resolution = resolve_status(None, label)
        assert resolution.value == "pedido aguardando confirmacao do banco emissor"

    def test_unknown_status_is_cut_to_column_width(self) -> None:
        resolution = resolve_status(None, "x" * 400)
        assert resolution.value == "x" * UNMAPPED_MAX_LENGTH

    def test_status_columns_fit_unmapped_labels(self) -> None:
        from order_sync.infrastructure.db.models import CheckoutAttempt, Sale

        assert Sale.__table__.c.status.type.length >= UNMAPPED_MAX_LENGTH
        assert CheckoutAttempt.__table__.c.status.type.length >= UNMAPPED_MAX_LENGTH
