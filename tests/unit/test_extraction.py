from __future__ import annotations

from decimal import Decimal

from order_sync.application.extraction import event_name, extract_order, raw_status


class TestExtractOrder:
    def test_flat_payload(self) -> None:
        order = extract_order(
            {
                "event": "order.paid",
                "order_id": 1001,
                "customer_email": "Ana@Example.COM",
                "customer_name": "Ana Souza",
                "customer_phone": "+55 11 99999-0000",
                "customer_cpf": "123.456.789-00",
                "total_amount": "197.9",
                "payment_method": "credit_card",
            }
        )
        assert order.order_id == "1001"
        assert order.customer_email == "ana@example.com"
        assert order.customer_name == "Ana Souza"
        assert order.customer_phone == "+55 11 99999-0000"
        assert order.customer_document == "123.456.789-00"
        assert order.total_amount == Decimal("197.90")
        assert order.payment_method == "credit_card"
        assert order.is_actionable

    def test_nested_payload(self) -> None:
        order = extract_order(
            {
                "event": "pix.paid",
                "data": {
                    "order": {"id": "A-77"},
                    "customer": {"email": "bia@example.com", "fullname": "Bia Lima", "phone": "11988887777"},
                    "amount": 50,
                    "payment_type": "pix",
                },
            }
        )
        assert order.order_id == "A-77"
        assert order.customer_email == "bia@example.com"
        assert order.customer_name == "Bia Lima"
        assert order.customer_phone == "11988887777"
        assert order.total_amount == Decimal("50.00")
        assert order.payment_method == "pix"

    def test_name_falls_back_to_email_local_part(self) -> None:
        order = extract_order({"order_id": "1", "email": "carla.m@example.com"})
        assert order.customer_name == "carla.m"

    def test_amount_fallback_and_default(self) -> None:
        assert extract_order({"total_amount": 0, "amount": "12.5"}).total_amount == Decimal("12.50")
        assert extract_order({"total_amount": "abc"}).total_amount == Decimal("0")
        assert extract_order({}).total_amount == Decimal("0")

    def test_missing_email_is_not_actionable(self) -> None:
        order = extract_order({"order_id": "1"})
        assert order.customer_email is None
        assert order.customer_name is None
        assert not order.is_actionable

    def test_empty_string_fields_count_as_absent(self) -> None:
        order = extract_order({"data": {"order_id": ""}, "order_id": "42", "customer_email": "x@y.z"})
        assert order.order_id == "42"


class TestEnvelope:
    def test_event_name_sources(self) -> None:
        assert event_name({"event": "order.paid"}) == "order.paid"
        assert event_name({"type": "order.paid"}) == "order.paid"
        assert event_name({"data": {"event": "Pedido Pago"}}) == "Pedido Pago"
        assert event_name({}) is None

    def test_status_prefers_nested(self) -> None:
        assert raw_status({"status": "pending", "data": {"status": "paid"}}) == "paid"
        assert raw_status({"status": "pending"}) == "pending"


class TestAmountBounds:
    def test_amount_beyond_decimal_precision_is_zero(self) -> None:
        assert extract_order({"total_amount": 1e30}).total_amount == Decimal("0")
        assert extract_order({"total_amount": "1e27"}).total_amount == Decimal("0")

    def test_amount_beyond_column_range_is_zero(self) -> None:
        assert extract_order({"total_amount": "10000000000.00"}).total_amount == Decimal("0")

    def test_largest_storable_amount_is_kept(self) -> None:
        assert extract_order({"total_amount": "9999999999.99"}).total_amount == Decimal("9999999999.99")

    def test_non_finite_amount_is_zero(self) -> None:
        assert extract_order({"total_amount": "NaN"}).total_amount == Decimal("0")
        assert extract_order({"total_amount": "Infinity"}).total_amount == Decimal("0")
