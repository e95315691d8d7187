"""
Order Factory - Tests

Tests verify:
1. Required fields are enforced, every failing field reported
2. Creation seeds exactly one order_created entry
3. Token and order number formats and uniqueness
"""
import random
from datetime import date

import pytest

from atelier.exceptions import ValidationError
from atelier.models.domain import EntryType, RecordType, Stage
from atelier.services.pipeline.order_factory import OrderFactory, slugify


# =============================================================================
# CREATION TESTS
# =============================================================================

class TestCreateOrder:
    """Tests for confirmed orders."""

    def test_seeds_creation_entry(self, make_order, now):
        order = make_order()

        assert order.type == RecordType.ORDER
        assert order.current_stage == Stage.ORDER_CONFIRMED
        assert len(order.activity_feed) == 1
        created = order.activity_feed[0]
        assert created.entry_type == EntryType.ORDER_CREATED
        assert created.timestamp == order.created_at == order.last_updated_at == now
        assert created.posted_by == "Rahul Mehta"

    def test_initial_stage_override(self, make_order):
        order = make_order(initial_stage=Stage.CAD_DESIGN, cad_design_required=True)
        assert order.current_stage == Stage.CAD_DESIGN
        assert order.cad_design_required is True

    def test_delivery_date_string_is_literal(self, make_order):
        order = make_order(delivery_date="2025-04-01")
        assert order.delivery_date == date(2025, 4, 1)

    def test_details_are_kept(self, make_order):
        order = make_order(
            stone_description="1ct solitaire",
            ring_size="14",
            total_estimate=125000,
            advance_paid=25000,
            certification="IGI",
        )
        assert order.stone_description == "1ct solitaire"
        assert order.ring_size == "14"
        assert order.balance_due == 100000
        assert order.certification == "IGI"

    def test_every_missing_field_reported(self, factory, now):
        with pytest.raises(ValidationError) as exc:
            factory.create_order(
                customer_name=" ",
                salesperson_name="",
                vendor_name="",
                category="",
                metal_type="",
                delivery_date=None,
                now=now,
            )

        assert set(exc.value.errors) == {
            "customer_name", "salesperson_name", "vendor_name",
            "category", "metal_type", "delivery_date",
        }

    def test_negative_amount_rejected(self, make_order):
        with pytest.raises(ValidationError) as exc:
            make_order(total_estimate=-5)
        assert "total_estimate" in exc.value.errors

    def test_advance_above_total_rejected(self, make_order):
        with pytest.raises(ValidationError) as exc:
            make_order(total_estimate=50000, advance_paid=60000)
        assert set(exc.value.errors) == {"advance_paid"}


class TestCreateEnquiry:
    """Tests for pre-sale enquiries."""

    def test_enquiry_defaults(self, make_enquiry):
        enquiry = make_enquiry(budget_range="₹1-2 Lakh", occasion="Engagement")

        assert enquiry.type == RecordType.ENQUIRY
        assert enquiry.current_stage == Stage.ENQUIRY
        assert enquiry.order_number is None
        assert enquiry.budget_range == "₹1-2 Lakh"

    def test_created_by_recorded(self, factory, now):
        enquiry = factory.create_enquiry("Ananya", "Kavya", now, created_by="Front Desk")
        assert enquiry.activity_feed[0].posted_by == "Front Desk"

    def test_requires_customer_and_salesperson(self, factory, now):
        with pytest.raises(ValidationError) as exc:
            factory.create_enquiry("", "", now)
        assert set(exc.value.errors) == {"customer_name", "salesperson_name"}


# =============================================================================
# IDENTIFIER TESTS
# =============================================================================

class TestIdentifiers:
    """Tests for tokens and order numbers."""

    def test_slugify(self):
        assert slugify("Priya  Sharma") == "priya-sharma"
        assert slugify("  Rose-Gold Bangle! ") == "rose-gold-bangle"

    def test_token_format(self, make_order):
        assert make_order().shareable_token == "evl-priya-sharma-ring"

    def test_token_collision_gets_suffix(self, make_order):
        tokens = [make_order().shareable_token for _ in range(3)]
        assert tokens == ["evl-priya-sharma-ring", "evl-priya-sharma-ring-2", "evl-priya-sharma-ring-3"]

    def test_token_checks_store(self, store, make_order):
        store.save(make_order())
        fresh = OrderFactory(store=store)
        assert fresh.generate_shareable_token("Priya Sharma", "Ring") == "evl-priya-sharma-ring-2"

    def test_enquiry_token_without_category(self, make_enquiry):
        assert make_enquiry().shareable_token == "evl-ananya-iyer"

    def test_order_number_format(self, make_order):
        number = make_order().order_number
        prefix, year, digits = number.split("-")
        assert (prefix, year) == ("EVL", "2025")
        assert 100 <= int(digits) <= 999

    def test_order_numbers_unique(self, factory, now):
        numbers = {factory.generate_order_number(now) for _ in range(40)}
        assert len(numbers) == 40

    def test_exhausted_numbers_raise(self, now):
        class FixedRandom(random.Random):
            def randint(self, a, b):
                return 123

        factory = OrderFactory(rng=FixedRandom())
        factory.generate_order_number(now)
        with pytest.raises(RuntimeError):
            factory.generate_order_number(now)


# =============================================================================
# CONVERSION TESTS
# =============================================================================

class TestCreateOrderFromEnquiry:
    """Tests for turning an enquiry into an order."""

    @pytest.fixture
    def enquiry(self, make_enquiry):
        return make_enquiry(
            category="Ring",
            metal_type="Platinum",
            customer_phone="+91 98200 11122",
            stone_description="2ct oval diamond",
            stone_carat_estimate=2.0,
            budget_range="₹5-8 Lakh",
        )

    def test_carries_enquiry_fields(self, factory, enquiry, now):
        order = factory.create_order_from_enquiry(enquiry, "Shree Jewels Mfg", "2025-04-20", now)

        assert order.type == RecordType.ORDER
        assert order.id != enquiry.id
        assert order.customer_name == "Ananya Iyer"
        assert order.salesperson_name == "Kavya Nair"
        assert order.metal_type == "Platinum"
        assert order.customer_phone == "+91 98200 11122"
        assert order.stone_carat_estimate == 2.0
        assert order.budget_range is None
        assert order.current_stage == Stage.ORDER_CONFIRMED
        assert order.order_number.startswith("EVL-2025-")
        assert order.shareable_token == "evl-ananya-iyer-ring-2"

    def test_enquiry_left_untouched(self, factory, enquiry, now):
        factory.create_order_from_enquiry(enquiry, "Shree Jewels Mfg", "2025-04-20", now)

        assert enquiry.type == RecordType.ENQUIRY
        assert enquiry.order_number is None
        assert len(enquiry.activity_feed) == 1

    def test_details_override_enquiry(self, factory, enquiry, now):
        order = factory.create_order_from_enquiry(
            enquiry, "Shree Jewels Mfg", "2025-04-20", now, metal_type="Gold", ring_size="12",
        )

        assert order.metal_type == "Gold"
        assert order.ring_size == "12"

    def test_order_only_fields_required(self, factory, make_enquiry, now):
        """A bare enquiry lacks category and metal too."""
        with pytest.raises(ValidationError) as exc:
            factory.create_order_from_enquiry(make_enquiry(), "", None, now)

        assert set(exc.value.errors) == {"vendor_name", "category", "metal_type", "delivery_date"}

    def test_orders_cannot_be_converted(self, factory, make_order, now):
        with pytest.raises(ValidationError) as exc:
            factory.create_order_from_enquiry(make_order(), "Shree Jewels Mfg", "2025-04-20", now)

        assert "type" in exc.value.errors
