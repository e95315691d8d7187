"""
Order Factory

Creates valid enquiries and orders.

Every record leaves here with:
- all required fields present
- a unique shareable token (and an order number for orders)
- exactly one order_created entry whose timestamp equals created_at
"""
import logging
import random
import re
from datetime import date, datetime
from typing import Any, Dict, Optional, Union
from uuid import uuid4

from ...exceptions import ValidationError
from ...models.domain import Order, RecordType, Stage
from .activity_ledger import ActivityLedger
from .temporal import to_date, to_datetime


logger = logging.getLogger(__name__)

TOKEN_PREFIX = "evl"
ORDER_NUMBER_PREFIX = "EVL"
MAX_NUMBER_ATTEMPTS = 50

_SLUG_RE = re.compile(r"[^a-z0-9]+")

# Enquiry fields copied onto the order it is converted into
CONVERTED_FIELDS = [
    "customer_name", "customer_phone", "customer_email", "customer_address",
    "salesperson_name",
    "category", "metal_type", "metal_purity", "polish",
    "stone_description", "stone_cut", "stone_quality", "stone_carat_estimate",
]


def slugify(text: str) -> str:
    """'Priya  Sharma' -> 'priya-sharma'"""
    return _SLUG_RE.sub("-", (text or "").lower()).strip("-")


class OrderFactory:
    """
    Builds new Order aggregates.

    `store` is consulted for token and order number uniqueness when given;
    without one, uniqueness is only guaranteed within this factory.
    """

    def __init__(self, store=None, rng: Optional[random.Random] = None):
        self.store = store
        self.rng = rng or random.Random()
        self._issued_tokens = set()
        self._issued_numbers = set()

    # =========================================================================
    # IDENTIFIERS
    # =========================================================================

    def generate_shareable_token(self, customer_name: str, category: Optional[str]) -> str:
        """evl-{customer}-{category}, suffixed -2, -3, ... when taken."""
        parts = [TOKEN_PREFIX, slugify(customer_name)]
        if category:
            parts.append(slugify(category))
        base = "-".join(p for p in parts if p)

        token = base
        suffix = 2
        while self._token_taken(token):
            token = f"{base}-{suffix}"
            suffix += 1
        self._issued_tokens.add(token)
        return token

    def generate_order_number(self, now: datetime) -> str:
        """EVL-{year}-{NNN}"""
        year = to_datetime(now).year
        for _ in range(MAX_NUMBER_ATTEMPTS):
            number = f"{ORDER_NUMBER_PREFIX}-{year}-{self.rng.randint(100, 999)}"
            if not self._number_taken(number):
                self._issued_numbers.add(number)
                return number
        raise RuntimeError(f"Could not allocate a free order number for {year}")

    def _token_taken(self, token: str) -> bool:
        if token in self._issued_tokens:
            return True
        return bool(self.store is not None and self.store.token_exists(token))

    def _number_taken(self, number: str) -> bool:
        if number in self._issued_numbers:
            return True
        return bool(self.store is not None and self.store.order_number_exists(number))

    # =========================================================================
    # CREATION
    # =========================================================================

    def create_enquiry(
        self,
        customer_name: str,
        salesperson_name: str,
        now: datetime,
        created_by: Optional[str] = None,
        **details: Any,
    ) -> Order:
        """Pre-sale enquiry starting at the Enquiry stage."""
        errors = self._required_errors(customer_name, salesperson_name)
        errors.update(self._amount_errors(details))
        if errors:
            logger.warning(f"Rejected enquiry: {sorted(errors)}")
            raise ValidationError("Enquiry is incomplete", errors)

        return self._build(
            record_type=RecordType.ENQUIRY,
            customer_name=customer_name,
            salesperson_name=salesperson_name,
            stage=Stage.ENQUIRY,
            now=now,
            created_by=created_by,
            details=details,
        )

    def create_order(
        self,
        customer_name: str,
        salesperson_name: str,
        vendor_name: str,
        category: str,
        metal_type: str,
        delivery_date: Union[date, str, None],
        now: datetime,
        initial_stage: Stage = Stage.ORDER_CONFIRMED,
        created_by: Optional[str] = None,
        **details: Any,
    ) -> Order:
        """Confirmed order with production specs and an order number."""
        errors = self._required_errors(customer_name, salesperson_name)
        if not (vendor_name or "").strip():
            errors["vendor_name"] = "Vendor / manufacturer name is required"
        if not (category or "").strip():
            errors["category"] = "Select a jewellery category"
        if not (metal_type or "").strip():
            errors["metal_type"] = "Select a metal type"
        if not delivery_date:
            errors["delivery_date"] = "Delivery date is required"
        errors.update(self._amount_errors(details))
        if errors:
            logger.warning(f"Rejected order: {sorted(errors)}")
            raise ValidationError("Order is incomplete", errors)

        details.update(
            vendor_name=vendor_name.strip(),
            category=category.strip(),
            metal_type=metal_type.strip(),
            delivery_date=delivery_date,
        )
        return self._build(
            record_type=RecordType.ORDER,
            customer_name=customer_name,
            salesperson_name=salesperson_name,
            stage=Stage(initial_stage),
            now=now,
            created_by=created_by,
            details=details,
        )

    def create_order_from_enquiry(
        self,
        enquiry: Order,
        vendor_name: str,
        delivery_date: Union[date, str, None],
        now: datetime,
        created_by: Optional[str] = None,
        **details: Any,
    ) -> Order:
        """
        New order pre-filled from an enquiry.

        Customer, contact, salesperson, product and stone fields carry
        over; anything in `details` overrides them. The enquiry itself is
        left untouched.
        """
        if enquiry.type != RecordType.ENQUIRY:
            raise ValidationError(
                "Only enquiries can be converted",
                {"type": f"{enquiry.order_number or enquiry.shareable_token} is already an order"},
            )

        carried = {name: getattr(enquiry, name) for name in CONVERTED_FIELDS}
        carried.update(details)
        customer_name = carried.pop("customer_name")
        salesperson_name = carried.pop("salesperson_name")
        category = carried.pop("category") or ""
        metal_type = carried.pop("metal_type") or ""
        carried = {k: v for k, v in carried.items() if v is not None}

        order = self.create_order(
            customer_name=customer_name,
            salesperson_name=salesperson_name,
            vendor_name=vendor_name,
            category=category,
            metal_type=metal_type,
            delivery_date=delivery_date,
            now=now,
            created_by=created_by,
            **carried,
        )
        logger.info(f"Converted enquiry {enquiry.shareable_token} into order {order.order_number}")
        return order

    def _build(
        self,
        record_type: RecordType,
        customer_name: str,
        salesperson_name: str,
        stage: Stage,
        now: datetime,
        created_by: Optional[str],
        details: Dict[str, Any],
    ) -> Order:
        created_at = to_datetime(now)
        customer_name = customer_name.strip()
        salesperson_name = salesperson_name.strip()
        if details.get("delivery_date"):
            details["delivery_date"] = to_date(details["delivery_date"])

        order_id = str(uuid4())
        order = Order(
            id=order_id,
            type=record_type,
            shareable_token=self.generate_shareable_token(customer_name, details.get("category")),
            order_number=(
                self.generate_order_number(created_at) if record_type == RecordType.ORDER else None
            ),
            customer_name=customer_name,
            salesperson_name=salesperson_name,
            current_stage=stage,
            created_at=created_at,
            last_updated_at=created_at,
            activity_feed=[
                ActivityLedger.creation_entry(order_id, created_by or salesperson_name, created_at)
            ],
            **details,
        )
        logger.info(
            f"Created {record_type.value} {order.order_number or order.shareable_token} "
            f"for {customer_name} at {stage.value}"
        )
        return order

    @staticmethod
    def _required_errors(customer_name: str, salesperson_name: str) -> Dict[str, str]:
        errors = {}
        if not (customer_name or "").strip():
            errors["customer_name"] = "Customer name is required"
        if not (salesperson_name or "").strip():
            errors["salesperson_name"] = "Assign a salesperson"
        return errors

    @staticmethod
    def _amount_errors(details: Dict[str, Any]) -> Dict[str, str]:
        errors = {}
        for name in ("total_estimate", "advance_paid"):
            value = details.get(name)
            if value is not None and value < 0:
                errors[name] = "Enter a valid amount"
        total = details.get("total_estimate")
        advance = details.get("advance_paid")
        if not errors and total is not None and advance is not None and advance > total:
            errors["advance_paid"] = "Advance cannot exceed the total estimate"
        return errors
