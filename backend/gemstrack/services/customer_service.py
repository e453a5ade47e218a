# Overview: Service-layer operations for customers and artisans (karigars).

from __future__ import annotations

from typing import Any, Mapping, Optional

from flask import current_app

from ..extensions import db
from ..models import Artisan, Customer
from ..models.ledger import WALK_IN_ENTITY_ID, WALK_IN_ENTITY_NAME
from ..validation import ConflictError, ValidationError, optional_str


def _customer_fields(data: Mapping[str, Any]) -> dict:
    name = optional_str(data.get("name"))
    if not name:
        raise ValidationError("name is required")
    return {
        "name": name,
        "phone": optional_str(data.get("phone"), 32),
        "email": optional_str(data.get("email")),
        "address": optional_str(data.get("address"), 512),
    }


def create_customer(data: Mapping[str, Any]) -> Customer:
    customer = Customer(**_customer_fields(data))
    db.session.add(customer)
    db.session.commit()
    current_app.logger.info("Customer %s created", customer.id)
    return customer


def get_customer(customer_id: int) -> Customer | None:
    return db.session.get(Customer, customer_id)


def list_customers(search: Optional[str] = None) -> list[Customer]:
    query = db.session.query(Customer)
    if search:
        like = f"%{search.strip()}%"
        query = query.filter(db.or_(Customer.name.ilike(like), Customer.phone.ilike(like)))
    return query.order_by(Customer.name.asc(), Customer.id.asc()).all()


def create_artisan(data: Mapping[str, Any]) -> Artisan:
    name = optional_str(data.get("name"))
    if not name:
        raise ValidationError("name is required")
    artisan = Artisan(
        name=name,
        contact=optional_str(data.get("contact"), 64),
        notes=optional_str(data.get("notes"), 4000),
    )
    db.session.add(artisan)
    db.session.commit()
    current_app.logger.info("Artisan %s created", artisan.id)
    return artisan


def get_artisan(artisan_id: int) -> Artisan | None:
    return db.session.get(Artisan, artisan_id)


def list_artisans() -> list[Artisan]:
    return db.session.query(Artisan).order_by(Artisan.name.asc(), Artisan.id.asc()).all()


# =============================================================================
# CUSTOMER RESOLUTION (used by the sale and order transactions)
# =============================================================================

class CustomerInfo:
    """
    Who a sale or order is for, as the cashier entered it.

    - customer_id set: an existing customer (must still exist at read time)
    - only name/phone set: a new customer synthesized inside the transaction
    - nothing set: walk-in
    """

    def __init__(self, customer_id: Optional[int] = None, name: Optional[str] = None, phone: Optional[str] = None):
        self.customer_id = customer_id
        self.name = name
        self.phone = phone

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "CustomerInfo":
        if data is None:
            data = {}
        elif not isinstance(data, Mapping):
            raise ValidationError("customer must be an object")
        raw_id = data.get("customer_id", data.get("id"))
        customer_id = None
        if raw_id not in (None, ""):
            if isinstance(raw_id, bool):
                raise ValidationError("customer_id must be an integer")
            try:
                customer_id = int(raw_id)
            except (TypeError, ValueError):
                raise ValidationError("customer_id must be an integer")
        return cls(
            customer_id=customer_id,
            name=optional_str(data.get("name")),
            phone=optional_str(data.get("phone"), 32),
        )

    @property
    def is_walk_in(self) -> bool:
        return self.customer_id is None and not self.name


def read_customer(info: CustomerInfo) -> Customer | None:
    """
    Read phase: load the referenced customer.

    Raises:
        ConflictError: the referenced customer no longer exists
    """
    if info.customer_id is None:
        return None
    customer = db.session.get(Customer, info.customer_id)
    if customer is None:
        raise ConflictError(f"Customer {info.customer_id} not found")
    return customer


def resolve_customer(info: CustomerInfo, existing: Customer | None) -> Customer | None:
    """
    Write phase: reuse `existing`, synthesize a new customer, or return None for walk-in.

    A synthesized customer is flushed so its id can tag the ledger posting.
    """
    if existing is not None:
        return existing
    if info.is_walk_in:
        return None
    customer = Customer(name=info.name, phone=info.phone)
    db.session.add(customer)
    db.session.flush()
    return customer


def ledger_entity(customer: Customer | None) -> tuple[str, str]:
    """(entity_id, entity_name) a customer's postings are filed under."""
    if customer is None:
        return WALK_IN_ENTITY_ID, WALK_IN_ENTITY_NAME
    return str(customer.id), customer.name
