from __future__ import annotations
from typing import Any, Dict, List, Optional
from sqlalchemy import func, or_, select
from jollybaba.models.customer import Customer
from jollybaba.models.inventory_item import InventoryItem
from jollybaba.utils.normalize import name_key, normalize_whitespace, phone_digits, parse_datetime, utcnow, iso_timestamp

SEARCH_LIMIT = 10
MIN_QUERY_LENGTH = 2


def upsert_customer(session, name: Any, phone: Any = None, address: Any = None, last_purchase_at: Any = None) -> Optional[Customer]:
    """Insert or update the customer keyed by (normalized name, phone digits).

    A blank name is a no-op. Address merges non-destructively: a new non-empty
    value wins, otherwise the stored one is kept.
    """
    display_name = normalize_whitespace(name)
    if not display_name:
        return None
    key = name_key(display_name)
    digits = phone_digits(phone)
    new_address = normalize_whitespace(address) or None
    try:
        purchased_at = parse_datetime(last_purchase_at) or utcnow()
    except ValueError:
        purchased_at = utcnow()
    phone_value = str(phone).strip() if phone not in (None, '') else None

    customer = session.execute(
        select(Customer).where(Customer.name_key == key, Customer.phone_digits == digits)
    ).scalar_one_or_none()
    if customer is None:
        customer = Customer(name=display_name, name_key=key, phone=phone_value, phone_digits=digits,
                            address=new_address, last_purchase_at=purchased_at)
        session.add(customer)
    else:
        customer.name = display_name
        customer.phone = phone_value
        if new_address:
            customer.address = new_address
        customer.last_purchase_at = purchased_at
    session.flush()
    return customer


def customer_json(c: Customer) -> Dict[str, Any]:
    return {
        'id': c.id,
        'name': c.name,
        'phone': c.phone,
        'email': c.email,
        'address': c.address,
        'last_purchase_at': iso_timestamp(c.last_purchase_at),
    }


def search_customers(session, raw_query: Any) -> List[Dict[str, Any]]:
    query = str(raw_query or '').strip()
    if len(query) < MIN_QUERY_LENGTH:
        return []
    conditions = [
        func.lower(Customer.name).like(f'%{query.lower()}%'),
        Customer.name_key.like(f'%{name_key(query)}%'),
    ]
    digits = phone_digits(query)
    if digits:
        conditions.append(Customer.phone_digits.like(f'%{digits}%'))
    stmt = (
        select(Customer)
        .where(or_(*conditions))
        .order_by(Customer.last_purchase_at.desc().nulls_last(), Customer.updated_at.desc())
        .limit(SEARCH_LIMIT)
    )
    return [customer_json(c) for c in session.execute(stmt).scalars()]


def _digits_expr(column):
    expr = func.coalesce(column, '')
    for ch in (' ', '-', '+', '(', ')', '.'):
        expr = func.replace(expr, ch, '')
    return expr


def search_vendors(session, raw_query: Any) -> List[Dict[str, Any]]:
    """Distinct (vendor, phone) pairs seen on inventory purchases."""
    query = str(raw_query or '').strip()
    if len(query) < MIN_QUERY_LENGTH:
        return []
    like = f'%{query.lower()}%'
    conditions = [
        func.lower(InventoryItem.vendor_purchase).like(like),
        func.lower(func.coalesce(InventoryItem.vendor_phone, '')).like(like),
    ]
    digits = phone_digits(query)
    if digits:
        conditions.append(_digits_expr(InventoryItem.vendor_phone).like(f'%{digits}%'))
    last_used = func.max(InventoryItem.updated_at).label('last_used')
    total = func.count().label('total')
    stmt = (
        select(InventoryItem.vendor_purchase, InventoryItem.vendor_phone, total, last_used)
        .where(InventoryItem.vendor_purchase.is_not(None), or_(*conditions))
        .group_by(InventoryItem.vendor_purchase, InventoryItem.vendor_phone)
        .order_by(last_used.desc().nulls_last(), total.desc())
        .limit(SEARCH_LIMIT)
    )
    out = []
    for vendor, phone, count, used in session.execute(stmt):
        out.append({'name': vendor, 'phone': phone or '', 'total': int(count), 'last_used': iso_timestamp(used) if hasattr(used, 'isoformat') else used})
    return out
