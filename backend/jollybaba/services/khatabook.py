"""Khatabook (customer debt ledger) entries: manual CRUD and sale-generated lines."""
from __future__ import annotations
from datetime import date
from typing import Any, Dict, Iterable, Optional, Set
from sqlalchemy import select, update
from jollybaba.models.khatabook_entry import KhatabookEntry
from jollybaba.models.inventory_item import InventoryItem
from jollybaba.errors import NotFound, ValidationError, PaidExceedsAmount
from jollybaba.utils.normalize import clean_text, iso_date, iso_timestamp, normalize_whitespace, parse_date, to_amount, utcnow
from jollybaba.utils.remarks import clamp_paid, parse_paid_amount

SETTLED_EPSILON = 0.0001
STATUS_SETTLED = 'Settled'
STATUS_PENDING = 'Pending'

# public field -> legacy form alias
ALIASES = {
    'name': 'manual_name',
    'mobile': 'manual_mobile',
    'amount': 'manual_amount',
    'paid': 'manual_paid',
    'description': 'manual_description',
    'note': 'manual_note',
    'entryDate': 'manual_date',
}


def entry_status(remaining: float) -> str:
    return STATUS_SETTLED if remaining <= SETTLED_EPSILON else STATUS_PENDING


def remaining_amount(amount: float, paid: float) -> float:
    return max(0.0, amount - clamp_paid(amount, paid))


def _field(data: Dict[str, Any], name: str):
    """(present, value) honouring the ``manual_*`` alias."""
    if name in data:
        return True, data.get(name)
    alias = ALIASES[name]
    if alias in data:
        return True, data.get(alias)
    return False, None


def _entry_date(value: Any) -> date:
    try:
        return parse_date(value) or utcnow().date()
    except ValueError:
        return utcnow().date()


def create_entry(session, data: Dict[str, Any]) -> KhatabookEntry:
    name = normalize_whitespace(_field(data, 'name')[1])
    if not name:
        raise ValidationError('Name is required', error='NAME_REQUIRED')
    amount = to_amount(_field(data, 'amount')[1], 0.0)
    if amount < 0:
        raise ValidationError('Amount must be zero or more', error='AMOUNT_INVALID')
    paid = to_amount(_field(data, 'paid')[1], 0.0)
    if paid < 0:
        raise ValidationError('Paid must be zero or more', error='PAID_INVALID')
    if paid > amount:
        raise PaidExceedsAmount('Paid cannot exceed amount')
    entry = KhatabookEntry(
        name=name,
        mobile=clean_text(_field(data, 'mobile')[1]),
        amount=amount,
        paid=paid,
        description=clean_text(_field(data, 'description')[1]),
        note=clean_text(_field(data, 'note')[1]),
        entry_date=_entry_date(_field(data, 'entryDate')[1]),
    )
    session.add(entry)
    session.flush()
    return entry


def update_entry(session, entry_id: int, data: Dict[str, Any]) -> KhatabookEntry:
    """Merge provided fields onto the entry; paid <= amount is checked on the merged result."""
    entry = get_entry(session, entry_id)
    merged = {
        'name': entry.name, 'mobile': entry.mobile, 'amount': float(entry.amount or 0), 'paid': float(entry.paid or 0),
        'description': entry.description, 'note': entry.note, 'entry_date': entry.entry_date,
    }
    present, value = _field(data, 'name')
    if present:
        name = normalize_whitespace(value)
        if not name:
            raise ValidationError('Name is required', error='NAME_REQUIRED')
        merged['name'] = name
    present, value = _field(data, 'mobile')
    if present:
        merged['mobile'] = clean_text(value)
    present, value = _field(data, 'amount')
    if present:
        amount = to_amount(value, 0.0)
        if amount < 0:
            raise ValidationError('Amount must be zero or more', error='AMOUNT_INVALID')
        merged['amount'] = amount
    present, value = _field(data, 'paid')
    if present:
        paid = to_amount(value, 0.0)
        if paid < 0:
            raise ValidationError('Paid must be zero or more', error='PAID_INVALID')
        merged['paid'] = paid
    for name in ('description', 'note'):
        present, value = _field(data, name)
        if present:
            merged[name] = clean_text(value)
    present, value = _field(data, 'entryDate')
    if present:
        merged['entry_date'] = _entry_date(value)
    if merged['paid'] > merged['amount']:
        raise PaidExceedsAmount('Paid cannot exceed amount')
    for key, value in merged.items():
        if getattr(entry, key) != value:
            setattr(entry, key, value)
    session.flush()
    return entry


def get_entry(session, entry_id: int) -> KhatabookEntry:
    entry = session.get(KhatabookEntry, entry_id)
    if entry is None:
        raise NotFound('Entry not found', error='NOT_FOUND')
    return entry


def delete_entry(session, entry_id: int) -> bool:
    """Hard delete; inventory back-references are cleared explicitly."""
    entry = session.get(KhatabookEntry, entry_id)
    if entry is None:
        return False
    session.execute(
        update(InventoryItem).where(InventoryItem.khatabook_entry_id == entry_id).values(khatabook_entry_id=None)
    )
    session.delete(entry)
    session.flush()
    return True


def list_entries(session):
    stmt = select(KhatabookEntry).order_by(KhatabookEntry.entry_date.desc(), KhatabookEntry.id.desc())
    return session.execute(stmt).scalars().all()


def sale_linked_entry_ids(session) -> Set[int]:
    stmt = select(InventoryItem.khatabook_entry_id).where(InventoryItem.khatabook_entry_id.is_not(None)).distinct()
    return set(session.execute(stmt).scalars())


def entry_json(e: KhatabookEntry, sale_ids: Optional[Iterable[int]] = None) -> Dict[str, Any]:
    amount = float(e.amount or 0)
    paid = float(e.paid or 0)
    remaining = remaining_amount(amount, paid)
    return {
        'id': e.id,
        'name': e.name or '',
        'mobile': e.mobile or '',
        'amount': amount,
        'paid': paid,
        'remaining': remaining,
        'status': entry_status(remaining),
        'source': 'Sale' if sale_ids is not None and e.id in sale_ids else 'Manual',
        'description': e.description or '',
        'note': e.note or '',
        'entryDate': iso_date(e.entry_date),
        'createdAt': iso_timestamp(e.created_at),
        'updatedAt': iso_timestamp(e.updated_at),
    }


def create_sale_entry(session, sr_no: int, item: InventoryItem, sale: Dict[str, Any]) -> Optional[KhatabookEntry]:
    """Ledger line for a sale of ``sale['sellAmount']``; None when the amount is not positive."""
    amount = to_amount(sale.get('sellAmount'), 0.0)
    if amount <= 0:
        return None
    remarks = normalize_whitespace(sale.get('remarks'))
    paid = clamp_paid(amount, parse_paid_amount(remarks))
    remaining = max(0.0, amount - paid)

    descriptor = [normalize_whitespace(v) for v in (item.model, item.variant_gb_color) if normalize_whitespace(v)]
    description = f"Sale • {' • '.join(descriptor)}" if descriptor else f'Sale • SR {sr_no}'

    note_parts = []
    if item.imei:
        note_parts.append(f'IMEI: {item.imei}')
    address = normalize_whitespace(sale.get('customerAddress'))
    if address:
        note_parts.append(f'Address: {address}')
    if remarks:
        note_parts.append(remarks)
    if remaining > SETTLED_EPSILON:
        note_parts.append(f'Remaining: ₹{remaining:.2f}')
    note_parts.append(f'SR No: {sr_no}')
    note = ' | '.join(p for p in (normalize_whitespace(p) for p in note_parts) if p)

    entry = KhatabookEntry(
        name=normalize_whitespace(sale.get('customerName')) or 'Customer',
        mobile=normalize_whitespace(sale.get('mobileNumber')) or None,
        amount=amount,
        paid=paid,
        description=description,
        note=note or None,
        entry_date=_entry_date(sale.get('sellDate')),
    )
    session.add(entry)
    session.flush()
    return entry
