"""Phone stock: creation, listing, whitelisted edits, sale and sale reversal.

Sales run as one transaction with two failure domains. Marking items SOLD is
fatal: if it fails nothing is written. The khatabook entry and the customer upsert
are advisory: each runs in its own SAVEPOINT, and a failure is logged and rolled
back to that savepoint while the sale itself still commits.
"""
from __future__ import annotations
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Sequence
from flask import current_app
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from jollybaba.models.inventory_item import InventoryItem
from jollybaba.errors import DuplicateImei, NotAvailable, NotFound, NotSold, ValidationError
from jollybaba.services.customers import upsert_customer
from jollybaba.services.khatabook import create_sale_entry, delete_entry
from jollybaba.utils.filters import apply_filters
from jollybaba.utils.fsm import TransitionValidator
from jollybaba.utils.normalize import clean_text, iso_date, iso_timestamp, normalize_whitespace, parse_date, to_amount, utcnow

AVAILABLE = InventoryItem.STATUS_AVAILABLE
SOLD = InventoryItem.STATUS_SOLD

INVENTORY_FSM = TransitionValidator({
    AVAILABLE: {SOLD},
    SOLD: {AVAILABLE},
    InventoryItem.STATUS_RESERVED: set(),
}, errors={AVAILABLE: NotSold, SOLD: NotAvailable})

# camelCase request field -> column
EDITABLE_FIELDS = {
    'date': 'date',
    'brand': 'brand',
    'model': 'model',
    'imei': 'imei',
    'variantGbColor': 'variant_gb_color',
    'vendorPurchase': 'vendor_purchase',
    'vendorPhone': 'vendor_phone',
    'purchaseAmount': 'purchase_amount',
    'remarks': 'remarks',
    'customerName': 'customer_name',
    'mobileNumber': 'mobile_number',
    'sellDate': 'sell_date',
    'sellAmount': 'sell_amount',
}
DATE_COLUMNS = ('date', 'sell_date')
AMOUNT_COLUMNS = ('purchase_amount', 'sell_amount')
REQUIRED_COLUMNS = ('date', 'model', 'imei')

LIST_COLUMNS = (
    'sr_no', 'date', 'brand', 'model', 'imei', 'variant_gb_color', 'vendor_purchase', 'vendor_phone',
    'purchase_amount', 'sell_date', 'sell_amount', 'customer_name', 'mobile_number', 'remarks',
    'salesperson_name', 'status', 'khatabook_entry_id',
)


def _coerce_date(name: str, value: Any) -> Optional[date]:
    try:
        return parse_date(value)
    except ValueError:
        raise ValidationError(f'{name} invalid', error='INVALID_DATE')


def _today() -> date:
    return utcnow().date()


# ---------------- listing ---------------- #

FILTER_SPECS = {
    'q': {'op': lambda qu, v: qu.where(
        (func.lower(InventoryItem.imei).like(f'%{v.lower()}%')) | (func.lower(InventoryItem.model).like(f'%{v.lower()}%'))
    )},
    'status': {'op': lambda qu, v: qu.where(InventoryItem.status == v)},
    'vendor': {'op': lambda qu, v: qu.where(func.lower(InventoryItem.vendor_purchase).like(f'%{v.lower()}%'))},
    'brand': {'op': lambda qu, v: qu.where(InventoryItem.brand == v)},
    'from': {'coerce': parse_date, 'op': lambda qu, v: qu.where(InventoryItem.date >= v)},
    'to': {'coerce': parse_date, 'op': lambda qu, v: qu.where(InventoryItem.date <= v)},
}


def filtered_items_query(params: Dict[str, Any]):
    stmt = apply_filters(select(InventoryItem), FILTER_SPECS, params)
    sort_col = InventoryItem.purchase_amount if params.get('sort') == 'price' else InventoryItem.date
    ascending = str(params.get('order') or 'desc').lower() == 'asc'
    return stmt.order_by(sort_col.asc() if ascending else sort_col.desc(), InventoryItem.sr_no.desc())


def list_items(session, params: Dict[str, Any]) -> Dict[str, Any]:
    items = session.execute(filtered_items_query(params)).scalars().all()
    available = sum(1 for i in items if i.status == AVAILABLE)
    sold = sum(1 for i in items if i.status == SOLD)
    visible_index: Dict[str, int] = {}
    for item in items:
        if item.status == AVAILABLE:
            visible_index[str(item.sr_no)] = len(visible_index) + 1
    return {
        'items': [item_json(i) for i in items],
        'counts': [{'available': available, 'sold': sold, 'total': len(items)}],
        'visibleIndex': visible_index,
    }


def item_json(item: InventoryItem, columns: Sequence[str] = LIST_COLUMNS) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for name in columns:
        value = getattr(item, name)
        if isinstance(value, datetime):
            value = iso_timestamp(value)
        elif isinstance(value, date):
            value = iso_date(value)
        elif name in AMOUNT_COLUMNS and value is not None:
            value = float(value)
        out[name] = value
    return out


def export_rows(session, params: Dict[str, Any]) -> List[Dict[str, Any]]:
    columns = [c.name for c in InventoryItem.__table__.columns]
    items = session.execute(filtered_items_query(params)).scalars().all()
    return [item_json(i, columns) for i in items]


# ---------------- creation / edits ---------------- #

def _new_item(data: Dict[str, Any], defaults: Optional[Dict[str, Any]] = None) -> InventoryItem:
    defaults = defaults or {}

    def pick(key):
        value = data.get(key)
        if value in (None, ''):
            value = defaults.get(key)
        return value

    return InventoryItem(
        date=_coerce_date('date', pick('date')) or _today(),
        brand=clean_text(data.get('brand')),
        model=clean_text(data.get('model')),
        imei=clean_text(data.get('imei')),
        variant_gb_color=clean_text(data.get('variantGbColor')),
        vendor_purchase=clean_text(pick('vendorPurchase')),
        vendor_phone=clean_text(pick('vendorPhone')),
        purchase_amount=to_amount(pick('purchaseAmount'), 0.0),
        remarks=clean_text(pick('remarks')),
        status=AVAILABLE,
    )


def _imei_taken(session, imei: str) -> bool:
    return session.execute(select(InventoryItem.sr_no).where(InventoryItem.imei == imei)).first() is not None


def create_item(session, data: Dict[str, Any]) -> InventoryItem:
    item = _new_item(data)
    if not item.model or not item.imei:
        raise ValidationError('model and imei are required', error='INVALID_ITEM')
    if _imei_taken(session, item.imei):
        raise DuplicateImei('IMEI already in stock')
    session.add(item)
    try:
        session.flush()
    except IntegrityError:
        raise DuplicateImei('IMEI already in stock')
    return item


def create_items(session, payload: Dict[str, Any]) -> List[InventoryItem]:
    """All-or-nothing batch; shared purchase fields on the payload fill per-item gaps."""
    rows = payload.get('items')
    if not isinstance(rows, list) or not rows:
        raise ValidationError('No items provided', error='NO_ITEMS_PROVIDED')
    defaults = {k: payload.get(k) for k in ('date', 'vendorPurchase', 'vendorPhone', 'purchaseAmount', 'remarks')}
    created: List[InventoryItem] = []
    seen = set()
    for row in rows:
        row = row if isinstance(row, dict) else {}
        item = _new_item(row, defaults)
        if not item.model or not item.imei:
            raise ValidationError('Each item needs model and imei', error='INVALID_ITEM', extra={'item': row})
        if item.imei in seen or _imei_taken(session, item.imei):
            raise DuplicateImei('Duplicate IMEI in batch', error='DUP_IMEI_IN_BATCH')
        seen.add(item.imei)
        created.append(item)
    session.add_all(created)
    try:
        session.flush()
    except IntegrityError:
        raise DuplicateImei('Duplicate IMEI in batch', error='DUP_IMEI_IN_BATCH')
    return created


def get_item(session, sr_no: int, lock: bool = False) -> InventoryItem:
    stmt = select(InventoryItem).where(InventoryItem.sr_no == sr_no)
    if lock:
        stmt = stmt.with_for_update()
    item = session.execute(stmt).scalar_one_or_none()
    if item is None:
        raise NotFound('Item not found', error='NOT_FOUND')
    return item


def patch_item(session, sr_no: int, data: Dict[str, Any]) -> InventoryItem:
    changes = {column: data[key] for key, column in EDITABLE_FIELDS.items() if key in data}
    if not changes:
        raise ValidationError('No editable fields provided', error='NO_FIELDS')
    item = get_item(session, sr_no)
    for column, value in changes.items():
        if column in DATE_COLUMNS:
            value = _coerce_date(column, value)
        elif column in AMOUNT_COLUMNS:
            value = None if value in (None, '') else to_amount(value, 0.0)
        elif isinstance(value, str):
            value = value.strip() or None
        if value is None and column in REQUIRED_COLUMNS:
            raise ValidationError(f'{column} cannot be empty', error='INVALID_FIELD')
        setattr(item, column, value)
    if 'imei' in changes:
        clash = session.execute(
            select(InventoryItem.sr_no).where(InventoryItem.imei == item.imei, InventoryItem.sr_no != sr_no)
        ).first()
        if clash:
            raise DuplicateImei('IMEI already in stock')
    session.flush()
    return item


def set_remarks(session, sr_no: int, remarks: Any) -> InventoryItem:
    item = get_item(session, sr_no)
    item.remarks = clean_text(remarks)
    session.flush()
    return item


# ---------------- sale lifecycle ---------------- #

@dataclass
class SaleResult:
    items: List[InventoryItem]
    khatabook_entry_id: Optional[int]


def _sale_payload(data: Dict[str, Any]) -> Dict[str, Any]:
    keys = ('sellDate', 'sellAmount', 'customerName', 'mobileNumber', 'remarks', 'salespersonName', 'customerAddress')
    return {k: data.get(k) for k in keys}


def _advisory(label: str, fn, session):
    """Run ``fn`` inside a savepoint; failures are logged and swallowed."""
    try:
        with session.begin_nested():
            return fn()
    except Exception:
        current_app.logger.warning('%s failed; continuing without it', label, exc_info=True)
        return None


def sell(session, sr_nos: Sequence[int], data: Dict[str, Any], split: bool = True) -> SaleResult:
    """Mark the AVAILABLE items among ``sr_nos`` SOLD.

    The total ``sellAmount`` is split evenly over every requested serial. Zero
    matching rows fails the whole call with NotAvailable. The first requested
    serial that was actually sold carries the khatabook entry description.
    """
    sale = _sale_payload(data)
    total = to_amount(sale['sellAmount'], 0.0)
    per_item = total / len(sr_nos) if split and sr_nos else total
    sell_date = _coerce_date('sellDate', sale['sellDate']) or _today()

    rows = session.execute(
        select(InventoryItem)
        .where(InventoryItem.sr_no.in_(list(sr_nos)), InventoryItem.status.in_(INVENTORY_FSM.sources_for(SOLD)))
        .with_for_update()
    ).scalars().all()
    by_sr = {i.sr_no: i for i in rows}
    items = [by_sr[n] for n in dict.fromkeys(sr_nos) if n in by_sr]
    if not items:
        raise NotAvailable('Item(s) not available or not found')

    for item in items:
        INVENTORY_FSM.assert_can_transition(item.status, SOLD)
        item.sell_date = sell_date
        item.sell_amount = per_item
        item.customer_name = clean_text(sale['customerName'])
        item.mobile_number = clean_text(sale['mobileNumber'])
        item.remarks = clean_text(sale['remarks'])
        item.salesperson_name = clean_text(sale['salespersonName'])
        item.status = SOLD
    session.flush()

    first = items[0]

    def _ledger():
        entry = create_sale_entry(session, first.sr_no, first, sale)
        if entry is not None:
            for item in items:
                item.khatabook_entry_id = entry.id
            session.flush()
            return entry.id
        return None

    entry_id = _advisory('khatabook entry for sale', _ledger, session)
    _advisory('customer upsert for sale',
              lambda: upsert_customer(session, sale['customerName'], sale['mobileNumber'], sale['customerAddress'], sale['sellDate']),
              session)
    return SaleResult(items=items, khatabook_entry_id=entry_id)


@dataclass
class ReversalResult:
    item: InventoryItem
    khatabook_entry_deleted: bool


def make_available(session, sr_no: int) -> ReversalResult:
    """Reverse a sale: drop its ledger entry, clear sale fields, note the cancellation."""
    item = get_item(session, sr_no, lock=True)
    INVENTORY_FSM.assert_can_transition(item.status, AVAILABLE)

    deleted = False
    entry_id = item.khatabook_entry_id
    if entry_id:
        # clears the link on sibling items from the same multi-sale too
        deleted = bool(_advisory('khatabook delete on sale reversal', lambda: delete_entry(session, entry_id), session))

    note = f'Sale cancelled on {_today().isoformat()}'
    existing = normalize_whitespace(item.remarks)
    item.remarks = normalize_whitespace(f'{existing} | {note}' if existing else note) or None
    item.sell_date = None
    item.sell_amount = None
    item.customer_name = None
    item.mobile_number = None
    item.salesperson_name = None
    item.khatabook_entry_id = None
    item.status = AVAILABLE
    session.flush()
    return ReversalResult(item=item, khatabook_entry_deleted=deleted)
