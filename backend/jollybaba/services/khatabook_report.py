"""Spreadsheet export of the khatabook.

Stored entries are combined with lines synthesized on demand from every SOLD
inventory item. The synthesized sale lines re-derive "paid" from the item's
remarks, independent of the stored sale entry, so a sale with an auto-created
ledger entry is reported twice (once as "Manual", once as "Sale"). That overlap
is kept as-is; see DESIGN.md.
"""
from __future__ import annotations
from collections import Counter
from dataclasses import dataclass, field
from datetime import date, datetime, time, timezone
from typing import Dict, Iterable, List, Optional
import io
from openpyxl import Workbook
from sqlalchemy import select
from jollybaba.models.inventory_item import InventoryItem
from jollybaba.models.khatabook_entry import KhatabookEntry
from jollybaba.services.khatabook import STATUS_PENDING, STATUS_SETTLED, entry_status
from jollybaba.utils.normalize import phone_digits, to_amount, utcnow
from jollybaba.utils.remarks import clamp_paid, parse_paid_amount

MONEY_FORMAT = '#,##0.00'
XLSX_MIMETYPE = 'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet'


@dataclass
class LedgerLine:
    type: str
    name: str
    mobile: str
    entry_date: datetime
    total: float
    paid: float
    remaining: float
    status: str
    item: str
    sr_no: str = ''
    imei: str = ''
    notes: str = ''


@dataclass
class CustomerGroup:
    name: str
    display_mobile: str
    entries: List[LedgerLine] = field(default_factory=list)
    total_amount: float = 0.0
    total_paid: float = 0.0
    total_remaining: float = 0.0
    status: str = STATUS_PENDING
    latest_date: Optional[datetime] = None

    @property
    def count(self) -> int:
        return len(self.entries)


def _trim(value) -> str:
    return '' if value is None else str(value).strip()


def _as_datetime(value) -> Optional[datetime]:
    if value is None:
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, date):
        dt = datetime.combine(value, time())
    else:
        return None
    return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)


def _resolve_date(*values) -> datetime:
    for value in values:
        dt = _as_datetime(value)
        if dt is not None:
            return dt
    return utcnow()


def _line(kind, name, mobile, entry_date, total, paid_raw, item, sr_no='', imei='', notes='') -> LedgerLine:
    paid = clamp_paid(total, paid_raw)
    remaining = max(0.0, total - paid)
    return LedgerLine(type=kind, name=name, mobile=mobile, entry_date=entry_date, total=total, paid=paid,
                      remaining=remaining, status=entry_status(remaining), item=item, sr_no=sr_no, imei=imei, notes=notes)


def manual_line(row: KhatabookEntry) -> LedgerLine:
    return _line(
        'Manual',
        _trim(row.name) or 'Unknown',
        _trim(row.mobile),
        _resolve_date(row.entry_date, row.updated_at, row.created_at),
        to_amount(row.amount, 0.0),
        to_amount(row.paid, 0.0),
        _trim(row.description) or 'Manual entry',
        notes=_trim(row.note),
    )


def sale_line(row: InventoryItem) -> LedgerLine:
    total = to_amount(row.sell_amount, 0.0)
    parts = [p for p in (_trim(row.model), _trim(row.variant_gb_color)) if p]
    item = f"Sale • {' • '.join(parts)}" if parts else f'Sale • SR {row.sr_no}'
    return _line(
        'Sale',
        _trim(row.customer_name) or 'Customer',
        _trim(row.mobile_number),
        _resolve_date(row.sell_date, row.updated_at, row.created_at, row.date),
        total,
        parse_paid_amount(row.remarks),
        item,
        sr_no='' if row.sr_no is None else str(row.sr_no),
        imei=_trim(row.imei),
        notes=_trim(row.remarks),
    )


def combine_lines(manual_rows: Iterable[KhatabookEntry], sold_rows: Iterable[InventoryItem]) -> List[LedgerLine]:
    lines = [manual_line(r) for r in manual_rows] + [sale_line(r) for r in sold_rows]
    lines.sort(key=lambda line: line.entry_date, reverse=True)
    return lines


def group_by_customer(lines: Iterable[LedgerLine]) -> List[CustomerGroup]:
    """Roll lines up per customer: phone digits first, then lowercase name, else a singleton."""
    groups: Dict[str, CustomerGroup] = {}
    names: Dict[str, Counter] = {}
    orphans = 0
    for line in lines:
        digits = phone_digits(line.mobile)
        key = digits or _trim(line.name).lower()
        if not key:
            key = f'orphan-{orphans}'
            orphans += 1
        group = groups.get(key)
        if group is None:
            group = groups[key] = CustomerGroup(name='Unknown', display_mobile=line.mobile if digits else '')
            names[key] = Counter()
        group.entries.append(line)
        trimmed = _trim(line.name)
        if trimmed:
            names[key][trimmed] += 1
        if digits and not group.display_mobile:
            group.display_mobile = line.mobile
        group.total_amount += line.total
        group.total_paid += line.paid
        group.total_remaining += line.remaining
        if group.latest_date is None or line.entry_date > group.latest_date:
            group.latest_date = line.entry_date

    for key, group in groups.items():
        counts = names[key]
        if counts:
            # most frequent, ties alphabetical
            group.name = sorted(counts.items(), key=lambda kv: (-kv[1], kv[0]))[0][0]
        elif group.entries:
            group.name = _trim(group.entries[0].name) or 'Unknown'
        settled = all(line.status == STATUS_SETTLED for line in group.entries)
        group.status = STATUS_SETTLED if settled else STATUS_PENDING
    return list(groups.values())


def summarize_by_status(lines: Iterable[LedgerLine]) -> Dict[str, Dict[str, float]]:
    buckets = {s: {'count': 0, 'total': 0.0, 'paid': 0.0, 'outstanding': 0.0} for s in (STATUS_PENDING, STATUS_SETTLED)}
    for line in lines:
        bucket = buckets.get(line.status, buckets[STATUS_PENDING])
        bucket['count'] += 1
        bucket['total'] += line.total
        bucket['paid'] += line.paid
        bucket['outstanding'] += line.remaining
    return buckets


def _money(value: float) -> float:
    return round(value, 2)


def _date_text(value: Optional[datetime]) -> str:
    return value.date().isoformat() if value else ''


def _sheet(wb: Workbook, title: str, columns, first: bool = False):
    ws = wb.active if first else wb.create_sheet()
    ws.title = title
    ws.append([header for header, _width, _money_col in columns])
    for idx, (_header, width, _money_col) in enumerate(columns, start=1):
        ws.column_dimensions[ws.cell(row=1, column=idx).column_letter].width = width
    return ws


def _append(ws, columns, values):
    ws.append(values)
    row = ws.max_row
    for idx, (_header, _width, money_col) in enumerate(columns, start=1):
        if money_col:
            ws.cell(row=row, column=idx).number_format = MONEY_FORMAT


SUMMARY_COLUMNS = [('Status', 14, False), ('Entries', 12, False), ('Total Amount', 18, True), ('Amount Paid', 18, True), ('Outstanding', 18, True)]
CUSTOMER_COLUMNS = [
    ('Customer Name', 28, False), ('Mobile', 18, False), ('Entries', 10, False), ('Total Amount', 16, True),
    ('Amount Paid', 16, True), ('Outstanding', 16, True), ('Status', 12, False), ('Last Entry Date', 16, False),
]
ENTRY_COLUMNS = [
    ('Date', 14, False), ('Customer Name', 26, False), ('Mobile', 18, False), ('Pending/Settled', 16, False),
    ('Entry Type', 12, False), ('Item / Model', 30, False), ('SR No', 12, False), ('IMEI', 20, False),
    ('Total Amount', 16, True), ('Amount Paid', 16, True), ('Outstanding', 16, True), ('Notes', 40, False),
]


def build_workbook(lines: List[LedgerLine]) -> Workbook:
    wb = Workbook()
    summary = _sheet(wb, 'Summary', SUMMARY_COLUMNS, first=True)
    buckets = summarize_by_status(lines)
    for status in (STATUS_PENDING, STATUS_SETTLED):
        b = buckets[status]
        _append(summary, SUMMARY_COLUMNS, [status, b['count'], _money(b['total']), _money(b['paid']), _money(b['outstanding'])])

    customers = _sheet(wb, 'Customers', CUSTOMER_COLUMNS)
    for g in group_by_customer(lines):
        _append(customers, CUSTOMER_COLUMNS, [
            g.name, g.display_mobile, g.count, _money(g.total_amount), _money(g.total_paid),
            _money(g.total_remaining), g.status, _date_text(g.latest_date),
        ])

    entries = _sheet(wb, 'Entries', ENTRY_COLUMNS)
    for line in lines:
        _append(entries, ENTRY_COLUMNS, [
            _date_text(line.entry_date), _trim(line.name) or 'Unknown', _trim(line.mobile), line.status, line.type,
            line.item or '-', line.sr_no, line.imei, _money(line.total), _money(line.paid), _money(line.remaining), line.notes,
        ])
    return wb


def export_khatabook(session) -> bytes:
    manual_rows = session.execute(
        select(KhatabookEntry).order_by(KhatabookEntry.entry_date.desc().nulls_last(), KhatabookEntry.id.desc())
    ).scalars().all()
    sold_rows = session.execute(
        select(InventoryItem).where(InventoryItem.status == InventoryItem.STATUS_SOLD)
    ).scalars().all()
    lines = combine_lines(manual_rows, sold_rows)
    buf = io.BytesIO()
    build_workbook(lines).save(buf)
    return buf.getvalue()


def export_filename(now: Optional[datetime] = None) -> str:
    now = now or utcnow()
    return f"khatabook-{now.strftime('%Y%m%d%H%M%S')}.xlsx"
