import io
from datetime import date, datetime, timezone
from openpyxl import load_workbook
from tests.test_utils_seed import ensure_technician, auth_headers, add_entry, add_item
from jollybaba.models.inventory_item import InventoryItem
from jollybaba.models.khatabook_entry import KhatabookEntry
from jollybaba.services.khatabook_report import (
    LedgerLine, combine_lines, export_filename, group_by_customer, manual_line, sale_line, summarize_by_status,
)

WHEN = datetime(2024, 5, 1, tzinfo=timezone.utc)


def _line(name, mobile, total, paid, when=WHEN):
    remaining = max(0.0, total - paid)
    return LedgerLine(type='Manual', name=name, mobile=mobile, entry_date=when, total=total, paid=paid,
                      remaining=remaining, status='Settled' if remaining <= 0.0001 else 'Pending', item='x')


def test_grouping_prefers_phone_digits_then_name():
    lines = [
        _line('Ravi', '+91 98200 11111', 100, 100),
        _line('Ravi K', '9198200-11111', 50, 0),
        _line('ravi k', '', 30, 30),
        _line('RAVI K', '', 20, 20),
        _line('', '', 10, 0),
        _line('', '', 5, 0),
    ]
    groups = group_by_customer(lines)
    assert len(groups) == 4
    by_phone = groups[0]
    assert by_phone.count == 2
    assert by_phone.total_amount == 150 and by_phone.total_remaining == 50
    assert by_phone.status == 'Pending'
    # tie between 'Ravi' and 'Ravi K' broken alphabetically
    assert by_phone.name == 'Ravi'
    by_name = groups[1]
    assert by_name.count == 2 and by_name.status == 'Settled'
    assert by_name.name == 'RAVI K'
    # blank name and phone never merge
    assert [g.count for g in groups[2:]] == [1, 1]
    assert groups[2].name == 'Unknown'


def test_sale_line_rederives_paid_from_remarks():
    item = InventoryItem(sr_no=7, model='Pixel 7', variant_gb_color='8/128', imei='IM7', sell_amount=1000,
                         remarks='Paid: ₹1,500 upfront', customer_name=' Asha ', mobile_number='123',
                         sell_date=date(2024, 4, 2), date=date(2024, 4, 1), status='SOLD')
    line = sale_line(item)
    # paid is clamped to the total
    assert (line.total, line.paid, line.remaining, line.status) == (1000.0, 1000.0, 0.0, 'Settled')
    assert line.item == 'Sale • Pixel 7 • 8/128'
    assert line.name == 'Asha'
    assert line.sr_no == '7'
    assert line.entry_date == datetime(2024, 4, 2, tzinfo=timezone.utc)


def test_manual_line_defaults_and_summary():
    entry = KhatabookEntry(name='', amount=300, paid=120, entry_date=date(2024, 4, 3))
    line = manual_line(entry)
    assert line.name == 'Unknown'
    assert line.item == 'Manual entry'
    summary = summarize_by_status([line, _line('B', '', 50, 50)])
    assert summary['Pending'] == {'count': 1, 'total': 300.0, 'paid': 120.0, 'outstanding': 180.0}
    assert summary['Settled']['count'] == 1


def test_combined_lines_newest_first_and_sale_counted_twice():
    stored = KhatabookEntry(name='Asha', mobile='123', amount=1000, paid=400, entry_date=date(2024, 4, 2))
    sold = InventoryItem(sr_no=1, model='M', imei='I', sell_amount=1000, remarks='Paid: ₹400', customer_name='Asha',
                         mobile_number='123', sell_date=date(2024, 4, 2), date=date(2024, 4, 1), status='SOLD')
    older = KhatabookEntry(name='Old', amount=10, paid=0, entry_date=date(2023, 1, 1))
    lines = combine_lines([older, stored], [sold])
    assert lines[-1].name == 'Old'
    groups = group_by_customer(lines)
    asha = [g for g in groups if g.name == 'Asha'][0]
    # the stored sale entry and the synthesized sale line both count
    assert asha.count == 2
    assert asha.total_remaining == 1200.0


def test_export_endpoint_returns_workbook(client):
    headers = auth_headers(ensure_technician('ledger@x.com'))
    add_entry(name='Sita', mobile='555', amount=800, paid=300)
    add_item('R-1', model='Moto G', status='SOLD', sell_amount=900, customer_name='Sita', mobile_number='555',
             remarks='Paid: ₹900', sell_date=date(2024, 2, 5))
    add_item('R-2', model='Unsold')
    resp = client.get('/api/khatabook/export', headers=headers)
    assert resp.status_code == 200
    assert resp.mimetype == 'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet'
    assert 'filename="khatabook-' in resp.headers['Content-Disposition']
    wb = load_workbook(io.BytesIO(resp.data))
    assert wb.sheetnames == ['Summary', 'Customers', 'Entries']
    summary = list(wb['Summary'].iter_rows(values_only=True))
    assert summary[0] == ('Status', 'Entries', 'Total Amount', 'Amount Paid', 'Outstanding')
    assert summary[1] == ('Pending', 1, 800, 300, 500)
    assert summary[2] == ('Settled', 1, 900, 900, 0)
    customers = list(wb['Customers'].iter_rows(values_only=True))
    assert len(customers) == 2
    assert customers[1][:7] == ('Sita', '555', 2, 1700, 1200, 500, 'Pending')
    entries = list(wb['Entries'].iter_rows(values_only=True))
    assert [row[4] for row in entries[1:]] == ['Sale', 'Manual']
    assert wb['Entries'].cell(row=2, column=9).number_format == '#,##0.00'


def test_export_filename_timestamp():
    assert export_filename(datetime(2024, 7, 9, 8, 5, 3)) == 'khatabook-20240709080503.xlsx'
