import logging
import pytest
from datetime import date
from tests.test_utils_seed import ensure_technician, auth_headers, add_item
from jollybaba.models.customer import Customer
from jollybaba.models.inventory_item import InventoryItem
from jollybaba.models.khatabook_entry import KhatabookEntry
import jollybaba.services.inventory as inventory_service


def _headers():
    return auth_headers(ensure_technician('sales@x.com'))


SALE = {
    'sellDate': '2024-05-10',
    'sellAmount': 1000,
    'customerName': 'Rahul Verma',
    'mobileNumber': '98765 43210',
    'remarks': 'Paid: ₹400 cash',
    'salespersonName': 'Ajay',
    'customerAddress': 'MG Road',
}


def test_single_sale_creates_ledger_entry_and_reversal_deletes_it(client, session):
    headers = _headers()
    item = add_item('IMEI-5', model='Galaxy A14', variant_gb_color='4/64 Blue')
    resp = client.post(f'/api/inventory/{item.sr_no}/sell', json=SALE, headers=headers)
    assert resp.status_code == 200, resp.get_json()
    entry_id = resp.get_json()['khatabookEntryId']
    assert entry_id

    session.refresh(item)
    assert item.status == 'SOLD'
    assert item.sell_amount == 1000.0
    assert item.khatabook_entry_id == entry_id
    entry = session.get(KhatabookEntry, entry_id)
    assert (entry.amount, entry.paid) == (1000.0, 400.0)
    assert entry.description == 'Sale • Galaxy A14 • 4/64 Blue'
    assert 'IMEI: IMEI-5' in entry.note and 'Remaining: ₹600.00' in entry.note

    listed = client.get('/api/khatabook', headers=headers).get_json()['entries']
    assert listed[0]['remaining'] == 600.0
    assert listed[0]['status'] == 'Pending'
    assert listed[0]['source'] == 'Sale'

    customer = session.query(Customer).one()
    assert customer.name == 'Rahul Verma'
    assert customer.phone_digits == '9876543210'
    assert customer.address == 'MG Road'

    resp = client.post(f'/api/inventory/{item.sr_no}/make-available', headers=headers)
    assert resp.status_code == 200
    body = resp.get_json()
    assert body['khatabookEntryDeleted'] is True
    assert body['item']['status'] == 'AVAILABLE'
    for field in ('sell_date', 'sell_amount', 'customer_name', 'mobile_number', 'salesperson_name', 'khatabook_entry_id'):
        assert body['item'][field] is None
    assert body['item']['remarks'].startswith('Paid: ₹400 cash | Sale cancelled on ')
    assert session.get(KhatabookEntry, entry_id) is None


def test_selling_twice_is_rejected(client):
    headers = _headers()
    item = add_item('IMEI-6')
    assert client.post(f'/api/inventory/{item.sr_no}/sell', json=SALE, headers=headers).status_code == 200
    resp = client.post(f'/api/inventory/{item.sr_no}/sell', json=SALE, headers=headers)
    assert resp.status_code == 400
    assert resp.get_json()['error'] == 'NOT_AVAILABLE_OR_NOT_FOUND'
    assert client.post('/api/inventory/9999/sell', json=SALE, headers=headers).status_code == 400


def test_make_available_requires_sold(client):
    headers = _headers()
    item = add_item('IMEI-7')
    resp = client.post(f'/api/inventory/{item.sr_no}/make-available', headers=headers)
    assert resp.status_code == 400
    assert resp.get_json()['error'] == 'NOT_SOLD'
    assert client.post('/api/inventory/9999/make-available', headers=headers).status_code == 404


def test_zero_amount_sale_creates_no_entry(client, session):
    headers = _headers()
    item = add_item('IMEI-8')
    resp = client.post(f'/api/inventory/{item.sr_no}/sell', json=dict(SALE, sellAmount=0), headers=headers)
    assert resp.get_json()['khatabookEntryId'] is None
    assert session.query(KhatabookEntry).count() == 0
    session.refresh(item)
    assert item.status == 'SOLD'


def test_multi_sell_splits_amount_evenly(client, session):
    headers = _headers()
    items = [add_item(f'M-{n}', model='Redmi Note') for n in range(3)]
    sold_elsewhere = add_item('M-X', status='SOLD')
    sr_nos = [i.sr_no for i in items] + [sold_elsewhere.sr_no]
    resp = client.post('/api/inventory/sell-multiple', json=dict(SALE, srNos=[str(n) for n in sr_nos], sellAmount=1000),
                       headers=headers)
    assert resp.status_code == 200, resp.get_json()
    body = resp.get_json()
    assert body['updated'] == 3
    for item in items:
        session.refresh(item)
    # split over every requested serial, including the one that was not available
    assert all(i.sell_amount == pytest.approx(250.0) for i in items)
    assert {i.khatabook_entry_id for i in items} == {body['khatabookEntryId']}
    entry = session.get(KhatabookEntry, body['khatabookEntryId'])
    assert f'SR No: {items[0].sr_no}' in entry.note


def test_multi_sell_even_split_sums_to_total(client, session):
    headers = _headers()
    items = [add_item(f'S-{n}') for n in range(3)]
    client.post('/api/inventory/sell-multiple', json=dict(SALE, srNos=[i.sr_no for i in items], sellAmount=1000),
                headers=headers)
    for item in items:
        session.refresh(item)
    assert sum(i.sell_amount for i in items) == pytest.approx(1000.0, abs=0.02)


def test_multi_sell_validation(client):
    headers = _headers()
    resp = client.post('/api/inventory/sell-multiple', json=dict(SALE, srNos=['x']), headers=headers)
    assert resp.status_code == 400
    assert resp.get_json()['error'] == 'NO_SR_NOS_PROVIDED'
    sold = add_item('S-9', status='SOLD')
    resp = client.post('/api/inventory/sell-multiple', json=dict(SALE, srNos=[sold.sr_no]), headers=headers)
    assert resp.get_json()['error'] == 'NOT_AVAILABLE_OR_NOT_FOUND'


def test_ledger_failure_does_not_undo_sale(client, session, monkeypatch):
    headers = _headers()
    item = add_item('IMEI-9')

    def boom(*a, **k):
        session.add(KhatabookEntry(name='half written', amount=1, paid=0, entry_date=date(2024, 1, 1)))
        session.flush()
        raise RuntimeError('ledger offline')

    monkeypatch.setattr(inventory_service, 'create_sale_entry', boom)
    resp = client.post(f'/api/inventory/{item.sr_no}/sell', json=SALE, headers=headers)
    assert resp.status_code == 200, resp.get_json()
    assert resp.get_json()['khatabookEntryId'] is None
    session.refresh(item)
    assert item.status == 'SOLD'
    assert item.khatabook_entry_id is None
    # the savepoint discarded the partial ledger row
    assert session.query(KhatabookEntry).count() == 0
    # customer upsert still ran in its own savepoint
    assert session.query(Customer).count() == 1


def test_customer_upsert_failure_does_not_undo_sale(client, session, monkeypatch):
    headers = _headers()
    item = add_item('IMEI-10')

    def boom(*a, **k):
        raise RuntimeError('customers table locked')

    monkeypatch.setattr(inventory_service, 'upsert_customer', boom)
    resp = client.post(f'/api/inventory/{item.sr_no}/sell', json=SALE, headers=headers)
    assert resp.status_code == 200
    assert resp.get_json()['khatabookEntryId'] is not None
    session.refresh(item)
    assert item.status == 'SOLD'


def test_repeat_customer_merges_address(app_ctx, session):
    from jollybaba.services.customers import upsert_customer
    first = upsert_customer(session, 'Rahul  Verma', '98765-43210', 'MG Road')
    again = upsert_customer(session, 'rahul verma', '+9876543210', '')
    assert again.id == first.id
    assert again.address == 'MG Road'
    other = upsert_customer(session, 'Rahul Verma', '111')
    assert other.id != first.id
    assert upsert_customer(session, '   ', '111') is None


def test_reversing_one_item_of_a_multi_sale_unlinks_siblings(client, session):
    headers = _headers()
    first = add_item('MS-A')
    second = add_item('MS-B')
    resp = client.post('/api/inventory/sell-multiple', json=dict(SALE, srNos=[first.sr_no, second.sr_no]), headers=headers)
    entry_id = resp.get_json()['khatabookEntryId']
    assert entry_id

    resp = client.post(f'/api/inventory/{first.sr_no}/make-available', headers=headers)
    assert resp.get_json()['khatabookEntryDeleted'] is True
    assert session.get(KhatabookEntry, entry_id) is None
    session.refresh(second)
    assert second.status == 'SOLD'
    assert second.khatabook_entry_id is None


def test_ledger_delete_failure_does_not_block_reversal(client, session, monkeypatch, caplog):
    headers = _headers()
    item = add_item('IMEI-11')
    entry_id = client.post(f'/api/inventory/{item.sr_no}/sell', json=SALE, headers=headers).get_json()['khatabookEntryId']

    def boom(*a, **k):
        raise RuntimeError('ledger offline')

    monkeypatch.setattr(inventory_service, 'delete_entry', boom)
    with caplog.at_level(logging.WARNING):
        resp = client.post(f'/api/inventory/{item.sr_no}/make-available', headers=headers)
    assert resp.status_code == 200, resp.get_json()
    body = resp.get_json()
    assert body['khatabookEntryDeleted'] is False
    assert body['item']['status'] == 'AVAILABLE'
    for field in ('sell_date', 'sell_amount', 'customer_name', 'mobile_number', 'khatabook_entry_id'):
        assert body['item'][field] is None
    assert session.get(KhatabookEntry, entry_id) is not None
    assert any(r.levelno == logging.WARNING and 'khatabook delete on sale reversal' in r.getMessage()
               for r in caplog.records)


@pytest.mark.parametrize('amount', ['nan', 'inf', '-Infinity', '1e400'])
def test_non_finite_sell_amount_counts_as_zero(client, session, amount):
    headers = _headers()
    item = add_item('NF-1')
    resp = client.post(f'/api/inventory/{item.sr_no}/sell', json=dict(SALE, sellAmount=amount), headers=headers)
    assert resp.status_code == 200
    assert resp.get_json()['khatabookEntryId'] is None
    session.refresh(item)
    assert item.status == 'SOLD'
    assert item.sell_amount == 0.0
    listed = client.get('/api/inventory', headers=headers)
    assert b'NaN' not in listed.data and b'Infinity' not in listed.data
    assert listed.get_json()['items'][0]['sell_amount'] == 0.0
