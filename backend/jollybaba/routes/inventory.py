from __future__ import annotations
from flask import Blueprint, request, current_app, Response
from jollybaba import get_db
from jollybaba.decorators.auth import login_required
from jollybaba.errors import ValidationError
from jollybaba.services import inventory as inv
from jollybaba.services.customers import search_customers, search_vendors
from jollybaba.utils.csv_export import rows_to_csv
from jollybaba.utils.payload import json_body

inventory_bp = Blueprint('inventory', __name__)


def _sr_nos(raw):
    if not isinstance(raw, list):
        return []
    out = []
    for value in raw:
        try:
            out.append(int(value))
        except (TypeError, ValueError):
            continue
    return out


@inventory_bp.get('/customers/search')
@login_required
def customers_search():
    return {'customers': search_customers(get_db(), request.args.get('q'))}


@inventory_bp.get('/vendors/search')
@login_required
def vendors_search():
    return {'vendors': search_vendors(get_db(), request.args.get('q'))}


@inventory_bp.get('/inventory')
@login_required
def list_inventory():
    return inv.list_items(get_db(), request.args.to_dict())


@inventory_bp.post('/inventory')
@login_required
def create_inventory_item():
    session = get_db()
    item = inv.create_item(session, json_body())
    session.commit()
    return {'success': True, 'sr_no': item.sr_no}


@inventory_bp.post('/inventory/add-multiple')
@login_required
def add_multiple():
    session = get_db()
    items = inv.create_items(session, json_body())
    session.commit()
    current_app.logger.info('Inventory batch created: %d items', len(items))
    return {'success': True, 'created': len(items), 'sr_nos': [i.sr_no for i in items]}


@inventory_bp.post('/inventory/sell-multiple')
@login_required
def sell_multiple():
    data = json_body()
    sr_nos = _sr_nos(data.get('srNos'))
    if not sr_nos:
        raise ValidationError('No serial numbers provided', error='NO_SR_NOS_PROVIDED')
    session = get_db()
    result = inv.sell(session, sr_nos, data, split=True)
    session.commit()
    return {'success': True, 'updated': len(result.items), 'khatabookEntryId': result.khatabook_entry_id}


@inventory_bp.post('/inventory/<int:sr_no>/sell')
@login_required
def sell_one(sr_no: int):
    session = get_db()
    result = inv.sell(session, [sr_no], json_body(), split=False)
    session.commit()
    return {'success': True, 'khatabookEntryId': result.khatabook_entry_id}


@inventory_bp.post('/inventory/<int:sr_no>/make-available')
@login_required
def make_available(sr_no: int):
    session = get_db()
    result = inv.make_available(session, sr_no)
    session.commit()
    return {'success': True, 'item': inv.item_json(result.item), 'khatabookEntryDeleted': result.khatabook_entry_deleted}


@inventory_bp.route('/inventory/<int:sr_no>', methods=['PATCH', 'PUT'])
@login_required
def update_inventory_item(sr_no: int):
    session = get_db()
    inv.patch_item(session, sr_no, json_body())
    session.commit()
    return {'success': True}


@inventory_bp.post('/inventory/<int:sr_no>/update')
@login_required
def update_inventory_item_post(sr_no: int):
    return update_inventory_item(sr_no)


@inventory_bp.patch('/inventory/<int:sr_no>/remarks')
@login_required
def update_remarks(sr_no: int):
    session = get_db()
    inv.set_remarks(session, sr_no, json_body().get('remarks'))
    session.commit()
    return {'success': True}


@inventory_bp.get('/inventory/export.csv')
@login_required
def export_inventory():
    rows = inv.export_rows(get_db(), request.args.to_dict())
    headers = list(rows[0].keys()) if rows else []
    return Response(
        rows_to_csv(rows, headers),
        mimetype='text/csv',
        headers={'Content-Disposition': 'attachment; filename="inventory_export.csv"'},
    )
