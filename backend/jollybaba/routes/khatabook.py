from __future__ import annotations
from flask import Blueprint, request, Response
from jollybaba import get_db
from jollybaba.decorators.auth import login_required
from jollybaba.errors import NotFound
from jollybaba.services import khatabook as kb
from jollybaba.services.khatabook_report import XLSX_MIMETYPE, export_filename, export_khatabook

khatabook_bp = Blueprint('khatabook', __name__)


def _body():
    data = request.get_json(silent=True)
    if isinstance(data, dict):
        return data
    return request.form.to_dict()


@khatabook_bp.get('/khatabook')
@login_required
def list_entries():
    session = get_db()
    sale_ids = kb.sale_linked_entry_ids(session)
    return {'entries': [kb.entry_json(e, sale_ids) for e in kb.list_entries(session)]}


@khatabook_bp.get('/khatabook/export')
@login_required
def export_entries():
    payload = export_khatabook(get_db())
    return Response(
        payload,
        mimetype=XLSX_MIMETYPE,
        headers={'Content-Disposition': f'attachment; filename="{export_filename()}"'},
    )


@khatabook_bp.post('/khatabook')
@login_required
def create_entry():
    session = get_db()
    entry = kb.create_entry(session, _body())
    session.commit()
    return {'entry': kb.entry_json(entry)}, 201


@khatabook_bp.patch('/khatabook/<int:entry_id>')
@login_required
def update_entry(entry_id: int):
    session = get_db()
    entry = kb.update_entry(session, entry_id, _body())
    session.commit()
    return {'entry': kb.entry_json(entry, kb.sale_linked_entry_ids(session))}


@khatabook_bp.delete('/khatabook/<int:entry_id>')
@login_required
def delete_entry(entry_id: int):
    session = get_db()
    if not kb.delete_entry(session, entry_id):
        raise NotFound('Entry not found', error='NOT_FOUND')
    session.commit()
    return {'success': True}
