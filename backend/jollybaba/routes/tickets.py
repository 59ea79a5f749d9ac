from __future__ import annotations
from flask import Blueprint, request, current_app
from sqlalchemy import select
from jollybaba import get_db
from jollybaba.decorators.auth import login_required
from jollybaba.errors import InternalError, NotFound, ValidationError
from jollybaba.config.pagination import normalize_pagination
from jollybaba.models.ticket import Ticket
from jollybaba.services.policy import current_identity
from jollybaba.services.storage import current_storage, public_url
from jollybaba.services.tickets import (
    TicketPatch, WorkIdentity, append_work_log, build_work_entry, new_ticket, ticket_json,
    update_ticket, uploaded_by_label, visible_tickets_query,
)
from jollybaba.utils.normalize import truthy_query, utcnow, iso_timestamp
from jollybaba.utils.payload import json_body, parse_notes, request_payload

tickets_bp = Blueprint('tickets', __name__)

MINE_ONLY_ARGS = ('mineOnly', 'onlyMine', 'assigned', 'mine', 'my')
PENDING_ONLY_ARGS = ('pendingOnly', 'onlyPending', 'pending')
# fields the multipart update form may change besides the uploaded photo
MULTIPART_UPDATE_FIELDS = ('status', 'notes')


def _first_arg(names):
    for name in names:
        value = request.args.get(name)
        if value is not None:
            return value
    return None


def _load_ticket(session, ticket_id: int, lock: bool = False) -> Ticket:
    stmt = select(Ticket).where(Ticket.id == ticket_id)
    if lock:
        stmt = stmt.with_for_update()
    t = session.execute(stmt).scalar_one_or_none()
    if not t:
        raise NotFound('Ticket not found', error='Ticket not found')
    return t


def _acting_worker(data) -> WorkIdentity:
    return WorkIdentity.from_payload(data) or WorkIdentity.from_identity(current_identity())


def _worked_at(data):
    return data.get('worked_at') or data.get('last_worked_at')


@tickets_bp.get('/tickets')
@login_required
def list_tickets():
    session = get_db()
    identity = current_identity()
    page, per_page, offset = normalize_pagination(request.args.get('page'), request.args.get('perPage'))
    mine_only = truthy_query(_first_arg(MINE_ONLY_ARGS))
    pending_only = truthy_query(_first_arg(PENDING_ONLY_ARGS))
    status_filter = 'pending' if pending_only else (request.args.get('status') or '').strip().lower()

    columns = current_app.extensions['schema'].columns.get(Ticket.__tablename__)
    stmt = visible_tickets_query(identity, mine_only, status_filter, columns)
    if stmt is None:
        rows = []
    else:
        rows = session.execute(stmt.limit(per_page).offset(offset)).scalars().all()
    return {'success': True, 'data': [ticket_json(t) for t in rows], 'page': page, 'perPage': per_page}


@tickets_bp.post('/tickets')
@login_required
def create_ticket():
    session = get_db()
    data = request_payload()
    t = new_ticket(data, current_identity())
    photo = request.files.get('photo')
    if photo and photo.filename:
        stored = current_storage().save(photo, 'photo')
        t.device_photo = public_url(stored.filename)
    session.add(t)
    session.commit()
    current_app.logger.info('Ticket created: id=%s', t.id)
    return {'success': True, 'ticket': ticket_json(t)}, 201


@tickets_bp.get('/tickets/<int:ticket_id>')
@login_required
def get_ticket(ticket_id: int):
    t = _load_ticket(get_db(), ticket_id)
    return {'success': True, 'ticket': ticket_json(t)}


@tickets_bp.patch('/tickets/<int:ticket_id>')
@login_required
def patch_ticket(ticket_id: int):
    session = get_db()
    data = json_body()
    patch = TicketPatch.from_payload(data)
    t = _load_ticket(session, ticket_id, lock=True)
    update_ticket(t, patch, _acting_worker(data), data.get('work_action'), data.get('work_notes'), _worked_at(data))
    session.commit()
    return {'success': True, 'ticket': ticket_json(t)}


@tickets_bp.post('/tickets/<int:ticket_id>/update')
@login_required
def multipart_update_ticket(ticket_id: int):
    session = get_db()
    data = request_payload()
    patch = TicketPatch.from_payload({k: data[k] for k in MULTIPART_UPDATE_FIELDS if k in data})
    t = _load_ticket(session, ticket_id, lock=True)
    upload = request.files.get('delivery_photo_2')
    if upload and upload.filename:
        stored = current_storage().save(upload, 'delivery_photo_2')
        patch.delivery_photo_2 = public_url(stored.filename)
        current_app.logger.info('Delivery photo stored for ticket %s: %s', ticket_id, stored.filename)
    action = data.get('work_action') or ('delivery_photo' if patch.delivery_photo_2 else None)
    update_ticket(t, patch, _acting_worker(data), action, data.get('work_notes'), _worked_at(data))
    session.commit()
    return {'success': True, 'ticket': ticket_json(t)}


@tickets_bp.post('/tickets/<ticket_id>/repaired-photo')
@login_required
def upload_repaired_photo(ticket_id):
    try:
        ticket_id = int(ticket_id)
    except ValueError:
        raise ValidationError('Invalid ticket id', error='Invalid ticket id')
    upload = request.files.get('repaired_photo')
    if not upload or not upload.filename:
        raise ValidationError('repaired_photo file is required', error='repaired_photo file is required')
    processor = current_app.extensions['photo_processor']
    if not processor.configured:
        raise InternalError('Repaired photo uploads are not configured', error='Repaired photo uploads are not configured')

    notes = None
    if 'notes' in request.form:
        raw = request.form.get('notes')
        notes = parse_notes(raw) if raw else None

    session = get_db()
    t = _load_ticket(session, ticket_id)
    # no ticket mutation happens before both derivatives are stored
    try:
        photo = processor.process(upload.stream, ticket_id)
    except Exception:
        current_app.logger.exception('Repaired photo processing failed for ticket %s', ticket_id)
        raise InternalError('Failed to process repaired photo', error='Failed to process repaired photo')

    identity = current_identity()
    now = utcnow()
    t.status = Ticket.STATUS_REPAIRED
    if notes is not None:
        t.notes = notes
    t.repaired_photo = photo.url
    if photo.thumb_url:
        t.repaired_photo_thumb = photo.thumb_url
    t.repaired_photo_uploaded_at = now
    uploaded_by = uploaded_by_label(identity)
    if uploaded_by:
        t.repaired_photo_uploaded_by = uploaded_by
    worker = WorkIdentity.from_identity(identity)
    if worker is not None:
        append_work_log(t, build_work_entry(worker, 'repaired_photo', now))
        t.last_worked_by_email = worker.email or t.last_worked_by_email
        t.last_worked_by_name = worker.name or t.last_worked_by_name
        if worker.id is not None:
            t.last_worked_by_id = worker.id
        t.last_worked_at = now
    session.commit()
    return {
        'success': True,
        'ticket': ticket_json(t),
        'repairedPhoto': {
            'url': t.repaired_photo,
            'thumbUrl': t.repaired_photo_thumb,
            'uploadedAt': iso_timestamp(t.repaired_photo_uploaded_at),
            'uploadedBy': t.repaired_photo_uploaded_by,
        },
    }
