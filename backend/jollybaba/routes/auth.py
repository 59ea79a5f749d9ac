from flask import Blueprint, current_app
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from jollybaba import get_db
from jollybaba.models.technician import Technician
from jollybaba.decorators.auth import login_required, require_role
from jollybaba.errors import DuplicateEmail, InvalidCredentials, NotFound, ValidationError
from jollybaba.services.federated import federated_login
from jollybaba.services.policy import current_identity, issue_token
from jollybaba.utils.normalize import iso_timestamp
from jollybaba.utils.payload import json_body

auth_bp = Blueprint('auth', __name__)


def _safe_user(t: Technician):
    return {'id': t.id, 'name': t.name, 'email': t.email, 'role': t.role}


def _technician_json(t: Technician):
    return {
        'id': t.id,
        'name': t.name,
        'email': t.email,
        'phone': t.phone,
        'role': t.role,
        'created_at': iso_timestamp(t.created_at),
    }


@auth_bp.post('/auth/login')
def login():
    data = json_body()
    email = (data.get('email') or '').strip()
    password = data.get('password') or ''
    if not email or not password:
        raise ValidationError('Email and password required', error='Email and password required')
    session = get_db()
    user = session.execute(select(Technician).where(Technician.email == email)).scalar_one_or_none()
    # same response whether the account is missing, has no password, or the password is wrong
    if user is None or not user.verify_password(password):
        current_app.logger.info('Login failed for %s', email)
        raise InvalidCredentials('Invalid credentials')
    current_app.logger.info('Login success for %s (id=%s role=%s)', email, user.id, user.role)
    return {'token': issue_token(user), 'user': _safe_user(user)}


@auth_bp.post('/auth/google')
def google_login():
    data = json_body()
    credential = data.get('credential') or data.get('idToken') or data.get('id_token')
    session = get_db()
    user = federated_login(
        session,
        credential,
        current_app.extensions['google_verifier'],
        current_app.config.get('ADMIN_GOOGLE_EMAIL'),
        current_app.logger,
    )
    return {'token': issue_token(user), 'user': _safe_user(user)}


@auth_bp.get('/me')
@login_required
def me():
    identity = current_identity()
    if identity.id is None:
        raise ValidationError('Invalid token payload', error='Invalid token payload')
    user = get_db().get(Technician, identity.id)
    if user is None:
        raise NotFound('User not found', error='User not found')
    body = _safe_user(user)
    body['created_at'] = iso_timestamp(user.created_at)
    body['updated_at'] = iso_timestamp(user.updated_at)
    return body


@auth_bp.post('/technicians')
@require_role(Technician.ROLE_ADMIN)
def create_technician():
    data = json_body()
    name = (data.get('name') or '').strip()
    email = (data.get('email') or '').strip()
    password = data.get('password') or ''
    if not name or not email or not password:
        raise ValidationError('Name, email and password are required', error='Name, email and password are required')
    role = (data.get('role') or Technician.ROLE_TECHNICIAN).strip().lower()
    if role not in Technician.ALL_ROLES:
        raise ValidationError(f'role must be one of {", ".join(Technician.ALL_ROLES)}', error='INVALID_ROLE')
    session = get_db()
    if session.execute(select(Technician.id).where(Technician.email == email)).first():
        current_app.logger.info('Create technician refused, email in use: %s', email)
        raise DuplicateEmail('Email already in use')
    tech = Technician(name=name, email=email, phone=(data.get('phone') or None), role=role)
    tech.set_password(password)
    session.add(tech)
    try:
        session.commit()
    except IntegrityError:
        # lost a race with a concurrent insert of the same email
        session.rollback()
        current_app.logger.info('Create technician refused, email in use: %s', email)
        raise DuplicateEmail('Email already in use')
    current_app.logger.info('Technician created: id=%s email=%s role=%s', tech.id, tech.email, tech.role)
    return {'technician': _technician_json(tech)}, 201


@auth_bp.get('/technicians/public')
@login_required
def list_public_technicians():
    rows = get_db().execute(select(Technician).order_by(Technician.id.desc())).scalars().all()
    return {'technicians': [_safe_user(t) for t in rows]}


@auth_bp.get('/technicians')
@require_role(Technician.ROLE_ADMIN)
def list_technicians():
    rows = get_db().execute(select(Technician).order_by(Technician.id.desc())).scalars().all()
    return {'technicians': [_technician_json(t) for t in rows]}


@auth_bp.delete('/technicians/<int:technician_id>')
@require_role(Technician.ROLE_ADMIN)
def delete_technician(technician_id: int):
    session = get_db()
    tech = session.get(Technician, technician_id)
    if tech is None:
        raise NotFound('Technician not found', error='Technician not found')
    session.delete(tech)
    session.commit()
    current_app.logger.info('Technician deleted: id=%s', technician_id)
    return {'success': True}
