"""Google sign-in for the single configured admin account."""
from __future__ import annotations
from typing import Any, Callable, Dict, Optional
import secrets
from google.oauth2 import id_token
from google.auth.transport import requests as google_requests
from sqlalchemy import select
from jollybaba.models.technician import Technician
from jollybaba.errors import Forbidden, Unauthorized, ValidationError


class GoogleTokenVerifier:
    def __init__(self, client_id: Optional[str] = None):
        self.client_id = client_id or None

    def __call__(self, credential: str) -> Dict[str, Any]:
        return id_token.verify_oauth2_token(credential, google_requests.Request(), self.client_id)


def federated_login(session, credential: Optional[str], verifier: Callable[[str], Dict[str, Any]], admin_email: Optional[str], logger) -> Technician:
    """Verify an ID token and return the (provisioned) admin technician.

    Only ``admin_email`` may sign in this way; its account is created with a random
    placeholder password or promoted to admin when it already exists.
    """
    if not credential:
        raise ValidationError('Google credential required', error='CREDENTIAL_REQUIRED')
    try:
        claims = verifier(credential)
    except ValueError as exc:
        logger.info('Google login rejected: %s', exc)
        raise Unauthorized('Invalid Google token', error='Invalid credentials')
    email = (claims.get('email') or '').strip().lower()
    if not email:
        raise ValidationError('Google token carries no email', error='EMAIL_MISSING')
    if claims.get('email_verified') is False:
        raise Unauthorized('Google email not verified', error='Invalid credentials')
    allowed = (admin_email or '').strip().lower()
    if not allowed or email != allowed:
        logger.info('Google login refused for %s', email)
        raise Forbidden('Google sign-in is reserved for the administrator; use email and password login', error='Forbidden')

    tech = session.execute(select(Technician).where(Technician.email == email)).scalar_one_or_none()
    if tech is None:
        tech = Technician(name=claims.get('name') or email.split('@')[0], email=email, role=Technician.ROLE_ADMIN)
        tech.set_password(secrets.token_urlsafe(32))
        session.add(tech)
        logger.info('Provisioned admin account via Google sign-in: %s', email)
    elif tech.role != Technician.ROLE_ADMIN:
        tech.role = Technician.ROLE_ADMIN
        logger.info('Promoted %s to admin via Google sign-in', email)
    session.commit()
    return tech
