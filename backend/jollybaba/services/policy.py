from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, Optional
from flask_jwt_extended import get_jwt, create_access_token
from jollybaba.errors import Forbidden

ADMIN_ROLES = ('admin', 'administrator')


@dataclass(frozen=True)
class Identity:
    """Caller identity carried in the access token claims."""
    id: Optional[int]
    email: Optional[str]
    name: Optional[str]
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role.strip().lower() in ADMIN_ROLES


def _as_int(value: Any) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def identity_from_claims(claims: Dict[str, Any]) -> Identity:
    return Identity(
        id=_as_int(claims.get('sub')),
        email=claims.get('email') or None,
        name=claims.get('name') or None,
        role=str(claims.get('role') or ''),
    )


def current_identity() -> Identity:
    return identity_from_claims(get_jwt())


def issue_token(technician) -> str:
    return create_access_token(identity=str(technician.id), additional_claims={
        'email': technician.email,
        'name': technician.name,
        'role': technician.role,
    })


def require_role(identity: Identity, role: str):
    if identity.role != role:
        raise Forbidden('Insufficient role', error='Forbidden')
