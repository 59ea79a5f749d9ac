from __future__ import annotations
from sqlalchemy import select
from jollybaba.models.technician import Technician


def seed_dev_admin(session, config, logger) -> str:
    """Create or refresh the development admin account.

    Returns one of: 'skipped', 'created', 'password_updated', 'role_updated', 'unchanged'.
    The password itself is never logged.
    """
    email = (config.get('DEV_ADMIN_EMAIL') or '').strip()
    password = config.get('DEV_ADMIN_PASSWORD') or ''
    if not email or not password:
        logger.warning('Admin email or password is empty; skipping admin seeding')
        return 'skipped'
    admin = session.execute(
        select(Technician).where(Technician.email == email).with_for_update()
    ).scalar_one_or_none()
    if admin is None:
        admin = Technician(name='Administrator', email=email, role=Technician.ROLE_ADMIN)
        admin.set_password(password)
        session.add(admin)
        result = 'created'
        logger.info('Dev admin created: %s', email)
    elif not admin.verify_password(password):
        admin.set_password(password)
        result = 'password_updated'
        logger.info('Dev admin password updated for %s', email)
    elif admin.role != Technician.ROLE_ADMIN:
        admin.role = Technician.ROLE_ADMIN
        result = 'role_updated'
        logger.info('Dev admin role restored for %s', email)
    else:
        result = 'unchanged'
    session.commit()
    return result
