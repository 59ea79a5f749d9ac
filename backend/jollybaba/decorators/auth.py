from functools import wraps
from flask_jwt_extended import verify_jwt_in_request
from jollybaba.services.policy import current_identity, require_role as assert_role


def login_required(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        verify_jwt_in_request()
        return fn(*args, **kwargs)
    return wrapper


def require_role(role: str):
    def outer(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            verify_jwt_in_request()
            assert_role(current_identity(), role)
            return fn(*args, **kwargs)
        return wrapper
    return outer
