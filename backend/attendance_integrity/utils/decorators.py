# backend/attendance_integrity/utils/decorators.py
"""Custom decorators for authorization."""
from functools import wraps
from flask import current_app, g, request
from flask_jwt_extended import get_jwt, get_jwt_identity
from attendance_integrity.utils.helpers import client_ip_address
from attendance_integrity.utils.permissions import CallerIdentity, Capability

def resolve_caller() -> CallerIdentity:
    """Build the caller identity from the verified JWT."""
    claims = get_jwt()
    role_claim = claims.get(current_app.config.get('JWT_ROLE_CLAIM', 'role'))

    return CallerIdentity.from_claims(
        get_jwt_identity(),
        role_claim,
        ip_address=client_ip_address(),
        user_agent=request.headers.get('User-Agent'),
        session_id=claims.get('jti')
    )

def capability_required(capability: Capability):
    """Decorator to require a capability. Stack below @jwt_required()."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            caller = resolve_caller()
            caller.require(capability)
            g.caller = caller
            return f(*args, **kwargs)
        return decorated_function
    return decorator

def caller_required(f):
    """Decorator that resolves the caller without requiring a capability."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        g.caller = resolve_caller()
        return f(*args, **kwargs)
    return decorated_function
