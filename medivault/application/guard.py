import enum
from functools import wraps

from flask import redirect, url_for, session as cookie_session

from .auth import SessionUser
from .errors import Forbidden
from .models import Role


class Decision(enum.Enum):
    ALLOW = 'allow'
    REDIRECT_LOGIN = 'redirect_login'
    REDIRECT_ROLE_HOME = 'redirect_role_home'


ROLE_HOME = {
    Role.ADMIN: 'admin.dashboard',
    Role.DOCTOR: 'doctor.dashboard',
    Role.PATIENT: 'patient.dashboard',
}
LOGIN_ENDPOINT = 'auth.login'


def role_home(role):
    """Endpoint of the area a role lands on; unknown roles go back to login."""
    parsed = Role.parse(role)
    if parsed is None:
        return LOGIN_ENDPOINT
    return ROLE_HOME[parsed]


def authorize(session, required_role=None):
    if session is None:
        return Decision.REDIRECT_LOGIN
    if required_role is None:
        return Decision.ALLOW

    role = Role.parse(getattr(session, 'role', None))
    if role is None:
        return Decision.REDIRECT_LOGIN
    if role != Role.parse(required_role):
        return Decision.REDIRECT_ROLE_HOME
    return Decision.ALLOW


def require_role(session, *roles):
    """Raise Forbidden unless the session's role is one of roles."""
    if session is None:
        raise Forbidden(message="Login required")
    allowed = {Role.parse(r) for r in roles}
    if Role.parse(session.role) not in allowed:
        role = getattr(session.role, 'value', session.role)
        raise Forbidden(detail=f"role '{role}' may not perform this action")
    return session


# --- Helper: Role-Based Login Required ---
def login_required(role=None):
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            current = SessionUser.from_token(cookie_session.get(SessionUser.TOKEN_KEY))
            decision = authorize(current, role)
            if decision is Decision.REDIRECT_LOGIN:
                return redirect(url_for(LOGIN_ENDPOINT))
            if decision is Decision.REDIRECT_ROLE_HOME:
                return redirect(url_for(role_home(current.role)))
            return f(current, *args, **kwargs)
        return decorated_function
    return decorator
