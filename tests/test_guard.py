from types import SimpleNamespace

import pytest

from medivault.application.auth import SessionUser
from medivault.application.errors import Forbidden
from medivault.application.guard import Decision, authorize, require_role, role_home
from medivault.application.models import Role


def session_for(role):
    return SessionUser(id=1, username='u', name='U', role=role)


@pytest.mark.parametrize('required', [None, Role.ADMIN, Role.DOCTOR, Role.PATIENT, 'patient'])
def test_no_session_redirects_to_login(required):
    assert authorize(None, required) is Decision.REDIRECT_LOGIN


@pytest.mark.parametrize('role', list(Role))
def test_any_session_allowed_without_requirement(role):
    assert authorize(session_for(role)) is Decision.ALLOW


@pytest.mark.parametrize('role', list(Role))
def test_matching_role_allowed(role):
    assert authorize(session_for(role), role) is Decision.ALLOW
    assert authorize(session_for(role), role.value) is Decision.ALLOW


def test_doctor_on_patient_area_goes_home():
    assert authorize(session_for(Role.DOCTOR), 'patient') is Decision.REDIRECT_ROLE_HOME


def test_every_mismatch_goes_home():
    for have in Role:
        for need in Role:
            if have is not need:
                assert authorize(session_for(have), need) is Decision.REDIRECT_ROLE_HOME


def test_unrecognised_role_redirects_to_login():
    stranger = SimpleNamespace(role='nurse')
    assert authorize(stranger, Role.ADMIN) is Decision.REDIRECT_LOGIN


def test_authorize_is_deterministic():
    s = session_for(Role.PATIENT)
    assert {authorize(s, Role.DOCTOR) for _ in range(10)} == {Decision.REDIRECT_ROLE_HOME}


def test_role_home():
    assert role_home(Role.ADMIN) == 'admin.dashboard'
    assert role_home('doctor') == 'doctor.dashboard'
    assert role_home(Role.PATIENT) == 'patient.dashboard'
    assert role_home('nurse') == 'auth.login'


def test_require_role():
    doctor = session_for(Role.DOCTOR)
    assert require_role(doctor, Role.DOCTOR, Role.ADMIN) is doctor

    with pytest.raises(Forbidden):
        require_role(doctor, Role.ADMIN)
    with pytest.raises(Forbidden):
        require_role(None, Role.PATIENT)
