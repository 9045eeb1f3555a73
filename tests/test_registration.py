"""
test_registration.py: user + profile creation
"""
from decimal import Decimal

import pytest

from medivault.application.auth import RegistrationInput, register
from medivault.application.errors import (
    DuplicateIdentity,
    NotFound,
    PartialFailure,
    StoreError,
    ValidationError,
)
from medivault.application.models import DoctorProfile, PatientProfile, Role, User


def alice(**overrides):
    data = dict(
        username='alice',
        secret='pw123',
        name='Alice Smith',
        role='patient',
        profile_details={'age': 30, 'gender': 'Female', 'blood_group': 'O+'},
    )
    data.update(overrides)
    return RegistrationInput(**data)


def test_register_patient_creates_user_and_profile(store):
    result = register(store, alice())

    assert result.ok
    user = result.value
    assert user.role is Role.PATIENT
    profile = store.first(PatientProfile, user_id=user.id)
    assert profile.age == 30
    assert profile.gender == 'Female'
    assert profile.blood_group == 'O+'
    assert profile.assigned_doctor_id is None
    assert store.first(DoctorProfile, user_id=user.id) is None


def test_second_alice_is_duplicate(store):
    assert register(store, alice()).ok

    result = register(store, alice(name='Another Alice', secret='other'))

    assert isinstance(result.error, DuplicateIdentity)
    assert len(store.select(User, username='alice')) == 1


def test_duplicate_email_is_rejected(store):
    register(store, alice(email='a@example.com'))

    result = register(store, alice(username='alice2', email='a@example.com'))
    assert isinstance(result.error, DuplicateIdentity)


def test_users_without_email_do_not_collide(store):
    assert register(store, alice()).ok
    assert register(store, alice(username='alice2')).ok


@pytest.mark.parametrize('missing', ['username', 'secret', 'name', 'role'])
def test_required_fields(store, missing):
    result = register(store, alice(**{missing: ''}))

    assert isinstance(result.error, ValidationError)
    assert any(d.startswith(missing) for d in result.error.detail)
    assert store.select(User) == []


@pytest.mark.parametrize('missing', ['age', 'gender', 'blood_group'])
def test_patient_details_required(store, missing):
    details = {'age': 30, 'gender': 'Female', 'blood_group': 'O+'}
    del details[missing]

    result = register(store, alice(profile_details=details))

    assert isinstance(result.error, ValidationError)
    assert store.select(User) == []


def test_unknown_role(store):
    result = register(store, alice(role='nurse'))
    assert isinstance(result.error, ValidationError)


def test_negative_age(store):
    result = register(store, alice(profile_details={'age': -1, 'gender': 'F', 'blood_group': 'O+'}))
    assert isinstance(result.error, ValidationError)


def test_register_doctor_with_fee(store):
    result = register(store, RegistrationInput(
        username='dr.grey', secret='pw', name='Meredith Grey', role='doctor',
        profile_details={'specialization': 'Surgery', 'consultation_fee': '99.5'},
    ))

    doctor = store.first(DoctorProfile, user_id=result.value.id)
    assert doctor.specialization == 'Surgery'
    assert doctor.consultation_fee == Decimal('99.50')


def test_doctor_fee_defaults_to_zero(store):
    result = register(store, RegistrationInput(username='dr.x', secret='pw', name='X', role='doctor'))
    assert store.first(DoctorProfile, user_id=result.value.id).consultation_fee == Decimal('0')


def test_negative_doctor_fee_rejected(store):
    result = register(store, RegistrationInput(
        username='dr.x', secret='pw', name='X', role='doctor',
        profile_details={'consultation_fee': -10},
    ))
    assert isinstance(result.error, ValidationError)


def test_admin_gets_no_profile(store):
    user = register(store, RegistrationInput(username='root', secret='pw', name='Root', role='admin')).value
    assert store.first(DoctorProfile, user_id=user.id) is None
    assert store.first(PatientProfile, user_id=user.id) is None


def test_assigned_doctor_must_exist(store):
    result = register(store, alice(
        profile_details={'age': 30, 'gender': 'F', 'blood_group': 'O+', 'assigned_doctor_id': 999},
    ))
    assert isinstance(result.error, NotFound)
    assert store.select(User) == []


def test_register_accepts_plain_mapping(store, doctor):
    result = register(store, {
        'username': 'carol',
        'password': 'pw',
        'name': 'Carol',
        'role': 'patient',
        'patient_details': {'age': 51, 'gender': 'Female', 'blood_group': 'B+',
                            'assigned_doctor_id': doctor.id},
    })
    assert result.ok
    assert result.value.patient_profile.assigned_doctor_id == doctor.id


def test_profile_failure_reports_orphan_user(store, monkeypatch):
    """Profile insert fails after the user row: PartialFailure names the user, no rollback."""
    real_insert = store.insert

    def flaky_insert(model, **fields):
        if model is PatientProfile:
            raise StoreError(detail="insert on patients failed")
        return real_insert(model, **fields)

    monkeypatch.setattr(store, 'insert', flaky_insert)

    result = register(store, alice())

    assert isinstance(result.error, PartialFailure)
    orphan = store.get(User, result.error.user_id)
    assert orphan is not None
    assert orphan.username == 'alice'
    assert result.error.to_dict()['user_id'] == orphan.id


def test_duplicate_is_reported_before_profile_checks(store):
    assert register(store, alice()).ok

    result = register(store, alice(profile_details={}))

    assert isinstance(result.error, DuplicateIdentity)


@pytest.mark.parametrize('details', [
    {'age': 10 ** 30, 'gender': 'F', 'blood_group': 'O+'},
    {'age': 151, 'gender': 'F', 'blood_group': 'O+'},
    {'age': float('inf'), 'gender': 'F', 'blood_group': 'O+'},
])
def test_out_of_range_age(store, details):
    result = register(store, alice(profile_details=details))

    assert isinstance(result.error, ValidationError)
    assert store.select(User) == []


@pytest.mark.parametrize('fee', ['1e30', '100000000', '99999999.995'])
def test_oversized_doctor_fee(store, fee):
    result = register(store, {
        'username': 'dr.x', 'password': 'pw', 'name': 'X', 'role': 'doctor',
        'profile_details': {'consultation_fee': fee},
    })

    assert isinstance(result.error, ValidationError)
    assert store.select(User) == []


def test_flat_form_fields_fill_profile(store, doctor):
    result = register(store, {
        'username': 'carol', 'password': 'pw', 'name': 'Carol', 'role': 'patient',
        'age': '51', 'gender': 'Female', 'blood_group': 'B+', 'assigned_doctor_id': str(doctor.id),
    })

    profile = result.value.patient_profile
    assert profile.age == 51
    assert profile.blood_group == 'B+'
    assert profile.assigned_doctor_id == doctor.id
