"""
Pytest configuration and fixtures.

Every test gets a fresh app on an in-memory SQLite database with an
application context pushed, plus one admin, one doctor and one patient.
"""
import pytest

from medivault.application import create_app
from medivault.application.auth import RegistrationInput, SessionUser, register
from medivault.application.config import TestingConfig
from medivault.application.models import Role, User, db
from medivault.application.store import RecordStore


@pytest.fixture
def app(tmp_path):
    class Config(TestingConfig):
        UPLOAD_FOLDER = str(tmp_path / 'uploads')

    app = create_app(Config)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def store(app):
    return RecordStore()


@pytest.fixture
def objects(app):
    return app.extensions['medivault_objects']


# ============================================================
# Accounts already in the database
# ============================================================

@pytest.fixture
def admin_user(store):
    return store.insert(
        User,
        username='admin',
        name='Administrator',
        role=Role.ADMIN,
        password_hash=User.hash_password('admin'),
    )


@pytest.fixture
def doctor_user(store):
    return register(store, RegistrationInput(
        username='dr.house',
        secret='doctor123',
        name='Gregory House',
        role='doctor',
        email='house@example.com',
        profile_details={
            'specialization': 'Diagnostics',
            'license_number': 'LIC-001',
            'consultation_fee': '150.00',
        },
    )).unwrap()


@pytest.fixture
def other_doctor_user(store):
    return register(store, RegistrationInput(
        username='dr.wilson',
        secret='doctor456',
        name='James Wilson',
        role='doctor',
        profile_details={'specialization': 'Oncology', 'consultation_fee': 80},
    )).unwrap()


@pytest.fixture
def doctor(doctor_user):
    return doctor_user.doctor_profile


@pytest.fixture
def other_doctor(other_doctor_user):
    return other_doctor_user.doctor_profile


@pytest.fixture
def patient_user(store, doctor):
    return register(store, RegistrationInput(
        username='alice',
        secret='pw123',
        name='Alice Smith',
        role='patient',
        email='alice@example.com',
        profile_details={
            'age': 30,
            'gender': 'Female',
            'blood_group': 'O+',
            'assigned_doctor_id': doctor.id,
        },
    )).unwrap()


@pytest.fixture
def patient(patient_user):
    return patient_user.patient_profile


@pytest.fixture
def other_patient(store):
    user = register(store, RegistrationInput(
        username='bob',
        secret='pw456',
        name='Bob Jones',
        role='patient',
        profile_details={'age': 45, 'gender': 'Male', 'blood_group': 'A-'},
    )).unwrap()
    return user.patient_profile


@pytest.fixture
def admin_session(admin_user):
    return SessionUser.from_user(admin_user)


@pytest.fixture
def doctor_session(doctor_user):
    return SessionUser.from_user(doctor_user)


@pytest.fixture
def other_doctor_session(other_doctor_user):
    return SessionUser.from_user(other_doctor_user)


@pytest.fixture
def patient_session(patient_user):
    return SessionUser.from_user(patient_user)
