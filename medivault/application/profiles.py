import structlog

from .errors import Forbidden, NotFound, ValidationError, returns_result
from .guard import require_role
from .models import (
    Appointment,
    DoctorProfile,
    PatientProfile,
    Prescription,
    Role,
    TestReport,
    User,
)
from .validators import parse_money

logger = structlog.get_logger(__name__)


def get_doctor(store, doctor_id):
    doctor = store.get(DoctorProfile, doctor_id)
    if doctor is None:
        raise NotFound(
            message="Doctor not found",
            detail=f"No doctor profile with id {doctor_id}",
            code="DOCTOR_NOT_FOUND",
        )
    return doctor


def get_patient(store, patient_id):
    patient = store.get(PatientProfile, patient_id)
    if patient is None:
        raise NotFound(
            message="Patient not found",
            detail=f"No patient profile with id {patient_id}",
            code="PATIENT_NOT_FOUND",
        )
    return patient


def own_doctor_profile(store, session):
    """The DoctorProfile behind a doctor session."""
    doctor = store.first(DoctorProfile, user_id=session.id)
    if doctor is None:
        raise NotFound(message="Doctor profile missing for this account", code="DOCTOR_NOT_FOUND")
    return doctor


def own_patient_profile(store, session):
    patient = store.first(PatientProfile, user_id=session.id)
    if patient is None:
        raise NotFound(message="Patient profile missing for this account", code="PATIENT_NOT_FOUND")
    return patient


@returns_result
def resolve_doctor_fee(store, doctor_id):
    return get_doctor(store, doctor_id).consultation_fee


@returns_result
def resolve_assigned_doctor(store, patient_id):
    patient = get_patient(store, patient_id)
    if patient.assigned_doctor_id is None:
        return None
    return store.get(DoctorProfile, patient.assigned_doctor_id)


@returns_result
def list_all_doctors(store):
    return store.select(DoctorProfile, order_by=DoctorProfile.id)


@returns_result
def list_all_patients(store):
    return store.select(PatientProfile, order_by=PatientProfile.id)


@returns_result
def my_patients(store, doctor_id):
    """Patients whose default worklist is doctor_id."""
    get_doctor(store, doctor_id)
    return store.select(PatientProfile, order_by=PatientProfile.id, assigned_doctor_id=doctor_id)


@returns_result
def doctor_for_user(store, user_id):
    doctor = store.first(DoctorProfile, user_id=user_id)
    if doctor is None:
        raise NotFound(message="Doctor profile not found", code="DOCTOR_NOT_FOUND")
    return doctor


@returns_result
def patient_for_user(store, user_id):
    patient = store.first(PatientProfile, user_id=user_id)
    if patient is None:
        raise NotFound(message="Patient profile not found", code="PATIENT_NOT_FOUND")
    return patient


@returns_result
def update_doctor_fee(store, session, doctor_id, fee):
    """
    Change a doctor's current fee. Appointments already booked keep the
    fee they were booked with.
    """
    require_role(session, Role.DOCTOR, Role.ADMIN)
    doctor = get_doctor(store, doctor_id)
    if session.role is Role.DOCTOR and doctor.user_id != session.id:
        raise Forbidden(detail="Doctors may only change their own fee")

    amount = parse_money(fee, 'consultation_fee')
    store.update(doctor, consultation_fee=amount)
    logger.info("doctor_fee_updated", doctor_id=doctor.id)
    return doctor


@returns_result
def assign_doctor(store, session, patient_id, doctor_id):
    require_role(session, Role.ADMIN)
    patient = get_patient(store, patient_id)
    if doctor_id is not None:
        get_doctor(store, doctor_id)
    store.update(patient, assigned_doctor_id=doctor_id)
    logger.info("patient_assigned", patient_id=patient.id, doctor_id=doctor_id)
    return patient


@returns_result
def list_users(store, session, role=None):
    require_role(session, Role.ADMIN)
    if role is None:
        return store.select(User, order_by=User.id)
    parsed = Role.parse(role)
    if parsed is None:
        raise ValidationError(detail=f"role: '{role}' is not a valid role")
    return store.select(User, order_by=User.id, role=parsed)


@returns_result
def delete_user(store, objects, session, user_id):
    """
    Admin-only removal of a user and the profile it owns.

    The profile's appointments, prescriptions and reports go with it and
    report files are released. Patients assigned to a deleted doctor are
    left unassigned.
    """
    require_role(session, Role.ADMIN)
    user = store.get(User, user_id)
    if user is None:
        raise NotFound(message="User not found", code="USER_NOT_FOUND")
    if user.id == session.id:
        raise Forbidden(detail="Administrators cannot delete their own account")
    role = user.role

    profile = user.doctor_profile or user.patient_profile
    if profile is not None:
        owner = {'doctor_id': profile.id} if isinstance(profile, DoctorProfile) else {'patient_id': profile.id}

        for report in store.select(TestReport, **owner):
            objects.remove(report.file_ref)
            store.delete(report)
        for row in store.select(Prescription, **owner) + store.select(Appointment, **owner):
            store.delete(row)

        if isinstance(profile, DoctorProfile):
            for patient in store.select(PatientProfile, assigned_doctor_id=profile.id):
                store.update(patient, assigned_doctor_id=None)
        store.delete(profile)

    store.delete(user)
    logger.info("user_deleted", user_id=user_id, role=role.value)
    return user_id
