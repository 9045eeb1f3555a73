import structlog
from flask import current_app

from .errors import (
    Forbidden,
    InvalidTransition,
    NotFound,
    SlotUnavailable,
    ValidationError,
    returns_result,
)
from .guard import require_role
from .models import Appointment, AppointmentStatus, Role
from .profiles import get_doctor, get_patient, own_doctor_profile, own_patient_profile, resolve_doctor_fee
from .validators import parse_date, parse_time

logger = structlog.get_logger(__name__)

# pending ──► confirmed ──► completed
#    │            │
#    └──► cancelled ◄┘
# Re-applying the current status is a no-op.
TRANSITIONS = {
    AppointmentStatus.PENDING: frozenset({AppointmentStatus.CONFIRMED, AppointmentStatus.CANCELLED}),
    AppointmentStatus.CONFIRMED: frozenset({AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED}),
    AppointmentStatus.COMPLETED: frozenset(),
    AppointmentStatus.CANCELLED: frozenset(),
}

TERMINAL_STATUSES = frozenset(s for s, successors in TRANSITIONS.items() if not successors)


def allowed_transitions(status):
    return TRANSITIONS[AppointmentStatus.parse(status)]


def is_terminal(status):
    return AppointmentStatus.parse(status) in TERMINAL_STATUSES


def _prevent_double_booking():
    try:
        return current_app.config.get('PREVENT_DOUBLE_BOOKING', True)
    except RuntimeError:
        # outside an app context
        return True


def _check_slot(store, doctor_id, appointment_date, appointment_time):
    clash = store.first(
        Appointment,
        Appointment.status != AppointmentStatus.CANCELLED,
        doctor_id=doctor_id,
        appointment_date=appointment_date,
        appointment_time=appointment_time,
    )
    if clash is not None:
        raise SlotUnavailable(
            detail=f"Doctor {doctor_id} already has an appointment on "
                   f"{appointment_date} at {appointment_time}"
        )


@returns_result
def book(store, session, doctor_id, patient_id, date, time, symptoms=None):
    """
    Create a pending appointment with the doctor's current fee frozen on it.
    Patients may only book for themselves.
    """
    require_role(session, Role.PATIENT, Role.DOCTOR, Role.ADMIN)

    appointment_date = parse_date(date, 'date')
    appointment_time = parse_time(time, 'time')

    fee = resolve_doctor_fee(store, doctor_id).unwrap()
    patient = get_patient(store, patient_id)
    if session.role is Role.PATIENT and own_patient_profile(store, session).id != patient.id:
        raise Forbidden(detail="Patients may only book appointments for themselves")

    if _prevent_double_booking():
        _check_slot(store, doctor_id, appointment_date, appointment_time)

    appointment = store.insert(
        Appointment,
        doctor_id=doctor_id,
        patient_id=patient.id,
        appointment_date=appointment_date,
        appointment_time=appointment_time,
        symptoms=symptoms or None,
        consultation_fee=fee,
        status=AppointmentStatus.PENDING,
    )
    logger.info(
        "appointment_booked",
        appointment_id=appointment.id,
        doctor_id=doctor_id,
        patient_id=patient.id,
    )
    return appointment


@returns_result
def transition(store, session, appointment_id, target_status, actor_role=None):
    """
    Move an appointment along the lifecycle graph.

    actor_role, when given, must match the session. Patients can never
    transition; doctors only their own appointments; admins any.
    """
    target = AppointmentStatus.parse(target_status)
    if target is None:
        raise ValidationError(detail=f"status: '{target_status}' is not a valid status")

    role = Role.parse(getattr(session, 'role', None))
    if actor_role is not None and Role.parse(actor_role) is not role:
        raise Forbidden(detail="Actor role does not match the session")
    if role not in (Role.DOCTOR, Role.ADMIN):
        raise Forbidden(detail="Only doctors and administrators can change an appointment's status")

    appointment = store.get(Appointment, appointment_id)
    if appointment is None:
        raise NotFound(message="Appointment not found", code="APPOINTMENT_NOT_FOUND")

    if role is Role.DOCTOR and own_doctor_profile(store, session).id != appointment.doctor_id:
        raise Forbidden(detail="Doctors may only manage their own appointments")

    current = appointment.status
    if current is target:
        return appointment
    if target not in TRANSITIONS[current]:
        raise InvalidTransition(
            detail=f"Cannot move appointment {appointment.id} from {current.value} to {target.value}"
        )

    store.update(appointment, status=target)
    logger.info(
        "appointment_transitioned",
        appointment_id=appointment.id,
        from_status=current.value,
        to_status=target.value,
        actor_role=role.value,
    )
    return appointment


def _chronological():
    return [Appointment.appointment_date, Appointment.appointment_time, Appointment.id]


@returns_result
def list_for_patient(store, patient_id):
    get_patient(store, patient_id)
    return store.select(Appointment, order_by=_chronological(), patient_id=patient_id)


@returns_result
def list_for_doctor(store, doctor_id):
    get_doctor(store, doctor_id)
    return store.select(Appointment, order_by=_chronological(), doctor_id=doctor_id)


@returns_result
def list_all(store, session):
    require_role(session, Role.ADMIN)
    return store.select(Appointment, order_by=_chronological())
