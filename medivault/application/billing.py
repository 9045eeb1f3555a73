from dataclasses import dataclass, field
from decimal import Decimal
from typing import List

import structlog

from .errors import Forbidden, ValidationError, returns_result
from .guard import require_role
from .models import Appointment, AppointmentStatus, Prescription, Role
from .profiles import get_doctor, get_patient, own_doctor_profile
from .validators import parse_int, parse_money, require

logger = structlog.get_logger(__name__)

ZERO = Decimal('0.00')


def prescription_cost(prescription):
    return Decimal(prescription.days) * Decimal(prescription.cost_per_day)


def _newest_first(model):
    return [model.created_at.desc(), model.id.desc()]


def _completed_appointments(store, patient_id):
    return store.select(
        Appointment,
        order_by=[Appointment.appointment_date.desc(), Appointment.id.desc()],
        patient_id=patient_id,
        status=AppointmentStatus.COMPLETED,
    )


def _medicine_cost(prescriptions):
    return sum((prescription_cost(p) for p in prescriptions), ZERO)


def _consultation_cost(appointments):
    return sum((Decimal(a.consultation_fee) for a in appointments), ZERO)


@returns_result
def patient_medicine_cost(store, patient_id):
    get_patient(store, patient_id)
    return _medicine_cost(store.select(Prescription, patient_id=patient_id))


@returns_result
def patient_consultation_cost(store, patient_id):
    get_patient(store, patient_id)
    return _consultation_cost(_completed_appointments(store, patient_id))


@returns_result
def patient_total_expense(store, patient_id):
    return (
        patient_medicine_cost(store, patient_id).unwrap()
        + patient_consultation_cost(store, patient_id).unwrap()
    )


@dataclass
class PrescriptionLine:
    prescription: Prescription
    total: Decimal


@dataclass
class ExpenseSummary:
    patient_id: int
    prescriptions: List[PrescriptionLine] = field(default_factory=list)
    appointments: List[Appointment] = field(default_factory=list)
    medicine_cost: Decimal = ZERO
    consultation_cost: Decimal = ZERO

    @property
    def total_expense(self):
        return self.medicine_cost + self.consultation_cost


@returns_result
def expense_summary(store, patient_id):
    """Itemised expenses: prescriptions newest first, completed visits latest first."""
    get_patient(store, patient_id)
    prescriptions = store.select(Prescription, order_by=_newest_first(Prescription), patient_id=patient_id)
    appointments = _completed_appointments(store, patient_id)
    return ExpenseSummary(
        patient_id=patient_id,
        prescriptions=[PrescriptionLine(p, prescription_cost(p)) for p in prescriptions],
        appointments=appointments,
        medicine_cost=_medicine_cost(prescriptions),
        consultation_cost=_consultation_cost(appointments),
    )


@returns_result
def prescribe(store, session, patient_id, medicine_name, dosage, frequency, days, cost_per_day,
              instructions=None, doctor_id=None):
    """
    Record a prescription. Doctors prescribe as themselves; an admin must
    name the doctor. The patient need not be on the doctor's roster.
    """
    require_role(session, Role.DOCTOR, Role.ADMIN)
    require(
        {'medicine_name': medicine_name, 'dosage': dosage, 'frequency': frequency},
        'medicine_name', 'dosage', 'frequency',
    )
    days = parse_int(days, 'days', minimum=1)
    cost_per_day = parse_money(cost_per_day, 'cost_per_day')

    if session.role is Role.DOCTOR:
        doctor = own_doctor_profile(store, session)
        if doctor_id is not None and doctor_id != doctor.id:
            raise Forbidden(detail="Doctors may only prescribe as themselves")
    else:
        if doctor_id is None:
            raise ValidationError(detail="doctor_id: This field is required.")
        doctor = get_doctor(store, doctor_id)
    patient = get_patient(store, patient_id)

    prescription = store.insert(
        Prescription,
        doctor_id=doctor.id,
        patient_id=patient.id,
        medicine_name=medicine_name,
        dosage=dosage,
        frequency=frequency,
        days=days,
        cost_per_day=cost_per_day,
        instructions=instructions or None,
    )
    logger.info("prescription_created", prescription_id=prescription.id, doctor_id=doctor.id,
                patient_id=patient.id)
    return prescription


@returns_result
def list_prescriptions_for_patient(store, patient_id):
    get_patient(store, patient_id)
    return store.select(Prescription, order_by=_newest_first(Prescription), patient_id=patient_id)


@returns_result
def list_prescriptions_for_doctor(store, doctor_id):
    get_doctor(store, doctor_id)
    return store.select(Prescription, order_by=_newest_first(Prescription), doctor_id=doctor_id)
