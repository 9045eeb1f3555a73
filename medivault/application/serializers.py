from .billing import prescription_cost


def money(value):
    return None if value is None else f"{value:.2f}"


def _iso(value):
    return value.isoformat() if value is not None else None


def user_to_dict(user):
    return {
        'id': user.id,
        'username': user.username,
        'name': user.name,
        'email': user.email,
        'role': user.role.value,
        'created_at': _iso(user.created_at),
    }


def session_to_dict(session):
    return session.to_token()


def doctor_to_dict(doctor):
    return {
        'id': doctor.id,
        'user_id': doctor.user_id,
        'name': doctor.name,
        'specialization': doctor.specialization,
        'license_number': doctor.license_number,
        'consultation_fee': money(doctor.consultation_fee),
    }


def patient_to_dict(patient):
    return {
        'id': patient.id,
        'user_id': patient.user_id,
        'name': patient.name,
        'age': patient.age,
        'gender': patient.gender,
        'blood_group': patient.blood_group,
        'date_of_birth': _iso(patient.date_of_birth),
        'assigned_doctor_id': patient.assigned_doctor_id,
    }


def appointment_to_dict(appointment):
    return {
        'id': appointment.id,
        'doctor_id': appointment.doctor_id,
        'doctor_name': appointment.doctor.name if appointment.doctor else None,
        'patient_id': appointment.patient_id,
        'patient_name': appointment.patient.name if appointment.patient else None,
        'appointment_date': _iso(appointment.appointment_date),
        'appointment_time': appointment.appointment_time,
        'symptoms': appointment.symptoms,
        'consultation_fee': money(appointment.consultation_fee),
        'status': appointment.status.value,
    }


def prescription_to_dict(prescription, total=None):
    return {
        'id': prescription.id,
        'doctor_id': prescription.doctor_id,
        'patient_id': prescription.patient_id,
        'medicine_name': prescription.medicine_name,
        'dosage': prescription.dosage,
        'frequency': prescription.frequency,
        'days': prescription.days,
        'cost_per_day': money(prescription.cost_per_day),
        'total_cost': money(total if total is not None else prescription_cost(prescription)),
        'instructions': prescription.instructions,
        'created_at': _iso(prescription.created_at),
    }


def report_to_dict(report):
    return {
        'id': report.id,
        'doctor_id': report.doctor_id,
        'patient_id': report.patient_id,
        'report_name': report.report_name,
        'report_type': report.report_type,
        'test_date': _iso(report.test_date),
        'description': report.description,
        'file_url': report.file_url,
        'file_name': report.file_name,
        'file_size': report.file_size,
        'created_at': _iso(report.created_at),
    }


def expense_summary_to_dict(summary):
    return {
        'patient_id': summary.patient_id,
        'prescriptions': [prescription_to_dict(line.prescription, line.total) for line in summary.prescriptions],
        'appointments': [appointment_to_dict(a) for a in summary.appointments],
        'medicine_cost': money(summary.medicine_cost),
        'consultation_cost': money(summary.consultation_cost),
        'total_expense': money(summary.total_expense),
    }
