from flask import Blueprint, current_app, jsonify, redirect, request, session, url_for

from . import appointments as appointment_service
from . import billing, profiles, reports
from .auth import SessionManager, register as register_user
from .errors import DomainError
from .guard import login_required, role_home
from .models import Role
from .serializers import (
    appointment_to_dict,
    doctor_to_dict,
    expense_summary_to_dict,
    money,
    patient_to_dict,
    prescription_to_dict,
    report_to_dict,
    session_to_dict,
    user_to_dict,
)
from .store import RecordStore

# --- Blueprint Definitions ---
auth_bp = Blueprint('auth', __name__)
admin_bp = Blueprint('admin', __name__)
doctor_bp = Blueprint('doctor', __name__)
patient_bp = Blueprint('patient', __name__)


# --- Helpers ---
def _store():
    return RecordStore()


def _objects():
    return current_app.extensions['medivault_objects']


def _payload():
    return request.get_json(silent=True) or request.form.to_dict()


def respond(result, serialize=None, status=200):
    """Render a Result: its value on success, the error's dict and status on failure."""
    if not result.ok:
        return jsonify(result.error.to_dict()), result.error.http_status
    value = result.value
    if serialize is not None:
        value = [serialize(v) for v in value] if isinstance(value, list) else serialize(value)
    return jsonify(value), status


def handle_domain_error(exc):
    return jsonify(exc.to_dict()), exc.http_status


def _session_manager():
    return SessionManager(
        _store(), session, unify_errors=current_app.config.get('UNIFY_LOGIN_ERRORS', False)
    )


# =====================================================
# AUTH ROUTES
# =====================================================

@auth_bp.route('/login', methods=['GET', 'POST'])
def login():
    if request.method == 'GET':
        current = _session_manager().restore()
        if current is not None:
            return redirect(url_for('auth.dashboard'))
        return jsonify({'msg': 'Please log in.'}), 401

    data = _payload()
    identifier = data.get('identifier') or data.get('username') or data.get('email')
    result = _session_manager().login(identifier, data.get('password'))
    if not result.ok:
        return respond(result)
    return jsonify({'msg': 'Login successful', 'user': session_to_dict(result.value)})


@auth_bp.route('/logout', methods=['GET', 'POST'])
def logout():
    _session_manager().logout()
    return jsonify({'msg': 'You have been logged out.'})


@auth_bp.route('/register', methods=['POST'])
def register():
    data = _payload()
    # Self-registration never creates administrators.
    if data.get('role') == Role.ADMIN.value:
        return jsonify({
            'type': 'error', 'code': 'FORBIDDEN',
            'message': 'Administrators cannot self-register', 'detail': [],
        }), 403
    return respond(register_user(_store(), data), user_to_dict, status=201)


@auth_bp.route('/dashboard')
@login_required()
def dashboard(current):
    return redirect(url_for(role_home(current.role)))


@auth_bp.route('/me')
@login_required()
def me(current):
    return jsonify(session_to_dict(current))


# =====================================================
# ADMIN ROUTES
# =====================================================

@admin_bp.route('/dashboard')
@login_required(role=Role.ADMIN)
def dashboard(current):
    store = _store()
    return jsonify({
        'doctor_count': len(profiles.list_all_doctors(store).unwrap()),
        'patient_count': len(profiles.list_all_patients(store).unwrap()),
        'appointment_count': len(appointment_service.list_all(store, current).unwrap()),
    })


@admin_bp.route('/users', methods=['GET'])
@login_required(role=Role.ADMIN)
def list_users(current):
    return respond(profiles.list_users(_store(), current, request.args.get('role')), user_to_dict)


@admin_bp.route('/users', methods=['POST'])
@login_required(role=Role.ADMIN)
def create_user(current):
    return respond(register_user(_store(), _payload()), user_to_dict, status=201)


@admin_bp.route('/users/<int:user_id>', methods=['DELETE'])
@login_required(role=Role.ADMIN)
def delete_user(current, user_id):
    result = profiles.delete_user(_store(), _objects(), current, user_id)
    if not result.ok:
        return respond(result)
    return jsonify({'msg': 'User deleted', 'id': result.value})


@admin_bp.route('/doctors')
@login_required(role=Role.ADMIN)
def list_doctors(current):
    return respond(profiles.list_all_doctors(_store()), doctor_to_dict)


@admin_bp.route('/patients')
@login_required(role=Role.ADMIN)
def list_patients(current):
    return respond(profiles.list_all_patients(_store()), patient_to_dict)


@admin_bp.route('/patients/<int:patient_id>/assign', methods=['POST'])
@login_required(role=Role.ADMIN)
def assign_doctor(current, patient_id):
    doctor_id = _payload().get('doctor_id')
    return respond(profiles.assign_doctor(_store(), current, patient_id, doctor_id), patient_to_dict)


@admin_bp.route('/appointments')
@login_required(role=Role.ADMIN)
def list_appointments(current):
    return respond(appointment_service.list_all(_store(), current), appointment_to_dict)


@admin_bp.route('/appointments/<int:appointment_id>/status', methods=['POST'])
@login_required(role=Role.ADMIN)
def appointment_status(current, appointment_id):
    result = appointment_service.transition(_store(), current, appointment_id, _payload().get('status'))
    return respond(result, appointment_to_dict)


@admin_bp.route('/patients/<int:patient_id>/expenses')
@login_required(role=Role.ADMIN)
def patient_expenses(current, patient_id):
    return respond(billing.expense_summary(_store(), patient_id), expense_summary_to_dict)


# =====================================================
# DOCTOR ROUTES
# =====================================================

def _own_doctor(store, current):
    return profiles.doctor_for_user(store, current.id).unwrap()


@doctor_bp.route('/dashboard')
@login_required(role=Role.DOCTOR)
def dashboard(current):
    store = _store()
    doctor = _own_doctor(store, current)
    return jsonify({
        'doctor': doctor_to_dict(doctor),
        'my_patients': [patient_to_dict(p) for p in profiles.my_patients(store, doctor.id).unwrap()],
        'appointments': [
            appointment_to_dict(a) for a in appointment_service.list_for_doctor(store, doctor.id).unwrap()
        ],
    })


@doctor_bp.route('/patients')
@login_required(role=Role.DOCTOR)
def my_patients(current):
    store = _store()
    if request.args.get('scope') == 'all':
        return respond(profiles.list_all_patients(store), patient_to_dict)
    return respond(profiles.my_patients(store, _own_doctor(store, current).id), patient_to_dict)


@doctor_bp.route('/fee', methods=['PUT', 'POST'])
@login_required(role=Role.DOCTOR)
def update_fee(current):
    store = _store()
    doctor = _own_doctor(store, current)
    result = profiles.update_doctor_fee(store, current, doctor.id, _payload().get('consultation_fee'))
    return respond(result, doctor_to_dict)


@doctor_bp.route('/appointments')
@login_required(role=Role.DOCTOR)
def appointments(current):
    store = _store()
    return respond(appointment_service.list_for_doctor(store, _own_doctor(store, current).id), appointment_to_dict)


@doctor_bp.route('/appointments/<int:appointment_id>/status', methods=['POST'])
@login_required(role=Role.DOCTOR)
def appointment_status(current, appointment_id):
    result = appointment_service.transition(_store(), current, appointment_id, _payload().get('status'))
    return respond(result, appointment_to_dict)


@doctor_bp.route('/prescriptions', methods=['GET'])
@login_required(role=Role.DOCTOR)
def prescriptions(current):
    store = _store()
    doctor = _own_doctor(store, current)
    return respond(billing.list_prescriptions_for_doctor(store, doctor.id), prescription_to_dict)


@doctor_bp.route('/prescriptions', methods=['POST'])
@login_required(role=Role.DOCTOR)
def prescribe(current):
    data = _payload()
    result = billing.prescribe(
        _store(), current,
        patient_id=data.get('patient_id'),
        medicine_name=data.get('medicine_name'),
        dosage=data.get('dosage'),
        frequency=data.get('frequency'),
        days=data.get('days'),
        cost_per_day=data.get('cost_per_day'),
        instructions=data.get('instructions'),
    )
    return respond(result, prescription_to_dict, status=201)


@doctor_bp.route('/reports', methods=['GET'])
@login_required(role=Role.DOCTOR)
def test_reports(current):
    store = _store()
    return respond(reports.list_reports_for_doctor(store, _own_doctor(store, current).id), report_to_dict)


@doctor_bp.route('/reports', methods=['POST'])
@login_required(role=Role.DOCTOR)
def upload_report(current):
    upload = request.files.get('file')
    result = reports.upload_report(
        _store(), _objects(), current,
        patient_id=request.form.get('patient_id', type=int),
        report_name=request.form.get('report_name'),
        report_type=request.form.get('report_type'),
        test_date=request.form.get('test_date'),
        file_name=upload.filename if upload else None,
        data=upload.read() if upload else b'',
        description=request.form.get('description'),
    )
    return respond(result, report_to_dict, status=201)


@doctor_bp.route('/reports/<int:report_id>', methods=['DELETE'])
@login_required(role=Role.DOCTOR)
def delete_report(current, report_id):
    result = reports.delete_report(_store(), _objects(), current, report_id)
    if not result.ok:
        return respond(result)
    return jsonify({'msg': 'Report deleted successfully', 'id': result.value})


# =====================================================
# PATIENT ROUTES
# =====================================================

def _own_patient(store, current):
    return profiles.patient_for_user(store, current.id).unwrap()


@patient_bp.route('/dashboard')
@login_required(role=Role.PATIENT)
def dashboard(current):
    store = _store()
    patient = _own_patient(store, current)
    assigned = profiles.resolve_assigned_doctor(store, patient.id).unwrap()
    return jsonify({
        'patient': patient_to_dict(patient),
        'assigned_doctor': doctor_to_dict(assigned) if assigned else None,
        'appointments': [
            appointment_to_dict(a) for a in appointment_service.list_for_patient(store, patient.id).unwrap()
        ],
        'total_expense': money(billing.patient_total_expense(store, patient.id).unwrap()),
    })


@patient_bp.route('/doctors')
@login_required(role=Role.PATIENT)
def doctors(current):
    return respond(profiles.list_all_doctors(_store()), doctor_to_dict)


@patient_bp.route('/appointments', methods=['GET'])
@login_required(role=Role.PATIENT)
def appointments(current):
    store = _store()
    return respond(appointment_service.list_for_patient(store, _own_patient(store, current).id), appointment_to_dict)


@patient_bp.route('/appointments', methods=['POST'])
@login_required(role=Role.PATIENT)
def book_appointment(current):
    store = _store()
    data = _payload()
    result = appointment_service.book(
        store, current,
        doctor_id=data.get('doctor_id'),
        patient_id=_own_patient(store, current).id,
        date=data.get('appointment_date') or data.get('date'),
        time=data.get('appointment_time') or data.get('time'),
        symptoms=data.get('symptoms'),
    )
    return respond(result, appointment_to_dict, status=201)


@patient_bp.route('/prescriptions')
@login_required(role=Role.PATIENT)
def prescriptions(current):
    store = _store()
    return respond(
        billing.list_prescriptions_for_patient(store, _own_patient(store, current).id), prescription_to_dict
    )


@patient_bp.route('/expenses')
@login_required(role=Role.PATIENT)
def expenses(current):
    store = _store()
    return respond(billing.expense_summary(store, _own_patient(store, current).id), expense_summary_to_dict)


@patient_bp.route('/reports')
@login_required(role=Role.PATIENT)
def test_reports(current):
    store = _store()
    return respond(reports.list_reports_for_patient(store, _own_patient(store, current).id), report_to_dict)


def register_error_handlers(app):
    app.register_error_handler(DomainError, handle_domain_error)
