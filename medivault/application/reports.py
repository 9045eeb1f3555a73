import os
import secrets
import time

import structlog
from flask import current_app
from werkzeug.utils import secure_filename

from .errors import Forbidden, NotFound, StoreError, ValidationError, returns_result
from .guard import require_role
from .models import Role, TestReport
from .profiles import get_doctor, get_patient, own_doctor_profile
from .validators import parse_date, require

logger = structlog.get_logger(__name__)

DEFAULT_MAX_REPORT_BYTES = 10 * 1024 * 1024


def _max_report_bytes():
    try:
        return current_app.config.get('MAX_REPORT_BYTES', DEFAULT_MAX_REPORT_BYTES)
    except RuntimeError:
        return DEFAULT_MAX_REPORT_BYTES


def _object_path(doctor_id, file_name):
    ext = os.path.splitext(secure_filename(file_name or ''))[1]
    return f"{doctor_id}/{int(time.time() * 1000)}_{secrets.token_hex(4)}{ext}"


@returns_result
def upload_report(store, objects, session, patient_id, report_name, report_type, test_date,
                  file_name, data, description=None):
    require_role(session, Role.DOCTOR)
    require(
        {'report_name': report_name, 'report_type': report_type, 'file_name': file_name},
        'report_name', 'report_type', 'file_name',
    )
    if not data:
        raise ValidationError(message="Please select a file")
    if len(data) > _max_report_bytes():
        raise ValidationError(message="File too large", detail="File size must be less than 10MB")
    test_date = parse_date(test_date, 'test_date')

    doctor = own_doctor_profile(store, session)
    patient = get_patient(store, patient_id)

    path = _object_path(doctor.id, file_name)
    url = objects.put(path, data)
    try:
        report = store.insert(
            TestReport,
            doctor_id=doctor.id,
            patient_id=patient.id,
            report_name=report_name,
            report_type=report_type,
            test_date=test_date,
            description=description or None,
            file_ref=path,
            file_url=url,
            file_name=file_name,
            file_size=len(data),
        )
    except StoreError:
        objects.remove(path)
        raise

    logger.info("report_uploaded", report_id=report.id, doctor_id=doctor.id, patient_id=patient.id)
    return report


@returns_result
def delete_report(store, objects, session, report_id):
    """Release the stored file, then drop the row."""
    require_role(session, Role.DOCTOR, Role.ADMIN)
    report = store.get(TestReport, report_id)
    if report is None:
        raise NotFound(message="Report not found", code="REPORT_NOT_FOUND")
    if session.role is Role.DOCTOR and own_doctor_profile(store, session).id != report.doctor_id:
        raise Forbidden(detail="Doctors may only delete their own reports")

    objects.remove(report.file_ref)
    store.delete(report)
    logger.info("report_deleted", report_id=report_id)
    return report_id


@returns_result
def list_reports_for_patient(store, patient_id):
    get_patient(store, patient_id)
    return store.select(
        TestReport, order_by=[TestReport.created_at.desc(), TestReport.id.desc()], patient_id=patient_id
    )


@returns_result
def list_reports_for_doctor(store, doctor_id):
    get_doctor(store, doctor_id)
    return store.select(
        TestReport, order_by=[TestReport.created_at.desc(), TestReport.id.desc()], doctor_id=doctor_id
    )
