import enum
from datetime import datetime, timezone
from decimal import Decimal

from flask_sqlalchemy import SQLAlchemy
from werkzeug.security import generate_password_hash, check_password_hash

# Create the database instance.
# This will be initialized with the Flask app in create_app()
db = SQLAlchemy()


class Role(enum.Enum):
    ADMIN = 'admin'
    DOCTOR = 'doctor'
    PATIENT = 'patient'

    @classmethod
    def parse(cls, value):
        """Return the Role for value, or None if it is not a known role."""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            return None


class AppointmentStatus(enum.Enum):
    PENDING = 'pending'
    CONFIRMED = 'confirmed'
    COMPLETED = 'completed'
    CANCELLED = 'cancelled'

    @classmethod
    def parse(cls, value):
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            return None


def _values(enum_cls):
    return [member.value for member in enum_cls]


def _utcnow():
    return datetime.now(timezone.utc)


class User(db.Model):
    """
    Login account for every actor.
    The role decides which profile table (if any) the user owns.
    """
    __tablename__ = 'users'
    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(80), unique=True, nullable=False)
    email = db.Column(db.String(120), unique=True)
    password_hash = db.Column(db.String(256), nullable=False)
    name = db.Column(db.String(120), nullable=False)
    role = db.Column(db.Enum(Role, values_callable=_values, name='role'), nullable=False)
    created_at = db.Column(db.DateTime, default=_utcnow, nullable=False)

    # --- Relationships ---
    # One-to-One: a doctor user owns one DoctorProfile, a patient user one PatientProfile.
    doctor_profile = db.relationship('DoctorProfile', back_populates='user', uselist=False)
    patient_profile = db.relationship('PatientProfile', back_populates='user', uselist=False)

    @staticmethod
    def hash_password(password):
        return generate_password_hash(password, method='pbkdf2:sha256')

    def set_password(self, password):
        self.password_hash = self.hash_password(password)

    def check_password(self, password):
        return check_password_hash(self.password_hash, password)

    def __repr__(self):
        return f'<User {self.username} ({self.role.value})>'


class DoctorProfile(db.Model):
    __tablename__ = 'doctors'
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), unique=True, nullable=False)
    specialization = db.Column(db.String(100))
    license_number = db.Column(db.String(50))
    consultation_fee = db.Column(db.Numeric(10, 2), nullable=False, default=Decimal('0.00'))
    created_at = db.Column(db.DateTime, default=_utcnow, nullable=False)

    # --- Relationships ---
    user = db.relationship('User', back_populates='doctor_profile')

    # One-to-Many: patients whose default worklist is this doctor.
    # Not an ownership relation, the patient rows survive the doctor.
    assigned_patients = db.relationship(
        'PatientProfile', back_populates='assigned_doctor', lazy=True
    )

    @property
    def name(self):
        return self.user.name if self.user else None

    def __repr__(self):
        return f'<DoctorProfile {self.id} fee={self.consultation_fee}>'


class PatientProfile(db.Model):
    """
    Demographics for a patient user.
    assigned_doctor_id only scopes the doctor's "my patients" list.
    """
    __tablename__ = 'patients'
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), unique=True, nullable=False)
    age = db.Column(db.Integer)
    gender = db.Column(db.String(20))
    blood_group = db.Column(db.String(5))
    date_of_birth = db.Column(db.Date)

    # --- Foreign Keys ---
    assigned_doctor_id = db.Column(
        db.Integer, db.ForeignKey('doctors.id', ondelete='SET NULL'), nullable=True
    )

    # --- Relationships ---
    user = db.relationship('User', back_populates='patient_profile')
    assigned_doctor = db.relationship('DoctorProfile', back_populates='assigned_patients')

    @property
    def name(self):
        return self.user.name if self.user else None

    def __repr__(self):
        return f'<PatientProfile {self.id}>'


class Appointment(db.Model):
    """
    A visit request between a patient and a doctor.
    consultation_fee is copied from the doctor when booked and never rewritten.
    """
    __tablename__ = 'appointments'
    id = db.Column(db.Integer, primary_key=True)
    appointment_date = db.Column(db.Date, nullable=False)
    appointment_time = db.Column(db.String(30), nullable=False)
    symptoms = db.Column(db.Text)
    consultation_fee = db.Column(db.Numeric(10, 2), nullable=False)
    status = db.Column(
        db.Enum(AppointmentStatus, values_callable=_values, name='appointment_status'),
        nullable=False,
        default=AppointmentStatus.PENDING,
    )
    created_at = db.Column(db.DateTime, default=_utcnow, nullable=False)

    # --- Foreign Keys ---
    doctor_id = db.Column(db.Integer, db.ForeignKey('doctors.id'), nullable=False)
    patient_id = db.Column(db.Integer, db.ForeignKey('patients.id'), nullable=False)

    # --- Relationships ---
    doctor = db.relationship('DoctorProfile')
    patient = db.relationship('PatientProfile')

    def __repr__(self):
        return f'<Appointment {self.appointment_date} {self.appointment_time} {self.status.value}>'


class Prescription(db.Model):
    __tablename__ = 'prescriptions'
    id = db.Column(db.Integer, primary_key=True)
    medicine_name = db.Column(db.String(120), nullable=False)
    dosage = db.Column(db.String(60), nullable=False)
    frequency = db.Column(db.String(60), nullable=False)
    days = db.Column(db.Integer, nullable=False)
    cost_per_day = db.Column(db.Numeric(10, 2), nullable=False)
    instructions = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=_utcnow, nullable=False)

    # --- Foreign Keys ---
    doctor_id = db.Column(db.Integer, db.ForeignKey('doctors.id'), nullable=False)
    patient_id = db.Column(db.Integer, db.ForeignKey('patients.id'), nullable=False)

    # --- Relationships ---
    doctor = db.relationship('DoctorProfile')
    patient = db.relationship('PatientProfile')

    def __repr__(self):
        return f'<Prescription {self.medicine_name} x{self.days}>'


class TestReport(db.Model):
    """
    Metadata for an uploaded lab/imaging report.
    The file bytes live in the object store under file_ref.
    """
    __tablename__ = 'test_reports'
    # Keep pytest from collecting this model as a test class.
    __test__ = False

    id = db.Column(db.Integer, primary_key=True)
    report_name = db.Column(db.String(120), nullable=False)
    report_type = db.Column(db.String(60), nullable=False)
    test_date = db.Column(db.Date, nullable=False)
    description = db.Column(db.Text)
    file_ref = db.Column(db.String(255), nullable=False)
    file_url = db.Column(db.String(512))
    file_name = db.Column(db.String(255))
    file_size = db.Column(db.Integer)
    created_at = db.Column(db.DateTime, default=_utcnow, nullable=False)

    # --- Foreign Keys ---
    doctor_id = db.Column(db.Integer, db.ForeignKey('doctors.id'), nullable=False)
    patient_id = db.Column(db.Integer, db.ForeignKey('patients.id'), nullable=False)

    # --- Relationships ---
    doctor = db.relationship('DoctorProfile')
    patient = db.relationship('PatientProfile')

    def __repr__(self):
        return f'<TestReport {self.report_name}>'
