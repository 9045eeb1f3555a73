from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional

import structlog
from sqlalchemy import or_

from .errors import (
    DuplicateIdentity,
    InvalidCredential,
    NotFound,
    PartialFailure,
    StoreError,
    ValidationError,
    returns_result,
)
from .models import DoctorProfile, PatientProfile, Role, User
from .validators import parse_date, parse_int, parse_money, require

logger = structlog.get_logger(__name__)

PATIENT_REQUIRED_DETAILS = ('age', 'gender', 'blood_group')
MAX_AGE = 150
PROFILE_FIELDS = PATIENT_REQUIRED_DETAILS + (
    'date_of_birth', 'assigned_doctor_id', 'specialization', 'license_number', 'consultation_fee',
)


@dataclass(frozen=True)
class SessionUser:
    """The non-secret projection of a User kept for authorization."""
    TOKEN_KEY = 'medi_user'

    id: int
    username: str
    name: str
    role: Role
    email: Optional[str] = None

    @classmethod
    def from_user(cls, user):
        return cls(
            id=user.id,
            username=user.username,
            name=user.name,
            role=user.role,
            email=user.email,
        )

    @classmethod
    def from_token(cls, token):
        """Rebuild from a persisted token; None if absent or malformed."""
        if not isinstance(token, dict):
            return None
        role = Role.parse(token.get('role'))
        if role is None or token.get('id') is None or not token.get('username'):
            return None
        return cls(
            id=token['id'],
            username=token['username'],
            name=token.get('name') or '',
            role=role,
            email=token.get('email'),
        )

    def to_token(self):
        return {
            'id': self.id,
            'username': self.username,
            'name': self.name,
            'email': self.email,
            'role': self.role.value,
        }


class SessionManager:
    def __init__(self, store, token_store, unify_errors=False):
        self.store = store
        self.token_store = token_store
        self.unify_errors = unify_errors
        self._current = None

    @property
    def current(self):
        return self._current

    def restore(self):
        token = self.token_store.get(SessionUser.TOKEN_KEY)
        if token is None:
            self._current = None
            return None

        user = SessionUser.from_token(token)
        if user is None:
            logger.warning("session_token_discarded")
            self.token_store.pop(SessionUser.TOKEN_KEY, None)
        self._current = user
        return user

    @returns_result
    def login(self, identifier, secret):
        if not identifier or not secret:
            raise ValidationError(message="Missing credentials")

        user = self.store.first(
            User, or_(User.username == identifier, User.email == identifier)
        )
        if user is None:
            logger.info("login_failed", reason="unknown_identifier")
            if self.unify_errors:
                raise InvalidCredential()
            raise NotFound(message="User not found", code="USER_NOT_FOUND")

        if not user.check_password(secret):
            logger.info("login_failed", reason="bad_secret", user_id=user.id)
            if self.unify_errors:
                raise InvalidCredential()
            raise InvalidCredential(message="Invalid password")

        session = SessionUser.from_user(user)
        self.token_store[SessionUser.TOKEN_KEY] = session.to_token()
        self._current = session
        logger.info("login_succeeded", user_id=user.id, role=user.role.value)
        return session

    def logout(self):
        self.token_store.pop(SessionUser.TOKEN_KEY, None)
        if self._current is not None:
            logger.info("logout", user_id=self._current.id)
        self._current = None


@dataclass
class RegistrationInput:
    username: str
    secret: str
    name: str
    role: str
    email: Optional[str] = None
    profile_details: dict = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, data):
        details = data.get('profile_details') or data.get('patient_details') \
            or data.get('doctor_details')
        if not details:
            # form posts carry profile fields at the top level
            details = {key: data[key] for key in PROFILE_FIELDS if data.get(key) not in (None, '')}
        return cls(
            username=data.get('username'),
            secret=data.get('password') or data.get('secret'),
            name=data.get('name'),
            role=data.get('role'),
            email=data.get('email') or None,
            profile_details=dict(details),
        )


def _patient_profile_fields(store, details):
    missing = [key for key in PATIENT_REQUIRED_DETAILS if details.get(key) in (None, '')]
    if missing:
        raise ValidationError(
            message="Patient details are incomplete",
            detail=[f"{key}: This field is required." for key in missing],
        )

    fields = {
        'age': parse_int(details['age'], 'age', minimum=0, maximum=MAX_AGE),
        'gender': details['gender'],
        'blood_group': details['blood_group'],
        'date_of_birth': None,
        'assigned_doctor_id': None,
    }
    if details.get('date_of_birth'):
        fields['date_of_birth'] = parse_date(details['date_of_birth'], 'date_of_birth')

    doctor_id = details.get('assigned_doctor_id')
    if doctor_id:
        doctor_id = parse_int(doctor_id, 'assigned_doctor_id', minimum=1)
        if store.get(DoctorProfile, doctor_id) is None:
            raise NotFound(
                message="Doctor not found",
                detail=f"No doctor profile with id {doctor_id}",
                code="DOCTOR_NOT_FOUND",
            )
        fields['assigned_doctor_id'] = doctor_id
    return fields


def _doctor_profile_fields(details):
    return {
        'specialization': details.get('specialization') or None,
        'license_number': details.get('license_number') or None,
        'consultation_fee': parse_money(details.get('consultation_fee'), 'consultation_fee', default=Decimal('0.00')),
    }


@returns_result
def register(store, data):
    """
    Create a user and its role profile.

    The two inserts are not atomic: if the profile insert fails the user
    row stays and PartialFailure names it for a compensating delete.
    """
    if isinstance(data, dict):
        data = RegistrationInput.from_mapping(data)

    require(vars(data), 'username', 'secret', 'name', 'role')
    role = Role.parse(data.role)
    if role is None:
        raise ValidationError(detail=f"role: '{data.role}' is not a valid role")

    email = data.email or None
    criteria = [User.username == data.username]
    if email:
        criteria.append(User.email == email)
    if store.first(User, or_(*criteria)) is not None:
        logger.info("registration_rejected", reason="duplicate_identity")
        raise DuplicateIdentity()

    details = data.profile_details or {}
    profile_model = None
    profile_fields = None
    if role is Role.PATIENT:
        profile_model, profile_fields = PatientProfile, _patient_profile_fields(store, details)
    elif role is Role.DOCTOR:
        profile_model, profile_fields = DoctorProfile, _doctor_profile_fields(details)

    user = store.insert(
        User,
        username=data.username,
        email=email,
        password_hash=User.hash_password(data.secret),
        name=data.name,
        role=role,
    )
    logger.info("user_created", user_id=user.id, role=role.value)

    if profile_model is not None:
        try:
            store.insert(profile_model, user_id=user.id, **profile_fields)
        except StoreError as exc:
            logger.error("registration_partial_failure", user_id=user.id)
            raise PartialFailure(
                message="User created but profile could not be saved",
                detail=exc.detail,
                user_id=user.id,
            ) from exc

    return user
