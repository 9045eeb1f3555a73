import os

import structlog
from flask import Flask
from sqlalchemy import or_

from .config import get_config
from .controllers import admin_bp, auth_bp, doctor_bp, patient_bp, register_error_handlers
from .log import configure_logging
from .models import Role, User, db
from .storage import LocalObjectStore

logger = structlog.get_logger(__name__)


def create_app(config=None):
    app = Flask(__name__)
    app.config.from_object(config or get_config())

    configure_logging(app.config.get('LOG_LEVEL', 'INFO'))
    db.init_app(app)

    os.makedirs(app.config['UPLOAD_FOLDER'], exist_ok=True)
    app.extensions['medivault_objects'] = LocalObjectStore(
        app.config['UPLOAD_FOLDER'], app.config['REPORTS_BASE_URL']
    )

    # Register Blueprints
    app.register_blueprint(auth_bp, url_prefix='/')
    app.register_blueprint(admin_bp, url_prefix='/admin')
    app.register_blueprint(doctor_bp, url_prefix='/doctor')
    app.register_blueprint(patient_bp, url_prefix='/patient')
    register_error_handlers(app)

    return app


def setup_database(app):
    with app.app_context():
        db.create_all()
        # Create default admin if not exists
        admin = User.query.filter(or_(User.username == 'admin', User.role == Role.ADMIN)).first()
        if not admin:
            new_admin = User(username='admin', name='Administrator', role=Role.ADMIN)
            new_admin.set_password(app.config['DEFAULT_ADMIN_PASSWORD'])
            db.session.add(new_admin)
            db.session.commit()
            logger.info("default_admin_created", username='admin')
