import os

basedir = os.path.abspath(os.path.dirname(__file__))


def _flag(name, default):
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


class Config:
    """
    Base settings shared by every environment.
    Values can be overridden through environment variables.
    """
    SECRET_KEY = os.environ.get('SECRET_KEY', 'dev-secret-change-me')

    # Database Config
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        'DATABASE_URL', 'sqlite:///' + os.path.join(basedir, 'medivault.db')
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Test report files
    UPLOAD_FOLDER = os.environ.get('UPLOAD_FOLDER', os.path.join(basedir, 'uploads'))
    REPORTS_BASE_URL = os.environ.get('REPORTS_BASE_URL', '/files/test-reports')
    MAX_REPORT_BYTES = int(os.environ.get('MAX_REPORT_BYTES', str(10 * 1024 * 1024)))

    # Login failures: keep "user not found" and "invalid password" apart unless unified
    UNIFY_LOGIN_ERRORS = _flag('UNIFY_LOGIN_ERRORS', False)
    PREVENT_DOUBLE_BOOKING = _flag('PREVENT_DOUBLE_BOOKING', True)

    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
    DEFAULT_ADMIN_PASSWORD = os.environ.get('DEFAULT_ADMIN_PASSWORD', 'admin')


class DevelopmentConfig(Config):
    DEBUG = True
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'DEBUG')


class TestingConfig(Config):
    TESTING = True
    SECRET_KEY = 'testing'
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    UNIFY_LOGIN_ERRORS = False
    PREVENT_DOUBLE_BOOKING = True
    LOG_LEVEL = 'WARNING'


CONFIGS = {
    'development': DevelopmentConfig,
    'testing': TestingConfig,
    'production': Config,
}


def get_config(name=None):
    name = name or os.environ.get('MEDIVAULT_ENV', 'development')
    return CONFIGS.get(name, Config)
