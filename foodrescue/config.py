import os
from datetime import timedelta

from dotenv import load_dotenv

load_dotenv()


def _env_flag(name, default=False):
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY', 'change-me')
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        'DATABASE_URL', 'mysql+pymysql://root:@localhost/foodrescue'
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    JWT_SECRET_KEY = os.environ.get('JWT_SECRET_KEY', SECRET_KEY)
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(hours=int(os.environ.get('JWT_EXPIRES_HOURS', 24)))

    # Flask-Mail
    MAIL_SERVER = os.environ.get('MAIL_SERVER', 'smtp.gmail.com')
    MAIL_PORT = int(os.environ.get('MAIL_PORT', 587))
    MAIL_USE_TLS = _env_flag('MAIL_USE_TLS', True)
    MAIL_USERNAME = os.environ.get('MAIL_USERNAME')
    MAIL_PASSWORD = os.environ.get('MAIL_PASSWORD')
    MAIL_DEFAULT_SENDER = ('Food Rescue Hub', os.environ.get('MAIL_USERNAME', 'noreply@foodrescue.local'))
    MAIL_ENABLED = _env_flag('MAIL_ENABLED', True)
    FRONTEND_URL = os.environ.get('FRONTEND_URL', 'http://localhost:3000')

    # Image uploads
    UPLOAD_FOLDER = os.environ.get(
        'UPLOAD_FOLDER', os.path.join(os.path.dirname(os.path.abspath(__file__)), '..', 'uploads')
    )
    MAX_CONTENT_LENGTH = 5 * 1024 * 1024

    # Background sweeps (crontab syntax, server local time)
    SCHEDULER_ENABLED = _env_flag('SCHEDULER_ENABLED', True)
    SCHEDULER_API_ENABLED = False
    EXPIRY_SWEEP_CRON = os.environ.get('EXPIRY_SWEEP_CRON', '0 * * * *')
    REMINDER_CRON = os.environ.get('REMINDER_CRON', '0 12 * * *')
    STATS_CRON = os.environ.get('STATS_CRON', '0 0 * * sun')

    DEFAULT_SEARCH_RADIUS_KM = float(os.environ.get('DEFAULT_SEARCH_RADIUS_KM', 10))


class DevelopmentConfig(Config):
    DEBUG = True
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL', 'sqlite:///foodrescue.db')
    MAIL_ENABLED = _env_flag('MAIL_ENABLED', False)


class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    JWT_SECRET_KEY = 'testing-secret-key-with-enough-length'
    MAIL_ENABLED = False
    MAIL_SUPPRESS_SEND = True
    SCHEDULER_ENABLED = False


config_by_name = {
    'production': Config,
    'development': DevelopmentConfig,
    'testing': TestingConfig,
}
