import os


class Config(object):
    NOTIFY_ENVIRONMENT = os.getenv('NOTIFY_ENVIRONMENT', 'development')
    NOTIFY_APP_NAME = 'secure2send-api'

    # 64 hex characters (256 bits). Generate with `flask generate-field-encryption-key`.
    FIELD_ENCRYPTION_KEY = os.getenv('FIELD_ENCRYPTION_KEY')
    PII_VALIDATE_KEY_AT_STARTUP = os.getenv('PII_VALIDATE_KEY_AT_STARTUP', 'True') == 'True'
    PII_MIGRATION_BATCH_SIZE = int(os.getenv('PII_MIGRATION_BATCH_SIZE', 50))

    SQLALCHEMY_DATABASE_URI = os.getenv('SQLALCHEMY_DATABASE_URI', 'postgresql://localhost/secure2send')
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_STATEMENT_TIMEOUT = int(os.getenv('SQLALCHEMY_STATEMENT_TIMEOUT', 1200))

    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')

    CELERY_SETTINGS = {
        'broker_url': os.getenv('BROKER_URL', 'redis://localhost:6379/0'),
        'task_default_queue': 'default',
        'imports': ('app.celery.encrypt_pii_tasks',),
        'task_routes': {
            'encrypt-existing-pii': {'queue': 'pii-migration'},
        },
        'worker_max_tasks_per_child': 20,
        'timezone': 'UTC',
    }


class Development(Config):
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'DEBUG')


class Test(Config):
    NOTIFY_ENVIRONMENT = 'test'
    SQLALCHEMY_DATABASE_URI = os.getenv('SQLALCHEMY_DATABASE_URI_TEST', 'sqlite://')
    # Fixed key for tests only, never a real secret.
    FIELD_ENCRYPTION_KEY = '000102030405060708090a0b0c0d0e0f101112131415161718191a1b1c1d1e1f'
    PII_MIGRATION_BATCH_SIZE = 2
    LOG_LEVEL = 'DEBUG'

    CELERY_SETTINGS = {
        **Config.CELERY_SETTINGS,
        'broker_url': 'memory://',
        'task_always_eager': True,
    }


class Production(Config):
    PII_VALIDATE_KEY_AT_STARTUP = True


configs = {
    'development': Development,
    'test': Test,
    'production': Production,
}
