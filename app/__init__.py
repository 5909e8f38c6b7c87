import logging
import os

from flask.logging import default_handler

from app.celery.celery import NotifyCelery
from app.db import db  # noqa: F401
from app.pii.pii_encryption import PiiEncryption
from app.pii.pii_log_filter import PiiLogFilter

notify_celery = NotifyCelery()


def create_app(application):
    from app.config import configs

    notify_environment = os.getenv('NOTIFY_ENVIRONMENT', 'development')
    application.config.from_object(configs[notify_environment])

    init_app_logging(application)
    db.init_app(application)
    notify_celery.init_app(application)

    # Fails fast on a missing or malformed FIELD_ENCRYPTION_KEY so PII is never stored unprotected.
    PiiEncryption.init_app(application)

    register_blueprint(application)
    register_commands(application)

    return application


def init_app_logging(application):
    application.logger.setLevel(logging.getLevelName(application.config['LOG_LEVEL']))

    if default_handler not in application.logger.handlers:
        application.logger.addHandler(default_handler)

    # Logger filters do not see records from child loggers (app.pii.*), so filter at the handlers.
    for handler in application.logger.handlers:
        if not any(isinstance(f, PiiLogFilter) for f in handler.filters):
            handler.addFilter(PiiLogFilter())


def register_blueprint(application):
    from app.merchant_application.rest import merchant_application_blueprint

    application.register_blueprint(merchant_application_blueprint)


def register_commands(application):
    from app.commands import setup_commands

    setup_commands(application)
