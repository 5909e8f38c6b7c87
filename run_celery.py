#!/usr/bin/env python

"""
Celery worker entry point:

    celery -A run_celery.notify_celery worker --queues pii-migration
"""

from flask import Flask

# Imports out of order so FIELD_ENCRYPTION_KEY and the database settings are read from .env before config loads
from dotenv import load_dotenv

load_dotenv()

from app import notify_celery, create_app  # noqa E402, F401

application = Flask('app')
create_app(application)
application.app_context().push()
