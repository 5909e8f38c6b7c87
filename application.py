#!/usr/bin/env python

"""
This is the application entry point for gunicorn (``gunicorn -c gunicorn_config.py application``) and for the
``flask`` command line.  It creates the Flask application instance and calls create_app to configure this instance.
"""

import os

import sentry_sdk
from flask import Flask
from sentry_sdk.integrations.flask import FlaskIntegration
from werkzeug.middleware.proxy_fix import ProxyFix

# Imports out of order so FIELD_ENCRYPTION_KEY and the database settings are read from .env before config loads
from dotenv import load_dotenv

load_dotenv()

from app import create_app  # noqa E402

sentry_sdk.init(
    dsn=os.environ.get('SENTRY_URL', ''),
    integrations=[FlaskIntegration()],
    release=os.environ.get('GIT_COMMIT'),
    send_default_pii=False,
)

application = Flask('app')
application.wsgi_app = ProxyFix(application.wsgi_app)
create_app(application)
