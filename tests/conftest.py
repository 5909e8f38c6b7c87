import os

import pytest
from flask import Flask

# create_app selects its config class from this, so it is set before the app is built.
os.environ['NOTIFY_ENVIRONMENT'] = 'test'

from app import create_app, db  # noqa: E402


@pytest.fixture(scope='session')
def notify_api():
    app = Flask('app')
    create_app(app)

    ctx = app.app_context()
    ctx.push()

    yield app

    ctx.pop()


@pytest.fixture(scope='function')
def client(notify_api):
    with notify_api.test_request_context(), notify_api.test_client() as client:
        yield client


@pytest.fixture(scope='session')
def notify_db(notify_api):
    db.create_all()

    yield db

    db.session.remove()
    db.drop_all()


@pytest.fixture(scope='function')
def notify_db_session(notify_db):
    yield notify_db

    notify_db.session.rollback()
    for table in reversed(notify_db.metadata.sorted_tables):
        notify_db.session.execute(table.delete())
    notify_db.session.commit()
    notify_db.session.remove()
