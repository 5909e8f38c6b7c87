import sqlalchemy as sa
from flask_sqlalchemy import SQLAlchemy as _SQLAlchemy
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass


class SQLAlchemy(_SQLAlchemy):
    """
    Subclass SQLAlchemy in order to override create_engine options.
    https://flask-sqlalchemy.palletsprojects.com/en/3.1.x/quickstart/#initialize-the-extension
    """

    def _apply_driver_defaults(
        self,
        options,
        app,
    ):
        super()._apply_driver_defaults(options, app)

        # statement_timeout is a postgres setting; the sqlite test database has no equivalent.
        if sa.engine.make_url(options['url']).get_backend_name() != 'postgresql':
            return

        if 'connect_args' not in options:
            options['connect_args'] = {}
        options['connect_args']['options'] = '-c statement_timeout={}'.format(
            int(app.config['SQLALCHEMY_STATEMENT_TIMEOUT']) * 1000
        )


db = SQLAlchemy(model_class=Base)
