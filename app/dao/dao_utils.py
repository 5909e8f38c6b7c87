from functools import wraps

from app import db


def transactional(func):
    @wraps(func)
    def commit_or_rollback(*args, **kwargs):
        try:
            res = func(*args, **kwargs)
            db.session.commit()
            return res
        except Exception:
            db.session.rollback()
            raise

    return commit_or_rollback
