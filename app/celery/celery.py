import logging
import time

from celery import Celery, Task
from celery.signals import task_postrun, task_prerun, worker_process_init, worker_shutting_down
from flask import current_app

from app.pii.pii_encryption import PiiEncryption


@worker_process_init.connect
def pool_worker_started(*args, **kwargs):
    # A forked pool worker inherits the parent's cipher; refuse to start if it cannot round trip.
    PiiEncryption.get_cipher().self_test()
    current_app.logger.info('Pool worker started with a usable field encryption key')


@worker_shutting_down.connect
def main_proc_graceful_stop(signal, how, exitcode, *args, **kwargs):
    current_app.logger.info('Worker stopping: signal = %s, how = %s, exitcode = %s', signal, how, exitcode)


def make_task(app):
    class AppContextTask(Task):
        abstract = True

        def _elapsed(self) -> float:
            started = getattr(self.request, 'started_at', None)
            return time.monotonic() - started if started is not None else 0.0

        def on_success(self, retval, task_id, args, kwargs):
            app.logger.info('celery task %s finished in %.4f seconds', self.name, self._elapsed())

        def on_retry(self, exc, task_id, args, kwargs, einfo):
            app.logger.warning(
                'celery task %s will retry (attempt %s): %s', self.name, self.request.retries + 1, type(exc).__name__
            )

        def on_failure(self, exc, task_id, args, kwargs, einfo):
            # task arguments are not logged, they may carry record data
            app.logger.error(
                'celery task %s failed after %.4f seconds: %s', self.name, self._elapsed(), type(exc).__name__
            )
            super().on_failure(exc, task_id, args, kwargs, einfo)

        def __call__(self, *args, **kwargs):
            # config, logger and db session all need the flask app context
            with app.app_context():
                self.request.started_at = time.monotonic()
                return super().__call__(*args, **kwargs)

    return AppContextTask


class NotifyCelery(Celery):
    def init_app(self, app):
        super().__init__(
            app.import_name,
            broker=app.config['CELERY_SETTINGS']['broker_url'],
            task_cls=make_task(app),
        )

        self.conf.update(app.config['CELERY_SETTINGS'])


class TaskIdFilter(logging.Filter):
    """Stamps every record logged while a task runs with that task's id."""

    def __init__(self, task_id: str):
        super().__init__(f'celery-{task_id}')
        self.task_id = task_id

    def filter(self, record):
        record.requestId = self.task_id
        return True


@task_prerun.connect
def add_task_id_to_logger(task_id, task, *args, **kwargs):
    current_app.logger.addFilter(TaskIdFilter(task_id))


@task_postrun.connect
def remove_task_id_from_logger(task_id, task, *args, **kwargs):
    for log_filter in list(current_app.logger.filters):
        if isinstance(log_filter, TaskIdFilter) and log_filter.task_id == task_id:
            current_app.logger.removeFilter(log_filter)
