import os
import sys
import traceback

workers = int(os.getenv('GUNICORN_WORKERS', 4))
worker_class = 'gthread'
threads = 4
bind = '0.0.0.0:{}'.format(os.getenv('PORT', '6011'))
accesslog = '-'
# path only, no query string
access_log_format = '%(h)s "%(m)s %(U)s" %(s)s %(b)s %(L)s'


def on_starting(server):
    server.log.info('Starting secure2send API')


def worker_abort(worker):
    worker.log.info('worker received ABORT {}'.format(worker.pid))
    for threadId, stack in sys._current_frames().items():
        worker.log.error(''.join(traceback.format_stack(stack)))


def on_exit(server):
    server.log.info('Stopping secure2send API')


def worker_int(worker):
    worker.log.info('worker: received SIGINT {}'.format(worker.pid))
