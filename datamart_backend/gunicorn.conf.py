# Gunicorn configuration for the DataMart Backend

import os

wsgi_app = 'app:create_app()'

# Server socket
port = os.environ.get('PORT', '5000')
bind = f"0.0.0.0:{port}"
backlog = 2048

# Worker processes
workers = int(os.environ.get('WEB_CONCURRENCY', '2'))
worker_class = 'sync'
max_requests = 1000
max_requests_jitter = 50

# Paystack verification can take up to PAYSTACK_TIMEOUT_SECONDS
timeout = int(os.environ.get('GUNICORN_TIMEOUT', '60'))
keepalive = 5
graceful_timeout = 30

# Build the app once in the master; workers share the Mongo client config
preload_app = True

# Logging
accesslog = '-'
errorlog = '-'
loglevel = os.environ.get('LOG_LEVEL', 'info').lower()
access_log_format = '%(h)s %(l)s %(u)s %(t)s "%(r)s" %(s)s %(b)s "%(f)s" "%(a)s" %(D)s'

proc_name = 'datamart-backend'


def when_ready(server):
    server.log.info("DataMart Backend ready on %s (%s workers)", server.address, workers)


def post_fork(server, worker):
    server.log.info("Worker spawned (pid: %s)", worker.pid)
