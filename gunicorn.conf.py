"""Gunicorn configuration for production deployment."""
import os

# Server socket
bind = os.environ.get('GUNICORN_BIND', '0.0.0.0:5000')

# Sync workers: each publish or OAuth callback runs to completion in one request
workers = int(os.environ.get('GUNICORN_WORKERS', 4))
worker_class = 'sync'

# Must exceed MEDIA_STATUS_MAX_WAIT plus the provider calls around it
timeout = int(os.environ.get('GUNICORN_TIMEOUT', 420))
graceful_timeout = 30
keepalive = 5

# Restart workers after this many requests (prevents memory leaks)
max_requests = 1000
max_requests_jitter = 50

# Logging
errorlog = '-'  # stderr
accesslog = '-'  # stdout
loglevel = os.environ.get('GUNICORN_LOG_LEVEL', 'info')
access_log_format = '%(h)s %(l)s %(u)s %(t)s "%(r)s" %(s)s %(b)s %(D)s'

# Process naming
proc_name = 'social_connect'

# Server mechanics
daemon = False
pidfile = None
umask = 0
tmp_upload_dir = None
