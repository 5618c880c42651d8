"""
Gunicorn configuration for metaproxy production deployment

Run with: gunicorn -c gunicorn_config.py app:app
"""
import multiprocessing
import os

# Server socket
bind = f"0.0.0.0:{os.environ.get('PORT', '5000')}"
backlog = 2048

# Every request is an I/O-bound chain of origin and metadata fetches, so each
# gevent worker runs many of them cooperatively.
workers = multiprocessing.cpu_count() + 1
worker_class = 'gevent'
worker_connections = 1000  # Max concurrent connections per worker
# Streaming responses can outlive a short worker timeout
timeout = 300
keepalive = 5

# Logging
accesslog = '-'  # Log to stdout
errorlog = '-'   # Log to stderr
loglevel = os.environ.get('LOG_LEVEL', 'info').lower()
access_log_format = '%(h)s %(l)s %(u)s %(t)s "%(r)s" %(s)s %(b)s "%(f)s" "%(a)s" %(D)s'

# Process naming
proc_name = 'metaproxy'

# Server mechanics
daemon = False
pidfile = None
umask = 0
