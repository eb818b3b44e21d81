"""
Gunicorn configuration for the check-in tracker.

Env vars that override defaults:
  PORT     — TCP port to bind (default: 3001)
  WORKERS  — number of worker processes (default: 1)

Run with:  gunicorn -c gunicorn.conf.py checkin_tracker.main:app
"""
import os

bind = f"0.0.0.0:{os.environ.get('PORT', '3001')}"

# SQLite serializes writers on the file lock; one worker avoids needless
# lock contention. Raise WORKERS when running against Azure SQL.
workers = int(os.environ.get("WORKERS", "1"))

worker_class = "uvicorn.workers.UvicornWorker"

keepalive = 5

timeout = 120
graceful_timeout = 30

loglevel = os.environ.get("LOG_LEVEL", "info").lower()
accesslog = "-"
errorlog = "-"
access_log_format = '%(h)s "%(r)s" %(s)s %(b)sB %(D)sµs'
