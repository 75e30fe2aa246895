"""
Gunicorn configuration for the CareLoop API.

    gunicorn careloop.main:app -c gunicorn.conf.py

Env vars that override defaults:
  PORT     — TCP port to bind (default: 8000)
  WORKERS  — number of worker processes (default: 2)

Workers share nothing in memory; event dedup and exactly-once completion
are enforced by the database, so any worker count is safe.
"""
import os

bind = f"0.0.0.0:{os.environ.get('PORT', '8000')}"

workers = int(os.environ.get("WORKERS", "2"))

# Uvicorn's ASGI event loop inside Gunicorn's process manager.
worker_class = "uvicorn.workers.UvicornWorker"

keepalive = 5

# Batch runs (/scheduling/run for a large household) can take a while.
timeout = 120

# stdout only; app logs share the same stream (careloop.core.logging).
loglevel = os.environ.get("LOG_LEVEL", "info").lower()
accesslog = "-"
errorlog = "-"
access_log_format = '%(h)s "%(r)s" %(s)s %(b)sB %(D)sµs'

graceful_timeout = 30
