"""
Gunicorn configuration for the Aletheia API.

Env vars that override defaults:
  PORT     — TCP port to bind (set by the hosting platform)
  WORKERS  — number of worker processes (default: 2)
"""
import os

bind = f"0.0.0.0:{os.environ.get('PORT', '8000')}"

# Oracle calls are synchronous and can take up to AI_TIMEOUT_SECONDS;
# raise WORKERS before raising the timeout.
workers = int(os.environ.get("WORKERS", "2"))

worker_class = "uvicorn.workers.UvicornWorker"

keepalive = 5

# Must exceed AI_TIMEOUT_SECONDS so a slow oracle call is not killed mid-request.
timeout = 90

loglevel = os.environ.get("LOG_LEVEL", "info").lower()
accesslog = "-"
errorlog = "-"
access_log_format = '%(h)s "%(r)s" %(s)s %(b)sB %(D)sµs'

graceful_timeout = 30
