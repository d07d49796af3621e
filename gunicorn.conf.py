"""
Gunicorn configuration for the journal analytics server.

Env vars that override defaults:
  PORT     — TCP port to bind (Railway sets this automatically)
  WORKERS  — number of worker processes (default: 2)

Every worker starts its own aggregator scheduler; the database run guard
lets only one of them run a cycle at a time. Set AGGREGATOR_ENABLED=false
on extra replicas to keep their logs quiet.
"""
import os

bind = f"0.0.0.0:{os.environ.get('PORT', '8000')}"

workers = int(os.environ.get("WORKERS", "2"))

# Uvicorn's ASGI loop inside Gunicorn's process manager; the lifespan hook
# starts the scheduler per worker.
worker_class = "uvicorn.workers.UvicornWorker"

keepalive = 5

# Requests never wait on a cycle (cycles run in a background thread), so the
# worker timeout only has to cover the slowest read endpoint.
timeout = 120

loglevel = os.environ.get("LOG_LEVEL", "info").lower()
accesslog = "-"
errorlog = "-"
access_log_format = '%(h)s "%(r)s" %(s)s %(b)sB %(D)sµs'

# Wait for in-flight requests and let the scheduler task be cancelled cleanly.
graceful_timeout = 30
