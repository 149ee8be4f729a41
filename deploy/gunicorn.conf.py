"""Gunicorn configuration for the Classroom Tutor service.

Usage:
    gunicorn main:app -c deploy/gunicorn.conf.py

Open chat surfaces are held in process memory, so the service runs a
single async worker; one event loop handles many paced SSE streams.
"""

import os

# ─── Server socket ──────────────────────────────────────────────

bind = os.getenv("BIND", "0.0.0.0:5000")
backlog = 2048

# ─── Worker processes ───────────────────────────────────────────

workers = 1
worker_class = "uvicorn.workers.UvicornWorker"

# ─── Timeouts ───────────────────────────────────────────────────
#
# Completion calls are capped at 60s; paced delivery of a 3000-token reply
# at 20ms per character can add a few minutes on top.

timeout = 300
graceful_timeout = 60
keepalive = 120

# ─── Logging ────────────────────────────────────────────────────

accesslog = "-"
errorlog = "-"
loglevel = os.getenv("LOG_LEVEL", "info")
access_log_format = (
    '%(h)s %(l)s %(u)s %(t)s "%(r)s" %(s)s %(b)s "%(f)s" %(D)sμs'
)

proc_name = "classroom-tutor"


def on_starting(server):
    server.log.info("Starting Classroom Tutor — timeout=%ds, bind=%s", timeout, bind)
