"""
Gunicorn config: bind to 0.0.0.0 and PORT for Railway/Render.
One worker process: the change feed and transaction cache are process-local.
"""
import os

bind = "0.0.0.0:{}".format(os.environ.get("PORT", "8080"))
workers = 1
threads = int(os.environ.get("GUNICORN_THREADS", "4"))
timeout = 60
accesslog = "-"
loglevel = os.environ.get("LOG_LEVEL", "info")
