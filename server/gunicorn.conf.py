"""Gunicorn configuration for production deployment.

Reads settings from environment variables (same as config.py).

Usage:
    gunicorn -c gunicorn.conf.py
"""
import os
import multiprocessing

# Application factory; each worker builds its own app, caches and client
wsgi_app = "main:create_app()"

host = os.getenv("HOST", "0.0.0.0")
port = os.getenv("PORT", "3010")
workers_env = os.getenv("WORKERS", "0")  # 0 = auto-calculate
log_level = os.getenv("LOG_LEVEL", "INFO").lower()
debug = os.getenv("DEBUG", "false").lower() == "true"

bind = f"{host}:{port}"

# WORKERS=0 means auto (2 * cpu + 1), WORKERS=N means use N.
# Caches and the token slot are per worker process.
workers_count = int(workers_env)
workers = workers_count if workers_count > 0 else (multiprocessing.cpu_count() * 2 + 1)
worker_class = "uvicorn.workers.UvicornWorker"

# Must exceed request_timeout * max_retries plus backoff
timeout = int(os.getenv("GUNICORN_TIMEOUT", "120"))
graceful_timeout = int(os.getenv("GUNICORN_GRACEFUL_TIMEOUT", "30"))
keepalive = int(os.getenv("GUNICORN_KEEPALIVE", "5"))

accesslog = "-" if not debug else None
errorlog = "-"
loglevel = log_level

proc_name = "charter-gateway"

# Workers must not share the preloaded process state
preload_app = False
