"""
Gunicorn configuration for SnapMarket production deployment.

Runs the ASGI app on Uvicorn workers. Draft requests hold a worker
coroutine for an upload plus one vision-model call, so the request
timeout follows GEMINI_TIMEOUT_SECONDS.

    gunicorn -c gunicorn.conf.py app.main:app
"""

import multiprocessing
import os

# ─── Server Socket ───────────────────────────────────────────
bind = f"0.0.0.0:{os.getenv('PORT', os.getenv('APP_PORT', '8000'))}"
forwarded_allow_ips = os.getenv("FORWARDED_ALLOW_IPS", "*")

# ─── Workers ─────────────────────────────────────────────────
worker_class = "uvicorn.workers.UvicornWorker"
workers = min(multiprocessing.cpu_count() * 2 + 1, int(os.getenv("WEB_CONCURRENCY", "4")))
threads = 1

# Async engines and Redis pools are created per worker
preload_app = False

max_requests = int(os.getenv("GUNICORN_MAX_REQUESTS", "1000"))
max_requests_jitter = 50

# ─── Timeouts ────────────────────────────────────────────────
_model_timeout = int(float(os.getenv("GEMINI_TIMEOUT_SECONDS", "60")))
timeout = int(os.getenv("GUNICORN_TIMEOUT", str(_model_timeout + 30)))
graceful_timeout = 30
keepalive = 5

# ─── Logging ─────────────────────────────────────────────────
# LoggingMiddleware writes the per-request line; Gunicorn only reports errors
accesslog = None
errorlog = "-"
loglevel = os.getenv("LOG_LEVEL", "info").lower()

# Multipart image uploads are spooled here
tmp_upload_dir = os.getenv("GUNICORN_TMP_UPLOAD_DIR")
