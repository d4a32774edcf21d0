"""Gunicorn production configuration.

Run from the repository root: gunicorn -c gunicorn.conf.py
"""
import os

wsgi_app = "seller_review.main:app"
pythonpath = "backend"

bind = os.environ.get("BIND", "0.0.0.0:8000")
# The approval registry lives in process memory, so every worker holds its own
# copy loaded at startup. Keep a single worker unless records are re-read per request.
workers = int(os.environ.get("WEB_CONCURRENCY", 1))
worker_class = "uvicorn.workers.UvicornWorker"
timeout = 60
keepalive = 5
max_requests = 1000
max_requests_jitter = 100
accesslog = "-"
errorlog = "-"
loglevel = "info"
