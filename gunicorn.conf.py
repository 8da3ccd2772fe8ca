import multiprocessing
import os

wsgi_app = "qrservice:create_app()"
# Generation is CPU-bound (PNG encoding) between short DB calls
workers = int(os.environ.get("WEB_CONCURRENCY", (multiprocessing.cpu_count() * 2) + 1))
threads = 2
worker_class = "gthread"
preload_app = True
bind = os.environ.get("BIND", ":8000")
# Heroku/Render style proxy headers
forwarded_allow_ips = "*"
# Above the encoder timeout so requests fail with a 503 before the worker is killed
timeout = 60
keepalive = 75
accesslog = "-"
errorlog = "-"
loglevel = os.environ.get("LOG_LEVEL", "info").lower()
