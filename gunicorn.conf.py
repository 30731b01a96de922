# =============================================================================
# Tourbook API - Gunicorn Production Configuration
#   gunicorn -c gunicorn.conf.py "run:app"
# =============================================================================
import os
import multiprocessing

bind = f"0.0.0.0:{os.environ.get('PORT', '8080')}"

# Threaded workers; each request gets its own database session
worker_class = "gthread"
workers = int(os.environ.get('WEB_CONCURRENCY', min(multiprocessing.cpu_count() * 2 + 1, 4)))
threads = int(os.environ.get('GUNICORN_THREADS', 4))

preload_app = True

# Timeouts
timeout = 60
graceful_timeout = 30
keepalive = 5

# Logging (application logs are JSON, see tourbook.configure_logging)
accesslog = "-"
errorlog = "-"
loglevel = os.environ.get("LOG_LEVEL", "info")

# Recycle workers periodically
max_requests = 1000
max_requests_jitter = 50

# Request size limits
limit_request_line = 8190
limit_request_fields = 100
limit_request_field_size = 8190

forwarded_allow_ips = os.environ.get('FORWARDED_ALLOW_IPS', '127.0.0.1')
