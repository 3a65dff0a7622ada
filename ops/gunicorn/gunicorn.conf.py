# Gunicorn config for the Ella Rises portal

import multiprocessing

# Bind to localhost; Nginx proxies to this
bind = "127.0.0.1:5000"

# Each worker keeps its own login lockout table, so keep the worker count small
workers = max(2, multiprocessing.cpu_count() // 2)
threads = 4
worker_class = "gthread"

# Page renders are short; a slow one means the database is unhappy
timeout = 60
graceful_timeout = 30
keepalive = 5

# Logging
accesslog = "-"  # stdout
errorlog = "-"    # stderr
loglevel = "info"

# App entrypoint
wsgi_app = "ellarises.wsgi:app"
