import logging
import os

import structlog

API_URL = os.getenv("API_URL", "http://localhost:5000").rstrip("/")
SOCKET_URL = os.getenv("SOCKET_URL", API_URL)
JWT_SECRET = os.getenv("JWT_SECRET", "")
JWT_ALGO = "HS256"

REQUEST_TIMEOUT = float(os.getenv("REQUEST_TIMEOUT", 10))
RETRY_TOTAL = int(os.getenv("RETRY_TOTAL", 2))
RETRY_BACKOFF = float(os.getenv("RETRY_BACKOFF", 0.5))

SHIPPING_FEE = float(os.getenv("SHIPPING_FEE", 100))
CURRENCY = os.getenv("CURRENCY", "NPR")

AUTH_STORAGE_PATH = os.path.expanduser(os.getenv("AUTH_STORAGE_PATH", "~/.storefront/auth.json"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
PORT = int(os.getenv("PORT", 8000))


def configure_logging(level: str = LOG_LEVEL):
    logging.basicConfig(format="%(message)s", level=level)
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(logging.getLevelName(level)),
        cache_logger_on_first_use=True,
    )
