# /liquidator/core/logger.py
import logging
import structlog
from structlog.contextvars import bind_contextvars
import sentry_sdk
from prometheus_client import Counter
from liquidator.core.config import settings
import json
import hmac
import hashlib
import os

# --- Prometheus Metrics ---
LIQUIDATION_ATTEMPTS = Counter(
    "liquidator_attempts_total", "Liquidation attempts by terminal outcome", ["outcome"]
)
LIQUIDATION_PROFIT = Counter(
    "liquidator_realized_profit_total", "Realized profit in the smallest unit of the profit asset", ["asset"]
)
ATOMIC_ROLLBACKS = Counter("liquidator_atomic_rollbacks_total", "Atomic units unwound after a failure")

SIGNING_KEY = (
    settings.LOG_SIGNING_KEY.get_secret_value().encode()
    if settings.LOG_SIGNING_KEY
    else b"insecure"
)

# Tests monkey-patch this to redirect the audit trail.
AUDIT_FILE = os.path.join(settings.SESSION_DIR, "audit.log")


def sign_and_append(logger, method_name: str, event_dict: dict) -> dict:
    """Structlog processor that signs each event and appends it to the audit log.

    Signature follows the structlog processor protocol:

        (logger, method_name, event_dict) -> event_dict
    """
    payload = json.dumps(event_dict, sort_keys=True, default=str)
    sig = hmac.new(SIGNING_KEY, payload.encode(), hashlib.sha256).hexdigest()

    audit_file = str(AUDIT_FILE)
    os.makedirs(os.path.dirname(audit_file) or ".", exist_ok=True)
    with open(audit_file, "a", encoding="utf-8") as f:
        f.write(payload + "|" + sig + "\n")

    event_dict["signature"] = sig
    return event_dict


def configure_logging():
    if settings.SENTRY_DSN:
        sentry_sdk.init(dsn=settings.SENTRY_DSN, traces_sample_rate=1.0)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            sign_and_append,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(logging.getLevelName(settings.LOG_LEVEL)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str):
    return structlog.get_logger(name)


def bind_attempt(user: str, attempt_id: str):
    bind_contextvars(target_user=user, attempt_id=attempt_id)


configure_logging()
log = get_logger("Liquidator.System")
