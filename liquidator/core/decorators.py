# /liquidator/core/decorators.py
# Reusable decorators for operational resilience.
from tenacity import retry, stop_after_attempt, wait_exponential, before_sleep_log
from liquidator.core.logger import get_logger
import logging

log = get_logger(__name__)

# Read-only network calls only. Anything inside an atomic unit must never be retried.
retriable_network_call = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=5),
    before_sleep=before_sleep_log(log, logging.WARNING),
    reraise=True
)
