# /liquidator/core/config_validator.py
# Run at startup to validate all configs and secrets.
from liquidator.core.config import Settings, settings
from liquidator.core.logger import log


def validate(s: Settings = settings):
    log.info("--- CONFIG VALIDATION START ---")
    errors = []

    if not s.rpc_urls:
        errors.append("Missing required configuration: ETH_RPC_URL_1")
    if not s.TARGET_USERS:
        log.warning("NO_TARGET_USERS_CONFIGURED")
    if s.EXECUTE_LIVE:
        for var in ("EXECUTOR_PRIVATE_KEY", "LIQUIDATION_RECEIVER_ADDRESS"):
            if not getattr(s, var, None):
                errors.append(f"Missing required configuration for live execution: {var}")

    supported = {a.address.lower() for a in s.SUPPORTED_ASSETS}
    for hub in s.HUB_ASSETS:
        if hub.lower() not in supported:
            errors.append(f"Hub asset {hub} is not in SUPPORTED_ASSETS")

    if errors:
        for error in errors:
            log.critical(error)
        raise ValueError("System configuration is incomplete. Halting.")

    log.info("--- CONFIG VALIDATION PASSED ---")


if __name__ == "__main__":
    validate()
