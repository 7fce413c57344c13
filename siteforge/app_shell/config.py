import logging
import os

from siteforge.rules.models import Rules

logger = logging.getLogger(__name__)


def validate_ops_rules(rules: Rules) -> None:
    """
    Validate operational requirements before startup.
    Raises RuntimeError when a required environment variable is missing.
    """
    missing = [name for name in rules.ops.required_env if name not in os.environ]
    if missing:
        logger.critical("Missing required environment variables: %s", ", ".join(missing))
        raise RuntimeError(f"Missing required environment variables: {', '.join(missing)}")

    logger.info("Configuration validated")
