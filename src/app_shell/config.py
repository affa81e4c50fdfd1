import logging
import os
from pathlib import Path

from src.rules.models import Rules

logger = logging.getLogger(__name__)


class ConfigurationError(RuntimeError):
    """Startup configuration is incomplete."""

    def __init__(self, missing_env: list[str]) -> None:
        self.missing_env = missing_env
        super().__init__(f"Missing required environment variables: {', '.join(missing_env)}")


def validate_ops_rules(rules: Rules, base_dir: Path | None = None) -> None:
    """
    Validate operational requirements before startup.

    Raises ConfigurationError when a required env var is missing.
    """
    ops = rules.ops

    missing = [env_var for env_var in ops.required_env if env_var not in os.environ]
    if missing:
        logger.critical("Missing required environment variables: %s", ", ".join(missing))
        raise ConfigurationError(missing)

    # Every method a purchase can use needs a currency conversion rate
    for name, method in rules.payments.methods.items():
        if method.enabled and method.rate <= 0:
            raise ValueError(f"Payment method '{name}' has a non-positive rate")

    logger.info(
        "Configuration validated (rules %s, base dir %s)",
        rules.project.rules_version,
        base_dir or Path.cwd(),
    )
