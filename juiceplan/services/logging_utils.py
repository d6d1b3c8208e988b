"""
Loggers and structured log entries for the planning services.

Every service logs under "juiceplan.services.<module>" so an application
can route or silence the whole layer with one logger. Entries read
"<operation>: <outcome>" and carry their identifiers (batch code, product,
material) as record attributes:

    logger = get_service_logger(__name__)
    log_operation(logger, operation="execute_batch", outcome="retry",
                  level=logging.WARNING, batch_code="PJ7KX2MQ", attempt=2)

Context keys must not collide with LogRecord attributes such as "name",
"filename", "module" or "message".
"""

import logging
from typing import Any

LOGGER_PREFIX = "juiceplan.services"


def get_service_logger(name: str) -> logging.Logger:
    """Logger for a service module; dotted names keep only their last part."""
    module = name.rsplit(".", 1)[-1]
    return logging.getLogger(f"{LOGGER_PREFIX}.{module}")


def log_operation(
    logger: logging.Logger,
    operation: str,
    outcome: str,
    level: int = logging.INFO,
    **context: Any,
) -> None:
    """
    Emit one entry for a service operation.

    Args:
        logger: Service logger from get_service_logger()
        operation: Service function name, e.g. "create_plan"
        outcome: "success", or what went differently ("shortage",
            "batch_code_conflict", "retry", "error")
        level: Logging level, INFO unless the outcome needs attention
        **context: Identifiers attached to the record as attributes
    """
    logger.log(
        level,
        f"{operation}: {outcome}",
        extra={"operation": operation, "outcome": outcome, **context},
    )
