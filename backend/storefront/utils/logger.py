"""
Logging utilities.

configure_logging() sets up the root handler once for the application.
AuditLogger is the structured event logger the services receive through
their constructors: hierarchical dotted names, context rendered as
key=value pairs after the message.
"""
import logging
from typing import Any, Optional

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: str = "INFO", fmt: str = DEFAULT_FORMAT) -> None:
    logging.basicConfig(level=getattr(logging, level.upper()), format=fmt)


def _render_context(context: dict) -> str:
    return " ".join(f"{key}={context[key]}" for key in sorted(context))


class AuditLogger:
    """
    Structured event emission for service-level audit trails.

    Logging never raises into callers and never affects return values.

    Example:
        audit = AuditLogger("storefront").child("payments")
        audit.info("Payment completed", transaction_id="txn_abc123")
        # storefront.payments - INFO - Payment completed transaction_id=txn_abc123
    """

    def __init__(self, name: str = "storefront", logger: Optional[logging.Logger] = None):
        self.name = name
        self._logger = logger or logging.getLogger(name)

    def child(self, name: str) -> "AuditLogger":
        return AuditLogger(f"{self.name}.{name}", self._logger.getChild(name))

    def _log(self, level: int, message: str, context: dict) -> None:
        if not self._logger.isEnabledFor(level):
            return
        if context:
            message = f"{message} {_render_context(context)}"
        self._logger.log(level, message)

    def debug(self, message: str, **context: Any) -> None:
        self._log(logging.DEBUG, message, context)

    def info(self, message: str, **context: Any) -> None:
        self._log(logging.INFO, message, context)

    def warning(self, message: str, **context: Any) -> None:
        self._log(logging.WARNING, message, context)

    def error(self, message: str, error: Optional[BaseException] = None, **context: Any) -> None:
        if error is not None:
            context["error"] = str(error)
        self._log(logging.ERROR, message, context)
