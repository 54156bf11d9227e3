import logging
import sys


class SessionLoggerAdapter(logging.LoggerAdapter):
    """Logger adapter that automatically injects the session mode into structured logs."""

    def __init__(self, logger, mode):
        self.mode = mode
        super().__init__(logger, {})

    def process(self, msg, kwargs):
        if "extra" in kwargs and "structured" in kwargs["extra"]:
            kwargs["extra"]["structured"]["mode"] = self.mode
        return msg, kwargs

    def log_item(self, item_type: str, extra: dict, level: int = logging.INFO):
        structured = {"log_type": item_type, **extra}
        self.log(
            level,
            f"{item_type.replace('_', ' ').title()}",
            extra={"structured": structured},
        )


class ConsoleLogHandler(logging.StreamHandler):
    """Stream handler for stderr that renders structured records on one line."""

    def __init__(self, stream=None):
        super().__init__(stream if stream is not None else sys.stderr)

    def format(self, record: logging.LogRecord) -> str:
        if hasattr(record, "structured"):
            return f"{record.levelname.lower()}: {self._format_structured(record.structured)}"
        return super().format(record)

    def _format_structured(self, data: dict) -> str:
        """Format structured log data as ``LOG_TYPE: detail``."""
        log_type = data.get("log_type", "")
        mode = data.get("mode")

        prefix = f"[{mode}] " if mode else ""

        formatters = {
            "user_input": lambda: data.get("content", ""),
            "assistant_reply": lambda: f"{data.get('chars', 0)} chars, finish_reason={data.get('finish_reason')}",
            "retract": lambda: f"removed {data.get('removed', 0)} turn(s)",
            "exchange_failed": lambda: f"{data.get('error_type', 'error')}: {data.get('content', '')}",
            "cancelled": lambda: f"discarded {data.get('chars', 0)} chars",
        }

        if log_type in formatters:
            return f"{prefix}{log_type.upper()}: {formatters[log_type]()}"

        return f"{prefix}{data.get('content', str(data))}"


def configure_logging(verbose: bool = False, stream=None) -> logging.Handler:
    """Route all logging to stderr so it never mixes with streamed replies."""
    handler = ConsoleLogHandler(stream)
    handler.setFormatter(logging.Formatter("%(levelname)s [%(name)s] %(message)s"))

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(logging.DEBUG if verbose else logging.WARNING)

    # The SDK and httpx are chatty at DEBUG level
    for name in ("openai", "httpx", "httpcore"):
        logging.getLogger(name).setLevel(logging.INFO if verbose else logging.WARNING)
    return handler
