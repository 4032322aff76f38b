from log_utils.structured_logger import (
    ContextualLogger,
    StructuredFormatter,
    get_logger,
    log_performance,
    setup_logging,
)

__all__ = ["ContextualLogger", "StructuredFormatter", "get_logger", "log_performance", "setup_logging"]
