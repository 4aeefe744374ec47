import logging
import os
import sys
from contextvars import ContextVar
from pathlib import Path
from typing import TYPE_CHECKING, Optional

from loguru import logger

from gatekeeper.core.config import Environment, settings

if TYPE_CHECKING:
    from loguru import Record

# Set by LoggingMiddleware for the duration of a request
request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)

LOG_DIR = Path("logs")
LOG_FILE = LOG_DIR / "gatekeeper.log"

# stdlib numeric levels (as used in LOG_LEVEL) -> loguru level names
LOG_LEVELs = {
    50: "CRITICAL",
    40: "ERROR",
    30: "WARNING",
    20: "INFO",
    10: "DEBUG",
    5: "TRACE",
    0: "NOTSET",
}

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<magenta>PID:{extra[process_id]}</magenta> | "
    "<yellow>ReqID:{extra[request_id]}</yellow> | "
    "<cyan>{name}:{function}:{line}</cyan> | "
    "<level>{message}</level>"
)

FILE_FORMAT = (
    "{time:YYYY-MM-DD HH:mm:ss!UTC} | {level: <8} | PID:{extra[process_id]} | "
    "ReqID:{extra[request_id]} | {name}:{function}:{line} | {message}"
)


def correlation_filter(record: "Record") -> bool:
    """
    Stamp every record with the current request id ("-" outside a request)
    and the worker's process id. Never drops a record.
    """
    record["extra"]["request_id"] = request_id_var.get() or "-"
    record["extra"]["process_id"] = os.getpid()

    return True


class InterceptHandler(logging.Handler):
    """
    stdlib logging handler that forwards records to loguru, so uvicorn and
    library logs share the sinks and format configured here.
    """

    def emit(self, record: logging.LogRecord):
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Skip logging's own frames so loguru reports the real caller
        frame = logging.currentframe()
        depth = 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def setup_logger(log_file: Path | None = LOG_FILE):
    """
    Configure loguru sinks. Call once at startup, from the app lifespan.

    Token validation outcomes and rate limit rejections are audit records and
    go to the same sinks as everything else.

    Args:
        log_file: Rotating file sink path, None for console only
    """
    logger.remove()

    log_level = LOG_LEVELs.get(settings.log_level, "INFO")
    is_dev = settings.current_environment == Environment.DEV

    logger.add(
        sys.stdout,
        format=CONSOLE_FORMAT,
        level="DEBUG" if is_dev else log_level,
        colorize=True,
        enqueue=True,
        filter=correlation_filter,
    )

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)

        logger.add(
            log_file,
            format=FILE_FORMAT,
            level=log_level,
            rotation="10 MB",
            retention="3 months",
            compression="gz",
            enqueue=True,
            filter=correlation_filter,
            backtrace=True,
            # Keep local variable values out of production tracebacks
            diagnose=settings.current_environment != Environment.PRD,
        )

    logger.info(
        f"Logger ready (environment: {settings.current_environment.value}, level: {log_level})"
    )


def configure_uvicorn_logging():
    """Route the root and uvicorn stdlib loggers through InterceptHandler."""
    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)

    for name in list(logging.root.manager.loggerDict):
        if name.startswith("uvicorn"):
            uvicorn_logger = logging.getLogger(name)
            uvicorn_logger.handlers = [InterceptHandler()]
            uvicorn_logger.propagate = False

    logger.debug("Uvicorn logging redirected to loguru")


def shutdown_logger():
    """Flush records still queued by enqueue=True sinks."""
    logger.info("Flushing logs before shutdown")
    logger.complete()
