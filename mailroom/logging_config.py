import hashlib
import logging
import logging.config
import os
import sys
import time
import uuid
from typing import Optional

import structlog


def configure_logging(log_level: str = "INFO", log_file: Optional[str] = None):
    """
    Configure structured logging for the application.
    
    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_file: Optional log file path. If None, logs to stdout only.
    """
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer()
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
    
    log_config = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "detailed": {
                "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
            },
            "json": {
                "()": "structlog.stdlib.ProcessorFormatter",
                "processor": structlog.processors.JSONRenderer()
            }
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": log_level,
                "formatter": "detailed",
                "stream": sys.stdout
            }
        },
        "loggers": {
            "": {  # Root logger
                "level": log_level,
                "handlers": ["console"],
                "propagate": False
            },
            "mailroom": {
                "level": log_level,
                "handlers": ["console"],
                "propagate": False
            }
        }
    }
    
    if log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        log_config["handlers"]["file"] = {
            "class": "logging.handlers.RotatingFileHandler",
            "level": log_level,
            "formatter": "json",
            "filename": log_file,
            "maxBytes": 10485760,  # 10MB
            "backupCount": 5
        }
        log_config["loggers"][""]["handlers"].append("file")
        log_config["loggers"]["mailroom"]["handlers"].append("file")
    
    logging.config.dictConfig(log_config)
    
    logger = structlog.get_logger("mailroom")
    logger.info("Logging configured", level=log_level, file=log_file)
    
    return logger


def get_logger(name: str) -> structlog.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)


def summarize_email(email: Optional[str]) -> dict:
    """
    Loggable fingerprint of a recipient address: a short SHA-1 prefix of the
    normalized address plus its domain. The address itself is never logged.
    """
    if not email:
        return {}
    normalized = email.strip().lower()
    at = normalized.rfind("@")
    summary = {"email_hash": hashlib.sha1(normalized.encode("utf-8")).hexdigest()[:12]}
    if at > 0:
        summary["email_domain"] = normalized[at + 1:]
    return summary


class OutboxRunContext:
    """Context manager for one outbox batch run with a short run ID."""
    
    def __init__(self, trigger: str, run_id: Optional[str] = None):
        self.trigger = trigger
        self.run_id = run_id or str(uuid.uuid4())[:8]
        self.logger = get_logger("mailroom.outbox.run")
        self.start_time = None
        self.summary = None
        
    def __enter__(self):
        self.start_time = time.monotonic()
        self.logger.debug("Outbox run started", trigger=self.trigger, run_id=self.run_id)
        return self
        
    def __exit__(self, exc_type, exc_val, exc_tb):
        duration = time.monotonic() - self.start_time
        
        if exc_type is None:
            counts = self.summary.to_dict() if self.summary is not None else {}
            # Empty runs fire every few seconds; keep them out of INFO
            log = self.logger.info if counts.get("claimed") else self.logger.debug
            log(
                "Outbox run completed",
                trigger=self.trigger,
                run_id=self.run_id,
                duration_seconds=round(duration, 3),
                **counts
            )
        else:
            self.logger.error(
                "Outbox run failed",
                trigger=self.trigger,
                run_id=self.run_id,
                duration_seconds=round(duration, 3),
                error_type=exc_type.__name__,
                error_message=str(exc_val)
            )
        
        return False  # Don't suppress exceptions
