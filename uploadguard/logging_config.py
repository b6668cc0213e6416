"""
Loggning för UploadGuard.

Standard är JSON via python-json-logger, en post per rad, så att varje
granskad eller blockerad uppladdning går att söka fram i Loki/ELK.
LOG_FORMAT=text ger vanlig textutskrift för lokal utveckling.

Fält i JSON-läget:
  - timestamp, level, logger, message
  - service    : alltid "uploadguard"
  - environment: ENVIRONMENT (default "production")
  - extra-fält från anropet, t.ex. detected_type, safe och corrupted
    som detektorn skickar med för varje verdict
"""

import logging
import logging.config
import os

from pythonjsonlogger.jsonlogger import JsonFormatter  # type: ignore[import-untyped]

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"
TEXT_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"
SERVICE_NAME = "uploadguard"

# Loggers som annars skriver med egna handlers.
_OWNED_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access", SERVICE_NAME)
_RENAMED_FIELDS = {"levelname": "level", "name": "logger"}


class UploadGuardJsonFormatter(JsonFormatter):
    """JSON-formatter som stämplar service och environment på varje post."""

    def __init__(self, *args, environment: str | None = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.environment = environment or os.getenv("ENVIRONMENT", "production")

    def add_fields(
        self,
        log_record: dict,
        record: logging.LogRecord,
        message_dict: dict,
    ) -> None:
        super().add_fields(log_record, record, message_dict)
        for source, target in _RENAMED_FIELDS.items():
            log_record[target] = log_record.pop(source, getattr(record, source))
        log_record["service"] = SERVICE_NAME
        log_record["environment"] = self.environment


def _formatter_config(style: str) -> dict:
    if style == "text":
        return {"format": TEXT_FORMAT, "datefmt": "%H:%M:%S"}
    return {
        "()": UploadGuardJsonFormatter,
        "fmt": LOG_FORMAT,
        "datefmt": "%Y-%m-%dT%H:%M:%S",
        "rename_fields": {"asctime": "timestamp"},
    }


def setup_logging(level: str | None = None, style: str | None = None) -> None:
    """
    Konfigurera root, uvicorn och uploadguard med samma handler.

    Anropas en gång vid start. Nivå: `level`, annars LOG_LEVEL, annars INFO.
    Format: `style`, annars LOG_FORMAT ("json" eller "text"), annars json.
    """
    log_level = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    log_style = (style or os.getenv("LOG_FORMAT", "json")).lower()

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {"default": _formatter_config(log_style)},
            "handlers": {
                "stdout": {
                    "class": "logging.StreamHandler",
                    "formatter": "default",
                    "stream": "ext://sys.stdout",
                },
            },
            "root": {"handlers": ["stdout"], "level": log_level},
            "loggers": {
                name: {"handlers": ["stdout"], "level": log_level, "propagate": False}
                for name in _OWNED_LOGGERS
            },
        }
    )
