"""
Logging configuration for RoomLink.
Provides structured logging with console, rotating file and JSON handlers.
"""

import logging
import logging.config
import os
from datetime import datetime
from typing import Any, Dict

from pythonjsonlogger import jsonlogger

from roomlink.config.settings import Settings, settings as default_settings


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """JSON formatter that stamps every record with service context"""

    environment = default_settings.ENVIRONMENT

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]):
        super().add_fields(log_record, record, message_dict)

        log_record['timestamp'] = datetime.utcnow().isoformat()
        log_record['level'] = record.levelname
        log_record['logger'] = record.name
        log_record['environment'] = self.environment

        for key in ('request_id', 'user_id', 'booking_id', 'payment_id'):
            if hasattr(record, key):
                log_record[key] = getattr(record, key)

        if record.exc_info:
            log_record['exception'] = {
                'type': record.exc_info[0].__name__,
                'message': str(record.exc_info[1]),
            }


def build_logging_config(settings: Settings) -> Dict[str, Any]:
    """Build the dictConfig payload for the given settings"""
    log_dir = settings.LOG_DIR
    console_formatter = 'json' if settings.LOG_JSON else (
        'colored' if settings.is_development() else 'standard'
    )

    return {
        'version': 1,
        'disable_existing_loggers': False,
        'formatters': {
            'standard': {
                'format': '%(asctime)s [%(levelname)s] %(name)s: %(message)s'
            },
            'json': {
                '()': CustomJsonFormatter,
                'format': '%(timestamp)s %(level)s %(logger)s %(message)s'
            },
            'colored': {
                '()': 'colorlog.ColoredFormatter',
                'format': '%(log_color)s%(asctime)s [%(levelname)s] %(name)s: %(message)s',
                'log_colors': {
                    'DEBUG': 'cyan',
                    'INFO': 'green',
                    'WARNING': 'yellow',
                    'ERROR': 'red',
                    'CRITICAL': 'red,bg_white',
                }
            }
        },
        'handlers': {
            'console': {
                'level': 'DEBUG' if settings.DEBUG else 'INFO',
                'class': 'logging.StreamHandler',
                'formatter': console_formatter,
            },
            'file': {
                'level': 'INFO',
                'class': 'logging.handlers.RotatingFileHandler',
                'filename': os.path.join(log_dir, 'app.log'),
                'maxBytes': 10485760,  # 10MB
                'backupCount': 10,
                'formatter': 'standard',
                'encoding': 'utf8'
            },
            'error_file': {
                'level': 'ERROR',
                'class': 'logging.handlers.RotatingFileHandler',
                'filename': os.path.join(log_dir, 'error.log'),
                'maxBytes': 10485760,
                'backupCount': 10,
                'formatter': 'standard',
                'encoding': 'utf8'
            },
            'json_file': {
                'level': 'INFO',
                'class': 'logging.handlers.RotatingFileHandler',
                'filename': os.path.join(log_dir, 'app.json.log'),
                'maxBytes': 10485760,
                'backupCount': 10,
                'formatter': 'json',
                'encoding': 'utf8'
            }
        },
        'loggers': {
            '': {
                'handlers': ['console', 'file', 'error_file', 'json_file'],
                'level': settings.LOG_LEVEL,
            },
            'roomlink': {
                'handlers': ['console', 'file', 'error_file', 'json_file'],
                'level': settings.LOG_LEVEL,
                'propagate': False
            },
            'sqlalchemy.engine': {
                'handlers': ['console', 'file'],
                'level': 'WARNING',
                'propagate': False
            },
            'uvicorn.access': {
                'handlers': ['console'],
                'level': 'INFO',
                'propagate': False
            }
        }
    }


def _init_sentry(settings: Settings) -> None:
    import sentry_sdk
    from sentry_sdk.integrations.logging import LoggingIntegration

    sentry_logging = LoggingIntegration(
        level=logging.INFO,
        event_level=logging.ERROR
    )
    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        environment=settings.ENVIRONMENT,
        integrations=[sentry_logging],
        traces_sample_rate=0.2,
        send_default_pii=False
    )


def setup_logging(settings: Settings = default_settings) -> logging.Logger:
    """Configure application logging"""
    os.makedirs(settings.LOG_DIR, exist_ok=True)
    CustomJsonFormatter.environment = settings.ENVIRONMENT
    logging.config.dictConfig(build_logging_config(settings))

    if settings.SENTRY_DSN:
        _init_sentry(settings)

    logger = logging.getLogger("roomlink")
    logger.info(f"Logging initialized with level: {settings.LOG_LEVEL}")
    return logger
