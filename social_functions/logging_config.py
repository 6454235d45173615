import logging
import time
from typing import Optional

from pythonjsonlogger import jsonlogger

from .config import Settings, settings as default_settings

QUIET_LOGGERS = ('boto3', 'botocore', 'urllib3', 'google', 'apscheduler')


class ServiceJsonFormatter(jsonlogger.JsonFormatter):
    """JSON formatter stamping each record with the service and environment."""

    def __init__(self, fmt: str, service: str, environment: str):
        super().__init__(fmt)
        self.service = service
        self.environment = environment

    def add_fields(self, log_record, record, message_dict):
        super().add_fields(log_record, record, message_dict)
        log_record['service'] = self.service
        log_record['environment'] = self.environment
        log_record['timestamp'] = time.strftime('%Y-%m-%dT%H:%M:%SZ', time.gmtime(record.created))


def setup_logging(settings: Optional[Settings] = None) -> None:
    """Configure structured JSON logging for the process."""
    settings = settings or default_settings
    log_level = getattr(logging, settings.log_level.upper(), logging.INFO)

    handler = logging.StreamHandler()
    handler.setFormatter(ServiceJsonFormatter(
        '%(timestamp)s %(levelname)s %(service)s %(environment)s %(name)s %(message)s',
        service=settings.service_name,
        environment=settings.environment,
    ))

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    # Clear existing handlers to avoid duplicates
    for h in list(root_logger.handlers):
        root_logger.removeHandler(h)

    root_logger.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
