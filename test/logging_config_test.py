import json
import logging

import pytest

from social_functions.logging_config import ServiceJsonFormatter, setup_logging


@pytest.fixture
def root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    for handler in list(root.handlers):
        root.removeHandler(handler)
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)


def test_setup_logging_emits_json(settings, root_logger):
    setup_logging(settings)

    assert len(root_logger.handlers) == 1
    record = logging.LogRecord("social_functions.test", logging.INFO, __file__, 1, "Sent %s", ("ok",), None)
    line = json.loads(root_logger.handlers[0].format(record))

    assert line["message"] == "Sent ok"
    assert line["levelname"] == "INFO"
    assert line["service"] == "social-functions"
    assert line["environment"] == "test"
    assert "timestamp" in line
    assert logging.getLogger("botocore").level == logging.WARNING


def test_formatter_stamps_service_fields():
    formatter = ServiceJsonFormatter('%(levelname)s %(message)s', service="svc", environment="prod")
    record = logging.LogRecord("social_functions.test", logging.WARNING, __file__, 1, "careful", None, None)

    line = json.loads(formatter.format(record))

    assert (line["service"], line["environment"], line["message"]) == ("svc", "prod", "careful")
    assert line["timestamp"].endswith("Z")
