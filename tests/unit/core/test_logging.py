"""Unit tests for structured logging."""

import structlog

from eostore.core.config import Settings
from eostore.core.logging import LoggingContext, configure_logging, get_logger


def test_logging_context_binds_and_restores():
    structlog.contextvars.clear_contextvars()

    with LoggingContext(operation="modify", type_name="product"):
        assert structlog.contextvars.get_contextvars() == {
            "operation": "modify",
            "type_name": "product",
        }
        with LoggingContext(type_name="collection"):
            assert structlog.contextvars.get_contextvars()["type_name"] == "collection"
        assert structlog.contextvars.get_contextvars()["type_name"] == "product"

    assert structlog.contextvars.get_contextvars() == {}


def test_json_logging(capsys):
    configure_logging(Settings(_env_file=None, environment="testing", log_format="json"))

    get_logger("eostore.test").info("Feature inserted", feature_id="product.1")

    output = capsys.readouterr().out
    assert '"message": "Feature inserted"' in output
    assert '"feature_id": "product.1"' in output
    structlog.reset_defaults()
