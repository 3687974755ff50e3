import io
import logging

import pytest

from travel_sales_wizard.utils.logging import configure_logging, get_logger

pytestmark = pytest.mark.unit


def test_loggers_share_the_package_namespace():
    assert get_logger("wizard").name == "travel_sales_wizard.wizard"


def test_configure_logging_is_idempotent():
    stream = io.StringIO()
    configure_logging(level="debug", stream=stream)
    configure_logging(level="error", stream=io.StringIO())

    get_logger("wizard").debug("step moved")

    root = logging.getLogger("travel_sales_wizard")
    assert root.level == logging.DEBUG
    assert len(root.handlers) == 1
    assert "DEBUG travel_sales_wizard.wizard: step moved" in stream.getvalue()
