import logging

import pytest

from shared.log import ColoredFormatter, GenericFormatter, log_envelope, get_logger
from shared.envelope import Broadcast


def _record(**extra):
    record = logging.LogRecord("minechat.session", logging.WARNING, __file__, 1,
                               "Dropping frame", None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


@pytest.mark.parametrize("formatter", [
    ColoredFormatter(fmt="%(levelname)s %(message)s"),
    GenericFormatter(fmt="%(levelname)s %(message)s"),
])
def test_formatters_prefix_context(formatter):
    record = _record(server="mc.example.com:25575", msg_type="BROADCAST",
                     identity="0b5e7c1a-1111-4222-8333-444455556666")

    line = formatter.format(record)

    assert line.startswith("[server=mc.example.com:25575 identity=0b5e7c1a... msg=BROADCAST] ")
    assert line.endswith("Dropping frame")


def test_colored_formatter_restores_levelname():
    record = _record(server="mc.example.com:25575")

    line = ColoredFormatter(fmt="%(levelname)s %(message)s").format(record)

    assert "\033[33mWARNING\033[0m" in line
    assert record.levelname == "WARNING"


def test_no_context_leaves_line_alone():
    line = ColoredFormatter(fmt="%(message)s").format(_record())
    assert line == "Dropping frame"


def test_log_envelope_carries_tag_and_server(caplog):
    logger = get_logger("minechat.test_log")
    logger.propagate = True
    try:
        with caplog.at_level(logging.DEBUG, logger="minechat.test_log"):
            log_envelope(logger, "debug", "Ignoring frame",
                         envelope=Broadcast(sender_name="Bob", text="hi"),
                         server="mc.example.com:25575")
    finally:
        logger.propagate = False

    record = caplog.records[-1]
    assert record.msg_type == "BROADCAST"
    assert record.server == "mc.example.com:25575"
