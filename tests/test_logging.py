"""Stage-tagged logging."""

import logging

from dotnet_diagnose.logging_utils import ROOT_LOGGER_NAME, get_stage_logger, setup_logging


def test_stage_logger_tags_records(caplog):
    with caplog.at_level(logging.INFO, logger=ROOT_LOGGER_NAME):
        get_stage_logger("upload", "upload").info("Upload done")

    record = caplog.records[-1]
    assert record.stage == "upload"
    assert record.name == "dotnet_diagnose.upload"


def test_plain_output_format(tmp_path, capsys):
    log_file = tmp_path / "logs" / "run.log"
    setup_logging(plain=True, log_file=str(log_file))

    get_stage_logger("trace").info("Starting nettrace collection...")
    logging.getLogger(f"{ROOT_LOGGER_NAME}.x").error("untagged failure")

    err = capsys.readouterr().err
    assert "[trace] Starting nettrace collection..." in err
    assert "[error] untagged failure" in err
    assert "[trace] Starting nettrace collection..." in log_file.read_text()


def test_setup_is_repeatable():
    setup_logging(plain=True)
    setup_logging(plain=True, verbose=True)

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    ours = [h for h in logger.handlers if getattr(h, "_dotnet_diagnose_handler", False)]
    assert len(ours) == 1
    assert logger.level == logging.DEBUG
