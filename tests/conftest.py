import logging

import pytest

from dotnet_diagnose.config import Config, ToolsConfig
from dotnet_diagnose.logging_utils import ROOT_LOGGER_NAME
from dotnet_diagnose.processes import ProcessRegistry

from tests.mocks import DEFAULT_PID, HOST, SAS_URL, FakeTools, write_environ


@pytest.fixture(autouse=True)
def restore_package_logger():
    """setup_logging() detaches the package logger from the root; undo that between tests."""
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    handlers, level, propagate = list(logger.handlers), logger.level, logger.propagate
    yield
    for handler in list(logger.handlers):
        if handler not in handlers:
            logger.removeHandler(handler)
            handler.close()
    logger.setLevel(level)
    logger.propagate = propagate


@pytest.fixture
def tools(tmp_path):
    return FakeTools(tmp_path / "tools")


@pytest.fixture
def proc_root(tmp_path):
    root = tmp_path / "proc"
    write_environ(root, DEFAULT_PID, {
        "PATH": "/usr/bin",
        "COMPUTERNAME": HOST,
        "DIAGNOSTICS_AZUREBLOBCONTAINERSASURL": SAS_URL,
    })
    return root


@pytest.fixture
def registry():
    reg = ProcessRegistry()
    yield reg
    reg.terminate_all(grace=1)


@pytest.fixture
def config(tmp_path, tools):
    """Config pointed at the fake tools with every delay shortened."""
    cfg = Config()
    cfg.tools = ToolsConfig.from_dir(str(tools.dir))
    cfg.collection.trace_duration = 1
    cfg.collection.counter_window = 0
    cfg.collection.counter_ready_timeout = 5.0
    cfg.collection.settle_delay = 0
    cfg.upload.retry_delay = 0
    cfg.teardown.grace_period = 1.0
    cfg.teardown.sweep_tool_paths = False
    cfg.output.dir = str(tmp_path / "out")
    return cfg
