"""BlobUploader retry and success detection."""

import threading
from datetime import datetime

import pytest

from dotnet_diagnose.config import UploadConfig
from dotnet_diagnose.protocol.artifacts import Artifact, ArtifactKind
from dotnet_diagnose.protocol.errors import RunCancelled
from dotnet_diagnose.upload import BlobUploader

from tests.mocks import HOST, SAS_URL


@pytest.fixture
def artifact(tmp_path):
    art = Artifact.create(ArtifactKind.MEMORY_DUMP, tmp_path, HOST, datetime(2026, 10, 18, 12, 0, 0))
    art.file_path.write_bytes(b"MDMP")
    return art


def _uploader(tools, registry, **upload):
    upload.setdefault("retry_delay", 0)
    return BlobUploader(tools.path("azcopy"), registry, config=UploadConfig(**upload))


def test_first_attempt_success(tools, registry, artifact):
    outcome = _uploader(tools, registry).upload(artifact, SAS_URL)

    assert outcome.succeeded
    assert outcome.attempt_count == 1
    assert tools.calls("azcopy") == [f"azcopy copy {artifact.file_path} {SAS_URL}"]


def test_exhausts_exactly_max_attempts(tools, registry, artifact):
    tools.azcopy(mode="fail")
    outcome = _uploader(tools, registry).upload(artifact, SAS_URL)

    assert not outcome.succeeded
    assert outcome.attempt_count == 5
    assert len(tools.calls("azcopy")) == 5
    assert outcome.reason == "azcopy exited with code 1"


def test_marker_wins_over_exit_code(tools, registry, artifact):
    tools.azcopy(mode="marker-nonzero")
    outcome = _uploader(tools, registry).upload(artifact, SAS_URL)
    assert outcome.succeeded
    assert outcome.attempt_count == 1


def test_zero_exit_without_marker_is_failure(tools, registry, artifact):
    tools.azcopy(mode="exit-zero-no-marker")
    outcome = _uploader(tools, registry, max_attempts=2).upload(artifact, SAS_URL)

    assert not outcome.succeeded
    assert outcome.attempt_count == 2
    assert outcome.reason == "success marker not found in azcopy output"


def test_missing_file_is_not_attempted(tools, registry, tmp_path):
    missing = Artifact.create(ArtifactKind.NETWORK_TRACE, tmp_path, HOST)
    outcome = _uploader(tools, registry).upload(missing, SAS_URL)

    assert not outcome.succeeded
    assert outcome.attempt_count == 0
    assert tools.calls("azcopy") == []


def test_missing_azcopy_counts_attempts(registry, artifact, tmp_path):
    uploader = BlobUploader(str(tmp_path / "nope"), registry, config=UploadConfig(max_attempts=3, retry_delay=0))
    outcome = uploader.upload(artifact, SAS_URL)
    assert outcome.attempt_count == 3
    assert "failed to start azcopy" in outcome.reason


def test_cancel_between_attempts(tools, registry, artifact):
    tools.azcopy(mode="fail")
    uploader = _uploader(tools, registry, retry_delay=30)
    threading.Timer(0.5, registry.token.cancel, args=("SIGTERM",)).start()

    with pytest.raises(RunCancelled):
        uploader.upload(artifact, SAS_URL)
    assert len(tools.calls("azcopy")) == 1


def test_signature_not_logged(tools, registry, artifact, caplog):
    with caplog.at_level("DEBUG", logger="dotnet_diagnose"):
        _uploader(tools, registry).upload(artifact, SAS_URL)
    assert "sig=SECRET" not in caplog.text
    assert "Upload" in caplog.text
