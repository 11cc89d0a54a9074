"""ConsoleUI rendering."""

from datetime import datetime
from io import StringIO

from rich.console import Console

from dotnet_diagnose.protocol.artifacts import Artifact, ArtifactKind
from dotnet_diagnose.protocol.context import TargetProcess
from dotnet_diagnose.protocol.result import CollectionResult, RunSummary, StageOutcome, UploadOutcome
from dotnet_diagnose.runner.state import State
from dotnet_diagnose.ui import ConsoleUI


def _ui(quiet=False):
    out, err = StringIO(), StringIO()
    ui = ConsoleUI(
        quiet=quiet,
        console=Console(file=out, width=160),
        err_console=Console(file=err, width=160),
    )
    return ui, out, err


def _summary(tmp_path):
    when = datetime(2026, 10, 18, 12, 0, 0)
    trace = Artifact.create(ArtifactKind.NETWORK_TRACE, tmp_path, "web01", when)
    dump = Artifact.create(ArtifactKind.MEMORY_DUMP, tmp_path, "web01", when)
    return RunSummary(
        run_id="r1",
        target=TargetProcess(pid=4242, host_identifier="web01", upload_destination="https://a/b?sig=SECRET"),
        stages=[
            StageOutcome(ArtifactKind.NETWORK_TRACE, CollectionResult.ok(trace),
                         UploadOutcome(trace, attempt_count=1, succeeded=True)),
            StageOutcome(ArtifactKind.MEMORY_DUMP, CollectionResult.ok(dump),
                         UploadOutcome(dump, attempt_count=5, succeeded=False, reason="azcopy exited with code 1")),
        ],
        completed=True,
    )


def test_summary_table(tmp_path):
    ui, out, _ = _ui()
    ui.print_summary(_summary(tmp_path))

    text = out.getvalue()
    assert "trace_web01_20261018_120000.nettrace" in text
    assert "azcopy exited with code 1" in text
    assert "1 of 2 stage(s) incomplete" in text


def test_target_hides_signature(tmp_path):
    ui, out, _ = _ui()
    ui.print_target(_summary(tmp_path).target)
    assert "SECRET" not in out.getvalue()
    assert "web01" in out.getvalue()


def test_state_change_shows_kind():
    ui, out, _ = _ui()
    ui.print_state_change(State.UPLOAD, State.COLLECT, {"kind": "dump"})
    assert "COLLECT (dump)" in out.getvalue()


def test_quiet_still_reports_errors(tmp_path):
    ui, out, err = _ui(quiet=True)
    ui.print_banner("1.0.0")
    ui.print_summary(_summary(tmp_path))
    ui.print_error("Could not find COMPUTERNAME environment variable")

    assert out.getvalue() == ""
    assert "[error] Could not find COMPUTERNAME environment variable" in err.getvalue()
