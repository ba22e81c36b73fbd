#!/usr/bin/env python3

"""
Unit tests for trackcut_tui dashboard helpers.
"""

# Standard Library
import os
import sys
import types

REPO_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if REPO_ROOT not in sys.path:
	sys.path.insert(0, REPO_ROOT)

from trackcut_tui import TrackcutTuiApp
from trackcutlib.core.models import ExportState

#============================================

def _make_app_stub() -> types.SimpleNamespace:
	"""
	Create a stub object for metrics helpers.
	"""
	stub = types.SimpleNamespace()
	stub.finished = False
	stub.percent = 0.0
	stub.eta_seconds = None
	stub.error_text = None
	stub.state = None
	stub._format_duration_estimate = types.MethodType(
		TrackcutTuiApp._format_duration_estimate, stub)
	return stub

#============================================

def test_format_duration_boundaries() -> None:
	"""
	Ensure duration formatting switches at minute/hour boundaries.
	"""
	stub = _make_app_stub()
	assert TrackcutTuiApp._format_duration(stub, 12.4) == "12.4s"
	assert TrackcutTuiApp._format_duration(stub, 60.0) == "1m 00.0s"
	assert TrackcutTuiApp._format_duration(stub, 3661.2) == "1h 01m 01.2s"

#============================================

def test_format_duration_estimate_rounds_up() -> None:
	stub = _make_app_stub()
	assert TrackcutTuiApp._format_duration_estimate(stub, 4.2) == "5s"
	assert TrackcutTuiApp._format_duration_estimate(stub, 125.0) == "2m 05s"
	assert TrackcutTuiApp._format_duration_estimate(stub, 3600.0) == "1h 00m 00s"

#============================================

def test_eta_text_needs_progress() -> None:
	stub = _make_app_stub()
	assert TrackcutTuiApp._eta_text(stub) == "N/A"
	stub.eta_seconds = 30.5
	assert TrackcutTuiApp._eta_text(stub) == "N/A"
	stub.percent = 12.0
	assert TrackcutTuiApp._eta_text(stub) == "31s"
	stub.finished = True
	assert TrackcutTuiApp._eta_text(stub) == "N/A"

#============================================

def test_status_text_follows_state() -> None:
	stub = _make_app_stub()
	assert TrackcutTuiApp._status_text(stub) == "starting"
	stub.state = ExportState.RENDERING
	assert TrackcutTuiApp._status_text(stub) == "rendering"
	stub.error_text = "segment 2 failed"
	assert TrackcutTuiApp._status_text(stub) == "failed"

#============================================

def test_summarize_command_names_output() -> None:
	stub = _make_app_stub()
	command = "/usr/bin/ffmpeg -hide_banner -i 'a b.mp4' /tmp/work/0001-segment-001.mkv"
	summary = TrackcutTuiApp._summarize_command(stub, command)
	assert summary == "ffmpeg: 0001-segment-001.mkv"
	assert TrackcutTuiApp._summarize_command(stub, "") == "command"

#============================================

def test_run_export_checks_encoder_first(tmp_path) -> None:
	yaml_path = tmp_path / "job.yaml"
	yaml_path.write_text(
		"trackcut: 1\n"
		"export:\n"
		f"  output: \"{tmp_path / 'out.mp4'}\"\n"
		"timeline:\n"
		"  tracks:\n"
		"    - id: main\n"
		"      number: 1\n"
		"      clips:\n"
		"        - {id: a, file: a.mp4, start: 0, end: 2}\n"
	)
	calls = []
	stub = types.SimpleNamespace()
	stub.yaml_file = str(yaml_path)
	stub.output_override = None
	stub.ffmpeg_path = str(tmp_path / "no-such-ffmpeg")
	stub.cache_dir = str(tmp_path / "work")
	stub.orchestrator = None
	stub.export_id = None
	stub.call_from_thread = lambda func, *args: func(*args)
	stub._report_command = lambda event: None
	stub._update_job_info = lambda: None
	stub._show_encoder_version = lambda version: calls.append(('version', version))
	stub._set_error = lambda text, trace_text=None: calls.append(('error', text))
	stub._finish = lambda: calls.append(('finish',))
	TrackcutTuiApp._run_export(stub)
	assert calls[0][0] == 'error'
	assert "could not start encoder" in calls[0][1]
	assert calls[-1] == ('finish',)
	assert stub.orchestrator is None
	assert not os.path.exists(str(tmp_path / "work"))
