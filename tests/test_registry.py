#!/usr/bin/env python3

"""
Unit tests for the active-export registry and export channels.
"""

# Standard Library
import os
import sys
import threading
import types

import pytest

REPO_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if REPO_ROOT not in sys.path:
	sys.path.insert(0, REPO_ROOT)

from trackcutlib.core.channel import ExportChannel
from trackcutlib.core.errors import ChannelClosedError
from trackcutlib.core.errors import TrackcutError
from trackcutlib.core.models import ExportConfig
from trackcutlib.core.models import ExportEvent
from trackcutlib.core.models import ExportProgress
from trackcutlib.core.models import ExportState
from trackcutlib.core.registry import ActiveExportRegistry

#============================================

def _progress_event(percent: float) -> ExportEvent:
	return ExportEvent(export_id="e1", kind='progress', state=ExportState.RENDERING,
		progress=ExportProgress(percent=percent))

#============================================

def test_register_and_remove() -> None:
	registry = ActiveExportRegistry()
	active = registry.register("e1", ExportConfig(output_path="out.mp4"))
	assert active.state == ExportState.CREATED
	assert "e1" in registry
	assert len(registry) == 1
	with pytest.raises(RuntimeError):
		registry.register("e1", ExportConfig(output_path="out.mp4"))
	assert registry.remove("e1") is active
	assert registry.remove("e1") is None
	assert registry.ids() == []

#============================================

def test_cancel_after_removal_is_not_found() -> None:
	registry = ActiveExportRegistry()
	registry.register("e1", ExportConfig(output_path="out.mp4"))
	registry.remove("e1")
	assert registry.mark_cancelled("e1") == (False, None)
	assert registry.is_cancelled("e1") is False

#============================================

def test_attach_process_refused_after_cancel() -> None:
	registry = ActiveExportRegistry()
	registry.register("e1", ExportConfig(output_path="out.mp4"))
	process = types.SimpleNamespace(pid=1234)
	assert registry.attach_process("e1", process) is True
	(found, current) = registry.mark_cancelled("e1")
	assert found is True
	assert current is process
	registry.detach_process("e1")
	assert registry.get("e1").process is None
	assert registry.attach_process("e1", process) is False

#============================================

def test_state_and_progress_updates() -> None:
	registry = ActiveExportRegistry()
	registry.register("e1", ExportConfig(output_path="out.mp4"))
	registry.set_state("e1", ExportState.RENDERING)
	registry.set_progress("e1", ExportProgress(percent=42.0))
	active = registry.get("e1")
	assert active.state == ExportState.RENDERING
	assert active.progress.percent == 42.0
	# updates for unknown ids are ignored
	registry.set_state("missing", ExportState.FAILED)

#============================================

def test_channel_closes_on_terminal_event() -> None:
	channel = ExportChannel("e1")
	channel.publish(_progress_event(10.0))
	terminal = ExportEvent(export_id="e1", kind='completed',
		state=ExportState.COMPLETED)
	channel.publish(terminal)
	assert channel.closed
	assert channel.terminal_event() is terminal
	with pytest.raises(TrackcutError):
		channel.publish(_progress_event(20.0))
	with pytest.raises(ChannelClosedError):
		channel.publish(_progress_event(20.0))
	assert [event.kind for event in channel] == ['progress', 'completed']

#============================================

def test_channel_streams_to_waiting_reader() -> None:
	channel = ExportChannel("e1")
	received = []

	def reader() -> None:
		for event in channel.events(timeout=5.0):
			received.append(event.kind)

	thread = threading.Thread(target=reader)
	thread.start()
	channel.publish(_progress_event(5.0))
	channel.publish(_progress_event(50.0))
	channel.publish(ExportEvent(export_id="e1", kind='cancelled',
		state=ExportState.CANCELLED))
	thread.join(5.0)
	assert not thread.is_alive()
	assert received == ['progress', 'progress', 'cancelled']

#============================================

def test_wait_terminal_times_out() -> None:
	channel = ExportChannel("e1")
	channel.publish(_progress_event(5.0))
	assert channel.wait_terminal(timeout=0.05) is None
	channel.close()
	assert channel.wait_terminal() is None
	assert len(channel.snapshot()) == 1
