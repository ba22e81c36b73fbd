#!/usr/bin/env python3

import os
import random
import string
import threading
import time
import traceback
from trackcutlib.core import utils
from trackcutlib.core.channel import ExportChannel
from trackcutlib.core.errors import EncodeError
from trackcutlib.core.errors import EventBuildError
from trackcutlib.core.errors import ExportCancelled
from trackcutlib.core.errors import ExportNotFoundError
from trackcutlib.core.errors import WorkspaceError
from trackcutlib.core.events import build_events
from trackcutlib.core.events import timeline_duration
from trackcutlib.core.models import ExportConfig
from trackcutlib.core.models import ExportEvent
from trackcutlib.core.models import ExportProgress
from trackcutlib.core.models import ExportResult
from trackcutlib.core.models import ExportState
from trackcutlib.core.models import Timeline
from trackcutlib.core.presets import resolve_profile
from trackcutlib.core.registry import ActiveExportRegistry
from trackcutlib.core.workspace import export_workspace
from trackcutlib.media.concat import Concatenator
from trackcutlib.media.encoder import Encoder
from trackcutlib.media.progress import global_percent
from trackcutlib.media.segments import SegmentRenderer

#============================================

DEFAULT_KILL_GRACE = 5.0
ID_ALPHABET = string.ascii_lowercase + string.digits

#============================================

def make_export_id() -> str:
	millis = int(time.time() * 1000)
	suffix = ''.join(random.choices(ID_ALPHABET, k=9))
	return f"export-{millis}-{suffix}"

#============================================

def staging_path(output_path: str, export_id: str) -> str:
	"""
	Sibling of the output file that the concat pass writes to.

	Keeps the output extension so the encoder picks the same container.
	"""
	output_dir = os.path.dirname(os.path.abspath(output_path))
	stem, suffix = os.path.splitext(os.path.basename(output_path))
	return os.path.join(output_dir, f".{stem}.partial-{export_id}{suffix}")

#============================================

class ExportOrchestrator():
	"""
	Runs exports: build events, render each segment, concatenate, clean up.

	Each export runs on its own worker thread and reports through its own
	ExportChannel. Cancellation goes through the injected registry.
	"""
	def __init__(self, encoder: Encoder = None,
		registry: ActiveExportRegistry = None, workspace_dir: str = None,
		kill_grace: float = DEFAULT_KILL_GRACE):
		self.encoder = encoder if encoder is not None else Encoder()
		self.registry = registry if registry is not None else ActiveExportRegistry()
		self.workspace_dir = workspace_dir
		self.kill_grace = kill_grace
		self._channels = {}
		self._results = {}
		self._threads = {}
		self._lock = threading.Lock()

	#============================
	def start_export(self, config: ExportConfig, timeline: Timeline,
		export_id: str = None) -> str:
		profile = resolve_profile(config)
		if export_id is None:
			export_id = make_export_id()
		channel = ExportChannel(export_id)
		self.registry.register(export_id, config)
		utils.log_message(
			f"starting export {export_id}: output={config.output_path} "
			f"quality={config.quality} size={profile.width}x{profile.height} "
			f"codec={profile.video_codec}"
		)
		run = ExportRun(self, export_id, config, profile, channel)
		thread = threading.Thread(target=run.run, args=(timeline,),
			name=f"trackcut-{export_id}", daemon=True)
		with self._lock:
			self._channels[export_id] = channel
			self._threads[export_id] = thread
		thread.start()
		return export_id

	#============================
	def cancel_export(self, export_id: str) -> None:
		(found, process) = self.registry.mark_cancelled(export_id)
		if not found:
			utils.log_message(f"export {export_id} not found or already finished")
			return
		utils.log_message(f"cancelling export {export_id}")
		if process is not None:
			self.terminate_process(process)

	#============================
	def terminate_process(self, process) -> None:
		if process.poll() is not None:
			return
		process.terminate()
		timer = threading.Timer(self.kill_grace, self._force_kill, args=(process,))
		timer.daemon = True
		timer.start()

	#============================
	def _force_kill(self, process) -> None:
		if process.poll() is None:
			utils.log_message(f"encoder pid {process.pid} ignored terminate, killing")
			process.kill()

	#============================
	def get_export_progress(self, export_id: str) -> ExportProgress:
		active = self.registry.get(export_id)
		if active is None:
			raise ExportNotFoundError(f"export {export_id} not found")
		return active.progress

	#============================
	def channel(self, export_id: str) -> ExportChannel:
		with self._lock:
			channel = self._channels.get(export_id)
		if channel is None:
			raise ExportNotFoundError(f"export {export_id} not found")
		return channel

	#============================
	def wait(self, export_id: str, timeout: float = None):
		"""
		Block until the export ends and return its ExportResult.

		Returns None on timeout. Once the result is delivered the export's
		channel and result are released; later channel() calls for the id
		raise ExportNotFoundError.
		"""
		channel = self.channel(export_id)
		if channel.wait_terminal(timeout) is None:
			return None
		with self._lock:
			thread = self._threads.get(export_id)
		if thread is not None and thread is not threading.current_thread():
			thread.join(timeout)
		with self._lock:
			result = self._results.get(export_id)
		self.forget(export_id)
		return result

	#============================
	def forget(self, export_id: str) -> None:
		with self._lock:
			channel = self._channels.get(export_id)
			if channel is not None and not channel.closed:
				raise RuntimeError(f"export {export_id} is still running")
			self._channels.pop(export_id, None)
			self._results.pop(export_id, None)
			self._threads.pop(export_id, None)

	#============================
	def export_ids(self) -> list:
		with self._lock:
			return sorted(self._channels)

	#============================
	def _store_result(self, result: ExportResult) -> None:
		with self._lock:
			self._results[result.export_id] = result

#============================================

class ExportRun():
	"""
	State for one export while its worker thread runs the pipeline.
	"""
	def __init__(self, orchestrator: ExportOrchestrator, export_id: str,
		config: ExportConfig, profile, channel: ExportChannel):
		self.orchestrator = orchestrator
		self.registry = orchestrator.registry
		self.export_id = export_id
		self.config = config
		self.profile = profile
		self.channel = channel
		self.state = ExportState.CREATED
		self.started = time.time()
		self.last_percent = 0.0
		self.segment_count = 0
		self.segment_index = 0
		self.total_frames = 0
		self.frames_done = 0
		self.staging_file = staging_path(config.output_path, export_id)

	#============================
	def run(self, timeline: Timeline) -> None:
		error = None
		try:
			self._execute(timeline)
			final_state = ExportState.COMPLETED
		except ExportCancelled:
			final_state = ExportState.CANCELLED
		except (EventBuildError, EncodeError, WorkspaceError, OSError) as exc:
			final_state = ExportState.FAILED
			error = str(exc)
		except Exception as exc:
			final_state = ExportState.FAILED
			error = f"unexpected error: {exc}"
			utils.log_message(traceback.format_exc())
		finally:
			self.registry.remove(self.export_id)
		if final_state != ExportState.COMPLETED:
			self._discard_staging()
		self._finish(final_state, error)

	#============================
	def _execute(self, timeline: Timeline) -> None:
		self._set_state(ExportState.BUILDING)
		events = build_events(timeline.clips())
		if len(events) == 0:
			raise EventBuildError("no events to export")
		self.segment_count = len(events)
		self.total_frames = sum(
			utils.frames_from_seconds(utils.format_seconds(event.duration), self.profile.fps)
			for event in events
		)
		utils.ensure_dir(os.path.dirname(os.path.abspath(self.config.output_path)))
		renderer = SegmentRenderer(self.orchestrator.encoder, self.profile)
		concatenator = Concatenator(self.orchestrator.encoder, self.profile)
		with export_workspace(self.export_id, self.orchestrator.workspace_dir) as workspace:
			self._set_state(ExportState.RENDERING)
			segment_files = []
			for index, event in enumerate(events, start=1):
				self.segment_index = index
				self._publish_progress(
					global_percent('rendering', index - 1, self.segment_count, 0.0),
					self.frames_done, 0.0)
				out_file = workspace.make_path(f"segment-{index:03d}.mkv")
				self._run_step(lambda: renderer.render_segment(
					event, out_file,
					on_progress=self._on_segment_progress,
					on_spawn=self._on_spawn,
					export_id=self.export_id,
					index=index,
					total=self.segment_count + 1,
				))
				segment_files.append(out_file)
				self.frames_done += utils.frames_from_seconds(
					utils.format_seconds(event.duration), self.profile.fps)
			self._set_state(ExportState.CONCATENATING)
			self._publish_progress(global_percent('concatenating', 0, 1, 0.0),
				0, 0.0)
			manifest_file = workspace.make_path("concat.ffconcat")
			self._run_step(lambda: concatenator.concatenate(
				segment_files, self.staging_file, manifest_file,
				timeline_duration(events),
				on_progress=self._on_concat_progress,
				on_spawn=self._on_spawn,
				export_id=self.export_id,
				index=self.segment_count + 1,
				total=self.segment_count + 1,
			))
			self._promote_output()
			self._publish_progress(100.0, self.total_frames, 0.0,
				state=ExportState.COMPLETED)

	#============================
	def _run_step(self, step) -> None:
		self._check_cancelled()
		try:
			step()
		except EncodeError:
			if self.registry.is_cancelled(self.export_id):
				raise ExportCancelled(f"export {self.export_id} cancelled") from None
			raise
		finally:
			self.registry.detach_process(self.export_id)
		self._check_cancelled()

	#============================
	def _check_cancelled(self) -> None:
		if self.registry.is_cancelled(self.export_id):
			raise ExportCancelled(f"export {self.export_id} cancelled")

	#============================
	def _on_spawn(self, process) -> None:
		if not self.registry.attach_process(self.export_id, process):
			self.orchestrator.terminate_process(process)

	#============================
	def _promote_output(self) -> None:
		# removing the entry decides the race with cancel_export()
		active = self.registry.remove(self.export_id)
		if active is None or active.cancelled:
			raise ExportCancelled(f"export {self.export_id} cancelled")
		os.replace(self.staging_file, self.config.output_path)

	#============================
	def _discard_staging(self) -> None:
		try:
			utils.remove_file(self.staging_file)
		except OSError as exc:
			utils.log_message(f"warning: could not delete {self.staging_file}: {exc}")

	#============================
	def _on_segment_progress(self, local: ExportProgress) -> None:
		percent = global_percent('rendering', self.segment_index - 1,
			self.segment_count, local.percent / 100.0)
		self._publish_progress(percent, self.frames_done + local.current_frame,
			local.fps)

	#============================
	def _on_concat_progress(self, local: ExportProgress) -> None:
		percent = global_percent('concatenating', 0, 1, local.percent / 100.0)
		self._publish_progress(percent, local.current_frame, local.fps)

	#============================
	def _publish_progress(self, percent: float, current_frame: int,
		encode_fps: float, state: ExportState = None) -> None:
		percent = max(percent, self.last_percent)
		self.last_percent = percent
		elapsed = time.time() - self.started
		eta = 0.0
		if 0.0 < percent < 100.0:
			eta = elapsed * (100.0 - percent) / percent
		progress = ExportProgress(
			percent=percent,
			current_frame=min(current_frame, self.total_frames),
			total_frames=self.total_frames,
			fps=encode_fps,
			eta=eta,
		)
		self.registry.set_progress(self.export_id, progress)
		self.channel.publish(ExportEvent(
			export_id=self.export_id,
			kind='progress',
			state=state if state is not None else self.state,
			progress=progress,
			segment_index=self.segment_index,
			segment_count=self.segment_count,
		))

	#============================
	def _set_state(self, state: ExportState) -> None:
		self.state = state
		self.registry.set_state(self.export_id, state)

	#============================
	def _finish(self, final_state: ExportState, error: str) -> None:
		self.state = final_state
		duration = time.time() - self.started
		output_path = None
		file_size = 0
		if final_state == ExportState.COMPLETED:
			output_path = self.config.output_path
			file_size = os.path.getsize(output_path)
			utils.log_message(f"export {self.export_id} completed: {output_path}")
		elif final_state == ExportState.CANCELLED:
			utils.log_message(f"export {self.export_id} cancelled")
		else:
			utils.log_message(f"export {self.export_id} failed: {error}")
		result = ExportResult(
			export_id=self.export_id,
			success=final_state == ExportState.COMPLETED,
			state=final_state,
			output_path=output_path,
			error=error,
			duration=duration,
			file_size=file_size,
		)
		self.orchestrator._store_result(result)
		self.channel.publish(ExportEvent(
			export_id=self.export_id,
			kind=final_state.value,
			state=final_state,
			progress=ExportProgress(percent=self.last_percent,
				current_frame=self.frames_done, total_frames=self.total_frames),
			segment_index=self.segment_index,
			segment_count=self.segment_count,
			output_path=output_path,
			error=error,
		))
