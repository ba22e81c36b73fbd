#!/usr/bin/env python3

import threading
import time
from trackcutlib.core.models import ActiveExport
from trackcutlib.core.models import ExportConfig
from trackcutlib.core.models import ExportProgress
from trackcutlib.core.models import ExportState

#============================================

class ActiveExportRegistry():
	"""
	Maps export ids to in-flight exports.

	Every mutation holds one lock so a cancel and the end of an export
	cannot interleave: once remove() has run, cancel() finds nothing.
	"""
	def __init__(self):
		self._exports = {}
		self._lock = threading.Lock()

	#============================
	def __len__(self) -> int:
		with self._lock:
			return len(self._exports)

	#============================
	def __contains__(self, export_id: str) -> bool:
		with self._lock:
			return export_id in self._exports

	#============================
	def ids(self) -> list:
		with self._lock:
			return list(self._exports)

	#============================
	def register(self, export_id: str, config: ExportConfig) -> ActiveExport:
		with self._lock:
			if export_id in self._exports:
				raise RuntimeError(f"export {export_id} is already active")
			active = ActiveExport(export_id=export_id, config=config,
				start_time=time.time())
			self._exports[export_id] = active
			return active

	#============================
	def get(self, export_id: str):
		with self._lock:
			return self._exports.get(export_id)

	#============================
	def remove(self, export_id: str):
		with self._lock:
			return self._exports.pop(export_id, None)

	#============================
	def attach_process(self, export_id: str, process) -> bool:
		"""
		Record the current child process; False when the export was cancelled.
		"""
		with self._lock:
			active = self._exports.get(export_id)
			if active is None:
				return False
			active.process = process
			return not active.cancelled

	#============================
	def detach_process(self, export_id: str) -> None:
		with self._lock:
			active = self._exports.get(export_id)
			if active is not None:
				active.process = None

	#============================
	def mark_cancelled(self, export_id: str):
		"""
		Flag an export as cancelled and return its current process handle.

		Returns (found, process).
		"""
		with self._lock:
			active = self._exports.get(export_id)
			if active is None:
				return (False, None)
			active.cancelled = True
			return (True, active.process)

	#============================
	def is_cancelled(self, export_id: str) -> bool:
		with self._lock:
			active = self._exports.get(export_id)
			if active is None:
				return False
			return active.cancelled

	#============================
	def set_state(self, export_id: str, state: ExportState) -> None:
		with self._lock:
			active = self._exports.get(export_id)
			if active is not None:
				active.state = state

	#============================
	def set_progress(self, export_id: str, progress: ExportProgress) -> None:
		with self._lock:
			active = self._exports.get(export_id)
			if active is not None:
				active.progress = progress
