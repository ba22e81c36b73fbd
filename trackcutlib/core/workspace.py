#!/usr/bin/env python3

import contextlib
import os
import shutil
import tempfile
from trackcutlib.core import utils
from trackcutlib.core.errors import WorkspaceError

#============================================

class ExportWorkspace():
	def __init__(self, export_id: str, base_dir: str = None):
		self.export_id = export_id
		self.base_dir = base_dir
		self.path = None
		self.temp_counter = 0

	#============================
	def create(self) -> str:
		if self.base_dir is not None:
			utils.ensure_dir(self.base_dir)
		prefix = f"trackcut-{self.export_id}-{utils.make_timestamp()}-"
		try:
			self.path = tempfile.mkdtemp(prefix=prefix, dir=self.base_dir)
		except OSError as exc:
			raise WorkspaceError(f"could not create temp workspace: {exc}") from exc
		return self.path

	#============================
	def make_path(self, filename: str) -> str:
		if self.path is None:
			raise WorkspaceError("workspace has not been created")
		self.temp_counter += 1
		return os.path.join(self.path, f"{self.temp_counter:04d}-{filename}")

	#============================
	def remove(self) -> None:
		if self.path is None or not os.path.exists(self.path):
			return
		try:
			shutil.rmtree(self.path)
		except OSError as exc:
			raise WorkspaceError(f"could not delete temp workspace {self.path}: {exc}") from exc

#============================================

@contextlib.contextmanager
def export_workspace(export_id: str, base_dir: str = None):
	"""
	Private temp directory for one export, deleted on every exit path.

	A failed deletion is reported, never raised, so it cannot change how the
	export ended.
	"""
	workspace = ExportWorkspace(export_id, base_dir=base_dir)
	workspace.create()
	try:
		yield workspace
	finally:
		try:
			workspace.remove()
		except WorkspaceError as exc:
			utils.log_message(f"warning: {exc}")
