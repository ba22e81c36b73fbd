#!/usr/bin/env python3

#============================================

class TrackcutError(RuntimeError):
	pass

#============================================

class EventBuildError(TrackcutError):
	pass

#============================================

class EncodeError(TrackcutError):
	SPAWN_FAILED = 'spawn_failed'
	NONZERO_EXIT = 'nonzero_exit'

	def __init__(self, reason: str, message: str, returncode: int = None,
		diagnostic_tail: str = ""):
		self.reason = reason
		self.returncode = returncode
		self.diagnostic_tail = diagnostic_tail
		super().__init__(message)

	#============================
	@classmethod
	def spawn_failed(cls, executable: str, exc: Exception):
		return cls(cls.SPAWN_FAILED, f"could not start encoder {executable}: {exc}")

	#============================
	@classmethod
	def nonzero_exit(cls, step: str, returncode: int, diagnostic_tail: str):
		message = f"{step} failed: encoder exited with code {returncode}"
		last_line = diagnostic_tail.strip().splitlines()[-1:] if diagnostic_tail else []
		if len(last_line) > 0:
			message += f" ({last_line[0].strip()})"
		return cls(cls.NONZERO_EXIT, message, returncode=returncode,
			diagnostic_tail=diagnostic_tail)

#============================================

class WorkspaceError(TrackcutError):
	pass

#============================================

class ExportCancelled(TrackcutError):
	pass

#============================================

class ExportNotFoundError(TrackcutError):
	pass

#============================================

class ChannelClosedError(TrackcutError):
	pass
