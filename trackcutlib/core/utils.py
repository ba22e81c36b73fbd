#!/usr/bin/env python3

import math
import os
import shlex
import time
import threading
from decimal import Decimal
from fractions import Fraction

#============================================

_QUIET_MODE = False
_COMMAND_REPORTER = None
_REPORTER_LOCK = threading.Lock()

#============================================

def set_quiet_mode(quiet: bool) -> None:
	global _QUIET_MODE
	_QUIET_MODE = bool(quiet)
	return

#============================================

def is_quiet_mode() -> bool:
	return _QUIET_MODE

#============================================

def set_command_reporter(reporter) -> None:
	"""
	Register a callable that receives command start/end event dicts.
	"""
	global _COMMAND_REPORTER
	with _REPORTER_LOCK:
		_COMMAND_REPORTER = reporter
	return

#============================================

def clear_command_reporter() -> None:
	set_command_reporter(None)
	return

#============================================

def report_command(event: dict) -> None:
	with _REPORTER_LOCK:
		reporter = _COMMAND_REPORTER
	if reporter is None:
		return
	reporter(event)
	return

#============================================

def command_prefix(index: int, total: int) -> str:
	if index is None or index <= 0:
		return ""
	if total is None or total <= 0:
		return f"[{index}]"
	return f"[{index}/{total}]"

#============================================

def command_string(args: list) -> str:
	return shlex.join([str(arg) for arg in args])

#============================================

def print_command(args: list) -> None:
	if is_quiet_mode():
		return
	print(f"CMD: '{command_string(args)}'")
	return

#============================================

def log_message(message: str) -> None:
	if is_quiet_mode():
		return
	print(message)
	return

#============================================

def parse_fps(raw_fps) -> Fraction:
	if raw_fps is None:
		raise RuntimeError("fps value is required")
	if isinstance(raw_fps, bool):
		raise RuntimeError("fps must be int, float, or fraction string")
	if isinstance(raw_fps, int):
		return Fraction(raw_fps, 1)
	if isinstance(raw_fps, float):
		return Fraction(str(raw_fps))
	if isinstance(raw_fps, str):
		if '/' in raw_fps:
			parts = raw_fps.split('/')
			return Fraction(int(parts[0]), int(parts[1]))
		return Fraction(raw_fps)
	raise RuntimeError("fps must be int, float, or fraction string")

#============================================

def parse_timecode(raw_time) -> Decimal:
	if raw_time is None:
		raise RuntimeError("time value is required")
	if isinstance(raw_time, bool):
		raise RuntimeError("time values must be int, float, or timecode string")
	if isinstance(raw_time, int):
		return Decimal(raw_time)
	if isinstance(raw_time, float):
		return Decimal(str(raw_time))
	if isinstance(raw_time, str):
		value = raw_time.strip()
		if ':' not in value:
			return Decimal(value)
		parts = value.split(':')
		seconds = Decimal(parts.pop())
		minutes = Decimal(parts.pop())
		hours = Decimal(0)
		if len(parts) > 0:
			hours = Decimal(parts.pop())
		return hours * Decimal(3600) + minutes * Decimal(60) + seconds
	raise RuntimeError("time values must be int, float, or timecode string")

#============================================

def parse_clock(hours: str, minutes: str, seconds: str) -> float:
	"""
	Convert the HH, MM and SS.ms groups of an encoder time= marker to seconds.
	"""
	return int(hours) * 3600 + int(minutes) * 60 + float(seconds)

#============================================

def round_half_up_fraction(value: Fraction) -> int:
	numerator = value.numerator
	denominator = value.denominator
	whole = numerator // denominator
	remainder = numerator - (whole * denominator)
	if remainder * 2 >= denominator:
		return whole + 1
	return whole

#============================================

def frames_from_seconds(seconds, fps) -> int:
	seconds_fraction = Fraction(str(seconds))
	frame_fraction = seconds_fraction * Fraction(str(fps))
	return round_half_up_fraction(frame_fraction)

#============================================

def format_seconds(seconds: float) -> str:
	"""
	Encoder-friendly seconds string with millisecond precision.
	"""
	return f"{seconds:.3f}"

#============================================

def format_eta(seconds) -> str:
	if seconds is None or not math.isfinite(seconds) or seconds < 0:
		return "--:--:--"
	hours = int(seconds // 3600)
	minutes = int((seconds % 3600) // 60)
	secs = int(seconds % 60)
	if hours > 0:
		return f"{hours:02d}:{minutes:02d}:{secs:02d}"
	return f"{minutes:02d}:{secs:02d}"

#============================================

def ensure_dir(dirpath: str) -> None:
	if dirpath == "":
		return
	if not os.path.isdir(dirpath):
		os.makedirs(dirpath, exist_ok=True)
	return

#============================================

def remove_file(filepath: str) -> bool:
	if filepath and os.path.exists(filepath):
		os.remove(filepath)
		return True
	return False

#============================================

def make_timestamp() -> str:
	datestamp = time.strftime("%y%b%d").lower()
	uppercase = "ABCDEFGHIJKLMNOPQRSTUVWXYZ"
	hourstamp = uppercase[(time.localtime()[3]) % 26]
	minstamp = f"{time.localtime()[4]:02d}"
	secstamp = uppercase[(time.localtime()[5]) % 26]
	timestamp = datestamp + hourstamp + minstamp + secstamp
	return timestamp
