#!/usr/bin/env python3

import re
from trackcutlib.core import utils
from trackcutlib.core.models import ExportProgress

#============================================

# frame=  123 fps= 25.0 q=28.0 size=    1024kB time=00:00:05.00 bitrate=1677.7kbits/s
PROGRESS_PATTERN = re.compile(
	r"frame=\s*(?P<frame>\d+)\s+fps=\s*(?P<fps>[\d.]+)"
	r".*?time=\s*(?P<hours>\d+):(?P<minutes>\d{2}):(?P<seconds>\d{2}(?:\.\d+)?)"
)
LINE_SPLIT_PATTERN = re.compile(r"[\r\n]")
MAX_BUFFER_CHARS = 4096

RENDER_SHARE = 80.0
CONCAT_SHARE = 20.0
MAX_RUNNING_PERCENT = 99.9

#============================================

class ProgressParser():
	"""
	Turn streamed encoder diagnostics for one step into ExportProgress values.

	Encoder output is line-oriented but arrives in arbitrary chunks, so the
	unterminated tail of each chunk is threaded back in through the buffer.
	"""
	def __init__(self, duration: float, fps: float):
		self.duration = max(float(duration), 0.0)
		self.fps = float(fps)
		self.total_frames = utils.frames_from_seconds(
			utils.format_seconds(self.duration), fps)

	#============================
	def parse(self, chunk: str, buffer: str = "") -> tuple:
		text = (buffer or "") + (chunk or "")
		lines = LINE_SPLIT_PATTERN.split(text)
		remainder = lines.pop()
		if len(remainder) > MAX_BUFFER_CHARS:
			remainder = remainder[-MAX_BUFFER_CHARS:]
		match = None
		for line in reversed(lines):
			match = PROGRESS_PATTERN.search(line)
			if match is not None:
				break
		if match is None:
			return (None, remainder)
		return (self._make_progress(match), remainder)

	#============================
	def _make_progress(self, match) -> ExportProgress:
		current_frame = int(match.group('frame'))
		encode_fps = float(match.group('fps'))
		elapsed = utils.parse_clock(match.group('hours'), match.group('minutes'),
			match.group('seconds'))
		fraction = 0.0
		if self.total_frames > 0 and current_frame > 0:
			fraction = current_frame / self.total_frames
		elif self.duration > 0:
			fraction = elapsed / self.duration
		fraction = min(max(fraction, 0.0), 1.0)
		eta = 0.0
		if encode_fps > 0:
			eta = max(self.total_frames - current_frame, 0) / encode_fps
		return ExportProgress(
			percent=fraction * 100.0,
			current_frame=current_frame,
			total_frames=self.total_frames,
			fps=encode_fps,
			eta=eta,
		)

#============================================

def global_percent(stage: str, completed: int, count: int,
	local_fraction: float) -> float:
	"""
	Map one step's local progress onto the whole export.

	Rendering takes the first 80 points split evenly across segments, the
	concat pass takes the rest. 100 is reserved for the completed state.
	"""
	local_fraction = min(max(local_fraction, 0.0), 1.0)
	if stage == 'rendering':
		if count <= 0:
			return 0.0
		fraction = (completed + local_fraction) / count
		return min(fraction * RENDER_SHARE, RENDER_SHARE)
	if stage == 'concatenating':
		percent = RENDER_SHARE + local_fraction * CONCAT_SHARE
		return min(percent, MAX_RUNNING_PERCENT)
	if stage == 'completed':
		return 100.0
	raise ValueError(f"no progress mapping for stage {stage}")
