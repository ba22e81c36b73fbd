#!/usr/bin/env python3

import enum
from dataclasses import dataclass, field, replace

#============================================

@dataclass(frozen=True)
class Clip():
	id: str
	source_file: str
	start_time: float
	end_time: float
	trim_in: float
	trim_out: float
	track_id: str = ""
	track_number: int = 0

	@property
	def duration(self) -> float:
		return self.end_time - self.start_time

#============================================

@dataclass(frozen=True)
class Track():
	id: str
	number: int
	clips: tuple = ()
	name: str = ""

#============================================

@dataclass(frozen=True)
class Timeline():
	tracks: tuple = ()

	#============================
	def clips(self) -> list:
		"""
		Flatten every track into clips tagged with their track id and number.
		"""
		flat = []
		for track in self.tracks:
			for clip in track.clips:
				if clip.track_id != track.id or clip.track_number != track.number:
					clip = replace(clip, track_id=track.id, track_number=track.number)
				flat.append(clip)
		return flat

#============================================

@dataclass(frozen=True)
class ClipEvent():
	start_time: float
	end_time: float
	source_file: str
	trim_in: float
	trim_out: float
	track_id: str = ""
	clip_id: str = ""
	kind = 'clip'

	@property
	def duration(self) -> float:
		return self.end_time - self.start_time

#============================================

@dataclass(frozen=True)
class GapEvent():
	start_time: float
	end_time: float
	kind = 'gap'

	@property
	def duration(self) -> float:
		return self.end_time - self.start_time

#============================================

@dataclass(frozen=True)
class ExportConfig():
	output_path: str
	quality: str = 'medium'
	resolution: tuple = None
	fps: float = None
	codec: str = 'h264'
	bitrate: str = None

#============================================

@dataclass(frozen=True)
class EncodeProfile():
	width: int
	height: int
	fps: float
	video_codec: str
	video_bitrate: str
	pixel_format: str = 'yuv420p'
	audio_codec: str = 'aac'
	audio_bitrate: str = '128k'
	sample_rate: int = 48000
	channels: int = 2

#============================================

@dataclass(frozen=True)
class ExportProgress():
	percent: float = 0.0
	current_frame: int = 0
	total_frames: int = 0
	fps: float = 0.0
	eta: float = 0.0

#============================================

class ExportState(enum.Enum):
	CREATED = 'created'
	BUILDING = 'building'
	RENDERING = 'rendering'
	CONCATENATING = 'concatenating'
	COMPLETED = 'completed'
	FAILED = 'failed'
	CANCELLED = 'cancelled'

	@property
	def is_terminal(self) -> bool:
		return self in (ExportState.COMPLETED, ExportState.FAILED, ExportState.CANCELLED)

#============================================

@dataclass(frozen=True)
class ExportEvent():
	export_id: str
	kind: str
	state: ExportState
	progress: ExportProgress = None
	segment_index: int = 0
	segment_count: int = 0
	output_path: str = None
	error: str = None

	@property
	def is_terminal(self) -> bool:
		return self.kind in ('completed', 'failed', 'cancelled')

#============================================

@dataclass(frozen=True)
class ExportResult():
	export_id: str
	success: bool
	state: ExportState
	output_path: str = None
	error: str = None
	duration: float = 0.0
	file_size: int = 0

#============================================

@dataclass
class ActiveExport():
	export_id: str
	config: ExportConfig
	start_time: float
	process: object = None
	cancelled: bool = False
	state: ExportState = ExportState.CREATED
	progress: ExportProgress = field(default_factory=ExportProgress)
