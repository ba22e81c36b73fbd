#!/usr/bin/env python3

import os
from trackcutlib.core import utils
from trackcutlib.core.errors import EncodeError
from trackcutlib.core.models import EncodeProfile
from trackcutlib.media.encoder import Encoder
from trackcutlib.media.progress import ProgressParser

#============================================

GAP_COLOR = 'black'

#============================================

def profile_video_args(profile: EncodeProfile) -> list:
	return [
		'-c:v', profile.video_codec,
		'-b:v', profile.video_bitrate,
		'-pix_fmt', profile.pixel_format,
		'-r', f"{profile.fps:g}",
	]

#============================================

def profile_audio_args(profile: EncodeProfile) -> list:
	return [
		'-c:a', profile.audio_codec,
		'-b:a', profile.audio_bitrate,
		'-ar', str(profile.sample_rate),
		'-ac', str(profile.channels),
	]

#============================================

def fit_filter(profile: EncodeProfile) -> str:
	"""
	Letterbox any source into the profile frame at the profile rate.
	"""
	width = profile.width
	height = profile.height
	return (
		f"scale={width}:{height}:force_original_aspect_ratio=decrease,"
		f"pad={width}:{height}:(ow-iw)/2:(oh-ih)/2,"
		f"setsar=1,fps={profile.fps:g}"
	)

#============================================

def silence_source(profile: EncodeProfile) -> str:
	layout = 'stereo' if profile.channels == 2 else 'mono'
	return f"anullsrc=channel_layout={layout}:sample_rate={profile.sample_rate}"

#============================================

class SegmentRenderer():
	"""
	Renders clip and gap events to intermediate files that share one stream
	layout: one video stream and one audio stream, both event-length.
	"""
	def __init__(self, encoder: Encoder, profile: EncodeProfile):
		self.encoder = encoder
		self.profile = profile
		self._audio_sources = {}

	#============================
	def build_args(self, event, out_file: str, has_audio: bool = True) -> list:
		if event.kind == 'clip':
			return self._clip_args(event, out_file, has_audio)
		if event.kind == 'gap':
			return self._gap_args(event, out_file)
		raise RuntimeError(f"unsupported event kind {event.kind}")

	#============================
	def _clip_args(self, event, out_file: str, has_audio: bool) -> list:
		duration = utils.format_seconds(event.trim_out - event.trim_in)
		args = self.encoder.base_args()
		args += ['-ss', utils.format_seconds(event.trim_in)]
		args += ['-t', duration]
		args += ['-i', event.source_file]
		if has_audio:
			args += ['-map', '0:v:0', '-map', '0:a:0']
			# short source audio is padded with silence up to -t
			args += ['-af', 'apad']
		else:
			args += ['-f', 'lavfi', '-i', silence_source(self.profile)]
			args += ['-map', '0:v:0', '-map', '1:a:0']
		args += ['-sn', '-map_chapters', '-1', '-map_metadata', '-1']
		args += ['-vf', fit_filter(self.profile)]
		args += ['-t', duration]
		args += profile_video_args(self.profile)
		args += profile_audio_args(self.profile)
		args += [out_file]
		return args

	#============================
	def _gap_args(self, event, out_file: str) -> list:
		profile = self.profile
		color_source = (
			f"color=c={GAP_COLOR}:s={profile.width}x{profile.height}"
			f":r={profile.fps:g}"
		)
		args = self.encoder.base_args()
		args += ['-f', 'lavfi', '-i', color_source]
		args += ['-f', 'lavfi', '-i', silence_source(profile)]
		args += ['-t', utils.format_seconds(event.duration)]
		args += ['-map', '0:v:0', '-map', '1:a:0']
		args += profile_video_args(profile)
		args += profile_audio_args(profile)
		args += [out_file]
		return args

	#============================
	def source_has_audio(self, source_file: str) -> bool:
		if source_file not in self._audio_sources:
			self._audio_sources[source_file] = self.encoder.has_audio(source_file)
		return self._audio_sources[source_file]

	#============================
	def render_segment(self, event, out_file: str, on_progress=None,
		on_spawn=None, export_id: str = None, index: int = None,
		total: int = None) -> None:
		"""
		Render one clip or gap event to an intermediate file.

		on_progress receives segment-local ExportProgress values (0-100 of
		this segment only).
		"""
		has_audio = True
		if event.kind == 'clip':
			has_audio = self.source_has_audio(event.source_file)
		args = self.build_args(event, out_file, has_audio=has_audio)
		parser = ProgressParser(event.duration, self.profile.fps)
		state = {'buffer': ""}

		def handle_chunk(chunk: str) -> None:
			progress, state['buffer'] = parser.parse(chunk, state['buffer'])
			if progress is not None and on_progress is not None:
				on_progress(progress)

		step = f"segment {index} ({event.kind})" if index else f"{event.kind} segment"
		self.encoder.run(args, step=step, on_chunk=handle_chunk,
			on_spawn=on_spawn, export_id=export_id, index=index, total=total)
		if not os.path.exists(out_file):
			raise EncodeError(EncodeError.NONZERO_EXIT,
				f"{step} produced no output file: {out_file}", returncode=0)
