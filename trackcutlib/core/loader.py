#!/usr/bin/env python3

import os
import yaml
from trackcutlib.core import utils
from trackcutlib.core.models import Clip
from trackcutlib.core.models import ExportConfig
from trackcutlib.core.models import Timeline
from trackcutlib.core.models import Track
from trackcutlib.core.presets import CODEC_NAMES
from trackcutlib.core.presets import QUALITY_PRESETS

#============================================

JOB_FORMAT_VERSION = 1
MAX_YAML_BYTES = 10 ** 7

#============================================

class ExportJob():
	def __init__(self, config: ExportConfig, timeline: Timeline,
		ffmpeg_path: str = None, yaml_file: str = None):
		self.config = config
		self.timeline = timeline
		self.ffmpeg_path = ffmpeg_path
		self.yaml_file = yaml_file

#============================================

class JobLoader():
	def __init__(self, yaml_file: str, output_override: str = None,
		quality_override: str = None):
		self.yaml_file = yaml_file
		self.output_override = output_override
		self.quality_override = quality_override

	#============================
	def load(self) -> ExportJob:
		data = self._load_yaml()
		self._validate_required_keys(data)
		base_dir = os.path.dirname(os.path.abspath(self.yaml_file))
		config = self._parse_export(data.get('export'), base_dir)
		timeline = self._parse_timeline(data.get('timeline'), base_dir)
		ffmpeg_path = self._parse_encoder(data.get('encoder'))
		return ExportJob(config, timeline, ffmpeg_path=ffmpeg_path,
			yaml_file=self.yaml_file)

	#============================
	def _load_yaml(self) -> dict:
		yaml_file = self.yaml_file
		if not os.path.exists(yaml_file):
			raise RuntimeError(f"file not found: {yaml_file}")
		file_size = os.path.getsize(yaml_file)
		if file_size > MAX_YAML_BYTES:
			raise RuntimeError("yaml file is larger than 10MB")
		with open(yaml_file, 'r', encoding='utf-8') as data_file:
			data = yaml.safe_load(data_file)
		if not isinstance(data, dict):
			raise RuntimeError("export job yaml must be a mapping at the top level")
		return data

	#============================
	def _validate_required_keys(self, data: dict) -> None:
		if data.get('trackcut') != JOB_FORMAT_VERSION:
			raise RuntimeError(f"trackcut must be set to {JOB_FORMAT_VERSION}")
		for key in ('export', 'timeline'):
			if key not in data:
				raise RuntimeError(f"missing required key: {key}")

	#============================
	def _parse_export(self, export: dict, base_dir: str) -> ExportConfig:
		if not isinstance(export, dict):
			raise RuntimeError("export must be a mapping")
		output = self.output_override or export.get('output')
		if not output:
			raise RuntimeError("export.output is required")
		if self.output_override is None:
			output = self._resolve_path(output, base_dir)
		quality = self.quality_override or export.get('quality', 'medium')
		if quality not in QUALITY_PRESETS:
			raise RuntimeError(
				f"export.quality must be one of {', '.join(QUALITY_PRESETS)}")
		codec = export.get('codec', 'h264')
		if codec not in CODEC_NAMES:
			raise RuntimeError(f"export.codec must be one of {', '.join(CODEC_NAMES)}")
		resolution = export.get('resolution')
		if resolution is not None:
			if not isinstance(resolution, (list, tuple)) or len(resolution) != 2:
				raise RuntimeError("export.resolution must be [width, height]")
			resolution = (int(resolution[0]), int(resolution[1]))
		fps = export.get('fps')
		if fps is not None:
			fps = float(utils.parse_fps(fps))
		bitrate = export.get('bitrate')
		if bitrate is not None:
			bitrate = str(bitrate)
		return ExportConfig(
			output_path=output,
			quality=quality,
			resolution=resolution,
			fps=fps,
			codec=codec,
			bitrate=bitrate,
		)

	#============================
	def _parse_timeline(self, timeline: dict, base_dir: str) -> Timeline:
		if not isinstance(timeline, dict):
			raise RuntimeError("timeline must be a mapping")
		tracks_data = timeline.get('tracks')
		if not isinstance(tracks_data, list) or len(tracks_data) == 0:
			raise RuntimeError("timeline.tracks must be a non-empty list")
		tracks = []
		seen_ids = set()
		for index, track_data in enumerate(tracks_data, start=1):
			track = self._parse_track(track_data, index, base_dir)
			if track.id in seen_ids:
				raise RuntimeError(f"duplicate track id: {track.id}")
			seen_ids.add(track.id)
			tracks.append(track)
		return Timeline(tracks=tuple(tracks))

	#============================
	def _parse_track(self, track_data: dict, index: int, base_dir: str) -> Track:
		if not isinstance(track_data, dict):
			raise RuntimeError(f"timeline.tracks[{index}] must be a mapping")
		track_id = str(track_data.get('id', f"track{index}"))
		number = track_data.get('number', index)
		if isinstance(number, bool) or not isinstance(number, int):
			raise RuntimeError(f"track {track_id} number must be an integer")
		clips_data = track_data.get('clips', [])
		if not isinstance(clips_data, list):
			raise RuntimeError(f"track {track_id} clips must be a list")
		clips = []
		for clip_index, clip_data in enumerate(clips_data, start=1):
			clips.append(self._parse_clip(clip_data, track_id, number,
				clip_index, base_dir))
		return Track(id=track_id, number=number, clips=tuple(clips),
			name=str(track_data.get('name', '')))

	#============================
	def _parse_clip(self, clip_data: dict, track_id: str, track_number: int,
		clip_index: int, base_dir: str) -> Clip:
		if not isinstance(clip_data, dict):
			raise RuntimeError(f"track {track_id} clip {clip_index} must be a mapping")
		clip_id = str(clip_data.get('id', f"{track_id}-{clip_index}"))
		source_file = clip_data.get('file')
		if not source_file:
			raise RuntimeError(f"clip {clip_id} requires file")
		start = utils.parse_timecode(clip_data.get('start'))
		end = utils.parse_timecode(clip_data.get('end'))
		trim_in = utils.parse_timecode(clip_data.get('in', 0))
		if clip_data.get('out') is None:
			trim_out = trim_in + (end - start)
		else:
			trim_out = utils.parse_timecode(clip_data.get('out'))
		return Clip(
			id=clip_id,
			source_file=self._resolve_path(source_file, base_dir),
			start_time=float(start),
			end_time=float(end),
			trim_in=float(trim_in),
			trim_out=float(trim_out),
			track_id=track_id,
			track_number=track_number,
		)

	#============================
	def _parse_encoder(self, encoder: dict):
		if encoder is None:
			return None
		if not isinstance(encoder, dict):
			raise RuntimeError("encoder must be a mapping")
		return encoder.get('ffmpeg')

	#============================
	def _resolve_path(self, filepath: str, base_dir: str) -> str:
		filepath = os.path.expanduser(str(filepath))
		if os.path.isabs(filepath):
			return filepath
		return os.path.join(base_dir, filepath)
