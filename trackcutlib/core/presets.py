#!/usr/bin/env python3

from trackcutlib.core.models import EncodeProfile
from trackcutlib.core.models import ExportConfig

#============================================

QUALITY_PRESETS = {
	'low': {
		'resolution': (1280, 720),
		'bitrate': '2000k',
		'fps': 30,
	},
	'medium': {
		'resolution': (1920, 1080),
		'bitrate': '5000k',
		'fps': 30,
	},
	'high': {
		'resolution': (1920, 1080),
		'bitrate': '8000k',
		'fps': 30,
	},
	'ultra': {
		'resolution': (3840, 2160),
		'bitrate': '15000k',
		'fps': 30,
	},
}

CODEC_NAMES = {
	'h264': 'libx264',
	'h265': 'libx265',
	'vp9': 'libvpx-vp9',
}

AUDIO_CODEC = 'aac'
AUDIO_BITRATE = '128k'
AUDIO_SAMPLE_RATE = 48000
AUDIO_CHANNELS = 2

#============================================

def get_quality_preset(quality: str) -> dict:
	preset = QUALITY_PRESETS.get(quality)
	if preset is None:
		raise ValueError(f"unknown quality tier {quality!r}, "
			f"expected one of {', '.join(QUALITY_PRESETS)}")
	return dict(preset)

#============================================

def codec_name(codec: str) -> str:
	return CODEC_NAMES.get(codec, 'libx264')

#============================================

def resolve_profile(config: ExportConfig) -> EncodeProfile:
	preset = get_quality_preset(config.quality)
	resolution = preset['resolution']
	if config.resolution is not None:
		resolution = config.resolution
	fps = preset['fps']
	if config.fps is not None:
		fps = config.fps
	bitrate = preset['bitrate']
	if config.bitrate:
		bitrate = config.bitrate
	width = int(resolution[0])
	height = int(resolution[1])
	if width <= 0 or height <= 0:
		raise ValueError("resolution must be positive")
	if float(fps) <= 0:
		raise ValueError("fps must be positive")
	return EncodeProfile(
		width=width,
		height=height,
		fps=float(fps),
		video_codec=codec_name(config.codec),
		video_bitrate=str(bitrate),
		audio_codec=AUDIO_CODEC,
		audio_bitrate=AUDIO_BITRATE,
		sample_rate=AUDIO_SAMPLE_RATE,
		channels=AUDIO_CHANNELS,
	)
