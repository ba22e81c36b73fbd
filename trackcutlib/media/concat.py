#!/usr/bin/env python3

import os
from trackcutlib.core.errors import EncodeError
from trackcutlib.core.models import EncodeProfile
from trackcutlib.media.encoder import Encoder
from trackcutlib.media.progress import ProgressParser
from trackcutlib.media.segments import profile_audio_args
from trackcutlib.media.segments import profile_video_args

#============================================

def quote_manifest_path(filepath: str) -> str:
	escaped = filepath.replace("\\", "/").replace("'", "'\\''")
	return f"'{escaped}'"

#============================================

def write_manifest(segment_files: list, manifest_file: str) -> str:
	lines = ["ffconcat version 1.0"]
	for segment in segment_files:
		lines.append(f"file {quote_manifest_path(os.path.abspath(segment))}")
	with open(manifest_file, 'w', encoding='utf-8') as handle:
		handle.write("\n".join(lines))
		handle.write("\n")
	return manifest_file

#============================================

class Concatenator():
	def __init__(self, encoder: Encoder, profile: EncodeProfile):
		self.encoder = encoder
		self.profile = profile

	#============================
	def build_args(self, manifest_file: str, out_file: str) -> list:
		args = self.encoder.base_args()
		args += ['-f', 'concat', '-safe', '0', '-i', manifest_file]
		args += ['-map', '0:v:0', '-map', '0:a:0']
		args += profile_video_args(self.profile)
		args += profile_audio_args(self.profile)
		args += [out_file]
		return args

	#============================
	def concatenate(self, segment_files: list, out_file: str,
		manifest_file: str, total_duration: float, on_progress=None,
		on_spawn=None, export_id: str = None, index: int = None,
		total: int = None) -> None:
		if len(segment_files) == 0:
			raise EncodeError(EncodeError.NONZERO_EXIT, "no segments to concatenate")
		for segment in segment_files:
			if not os.path.exists(segment):
				raise EncodeError(EncodeError.NONZERO_EXIT,
					f"segment file missing before concat: {segment}")
		write_manifest(segment_files, manifest_file)
		args = self.build_args(manifest_file, out_file)
		parser = ProgressParser(total_duration, self.profile.fps)
		state = {'buffer': ""}

		def handle_chunk(chunk: str) -> None:
			progress, state['buffer'] = parser.parse(chunk, state['buffer'])
			if progress is not None and on_progress is not None:
				on_progress(progress)

		self.encoder.run(args, step="concat", on_chunk=handle_chunk,
			on_spawn=on_spawn, export_id=export_id, index=index, total=total)
		if not os.path.exists(out_file):
			raise EncodeError(EncodeError.NONZERO_EXIT,
				f"concat produced no output file: {out_file}", returncode=0)
