#!/usr/bin/env python3

import codecs
import collections
import os
import re
import shutil
import subprocess
import time
from trackcutlib.core import utils
from trackcutlib.core.errors import EncodeError

#============================================

ENCODER_ENV_VAR = 'TRACKCUT_FFMPEG'
DIAGNOSTIC_TAIL_LINES = 20
READ_CHUNK_BYTES = 4096
MAX_PARTIAL_CHARS = 4096
# Stream #0:1(und): Audio: aac (LC), 48000 Hz, stereo
AUDIO_STREAM_PATTERN = re.compile(r"Stream #\d+:\d+.*?: Audio:")

#============================================

def find_ffmpeg(ffmpeg_path: str = None) -> str:
	if ffmpeg_path:
		return ffmpeg_path
	env_path = os.environ.get(ENCODER_ENV_VAR)
	if env_path:
		return env_path
	found = shutil.which('ffmpeg')
	if found is not None:
		return found
	return 'ffmpeg'

#============================================

class Encoder():
	"""
	Runs the external encoder as a child process, one invocation per call.
	"""
	def __init__(self, ffmpeg_path: str = None):
		self.ffmpeg_path = find_ffmpeg(ffmpeg_path)

	#============================
	def base_args(self) -> list:
		return [self.ffmpeg_path, '-hide_banner', '-nostdin', '-y']

	#============================
	def validate(self) -> str:
		try:
			proc = subprocess.run([self.ffmpeg_path, '-version'],
				stdin=subprocess.DEVNULL, stdout=subprocess.PIPE,
				stderr=subprocess.STDOUT, check=False)
		except OSError as exc:
			raise EncodeError.spawn_failed(self.ffmpeg_path, exc) from exc
		output = proc.stdout.decode('utf-8', errors='replace')
		if proc.returncode != 0:
			raise EncodeError.nonzero_exit("encoder check", proc.returncode, output)
		lines = output.strip().splitlines()
		if len(lines) == 0:
			return ""
		return lines[0].strip()

	#============================
	def has_audio(self, source_file: str) -> bool:
		"""
		True when the encoder lists an audio stream for source_file.

		Runs the encoder with an input and no output; the nonzero exit that
		follows is expected and ignored.
		"""
		args = [self.ffmpeg_path, '-hide_banner', '-nostdin', '-i', source_file]
		utils.print_command(args)
		try:
			proc = subprocess.run(args, stdin=subprocess.DEVNULL,
				stdout=subprocess.DEVNULL, stderr=subprocess.PIPE, check=False)
		except OSError as exc:
			raise EncodeError.spawn_failed(self.ffmpeg_path, exc) from exc
		output = proc.stderr.decode('utf-8', errors='replace')
		return AUDIO_STREAM_PATTERN.search(output) is not None

	#============================
	def run(self, args: list, step: str = "encode", on_chunk=None,
		on_spawn=None, export_id: str = None, index: int = None,
		total: int = None) -> None:
		"""
		Run one encoder invocation and stream its diagnostics to on_chunk.

		on_spawn receives the Popen handle as soon as the process exists so
		callers can signal it. Raises EncodeError on spawn failure or on a
		nonzero exit code.
		"""
		command = utils.command_string(args)
		utils.print_command(args)
		utils.report_command({
			'event': 'start',
			'command': command,
			'index': index,
			'total': total,
			'export_id': export_id,
		})
		t0 = time.time()
		try:
			proc = subprocess.Popen(args, stdin=subprocess.DEVNULL,
				stdout=subprocess.DEVNULL, stderr=subprocess.PIPE)
		except OSError as exc:
			utils.report_command({
				'event': 'end',
				'command': command,
				'returncode': None,
				'seconds': time.time() - t0,
				'export_id': export_id,
			})
			raise EncodeError.spawn_failed(args[0], exc) from exc
		tail = collections.deque(maxlen=DIAGNOSTIC_TAIL_LINES)
		decoder = codecs.getincrementaldecoder('utf-8')(errors='replace')
		partial = ""
		try:
			if on_spawn is not None:
				on_spawn(proc)
			while True:
				data = proc.stderr.read1(READ_CHUNK_BYTES)
				if not data:
					break
				text = decoder.decode(data)
				partial = self._collect_tail(partial + text, tail)
				if on_chunk is not None and text:
					on_chunk(text)
			text = decoder.decode(b"", final=True)
			partial = self._collect_tail(partial + text, tail)
			if on_chunk is not None and text:
				on_chunk(text)
			if partial.strip():
				tail.append(partial.strip())
			returncode = proc.wait()
		finally:
			proc.stderr.close()
			if proc.poll() is None:
				proc.kill()
				proc.wait()
		utils.report_command({
			'event': 'end',
			'command': command,
			'returncode': returncode,
			'seconds': time.time() - t0,
			'export_id': export_id,
		})
		if returncode != 0:
			raise EncodeError.nonzero_exit(step, returncode, "\n".join(tail))

	#============================
	def _collect_tail(self, text: str, tail) -> str:
		lines = re.split(r"[\r\n]", text)
		remainder = lines.pop()
		for line in lines:
			line = line.strip()
			if line:
				tail.append(line)
		if len(remainder) > MAX_PARTIAL_CHARS:
			remainder = remainder[-MAX_PARTIAL_CHARS:]
		return remainder
