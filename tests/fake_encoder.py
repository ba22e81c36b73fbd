#!/usr/bin/env python3

"""
Stand-in encoder executable for pipeline tests.

The script behaves like a tiny ffmpeg: it answers -version, prints
progress lines to stderr with carriage returns, and writes its last
argument as the output file. Environment variables steer it:

FAKE_FFMPEG_DELAY  seconds to spend per invocation
FAKE_FFMPEG_FAIL   exit 1 when any argument contains this text
FAKE_FFMPEG_LOG    append each argument list as one json line
FAKE_FFMPEG_NO_AUDIO  list no audio stream for sources containing this text
FAKE_FFMPEG_TRAILING_HEX  raw bytes written to stderr after the progress lines

A call with an input and no output lists the streams of that input and
exits 1, the way the real encoder does; such calls are not logged.
"""

# Standard Library
import json
import os
import stat
import sys

#============================================

FAKE_SCRIPT = r'''
import json
import os
import sys
import time

args = sys.argv[1:]
if '-version' in args:
	print("ffmpeg version 9.9-fake Copyright (c) trackcut tests")
	print("built with fake")
	sys.exit(0)
if '-y' not in args and args[-2:-1] == ['-i']:
	source = args[-1]
	sys.stderr.write(f"Input #0, mov,mp4,m4a,3gp,3g2,mj2, from '{source}':\n")
	sys.stderr.write("  Stream #0:0(und): Video: h264 (High), yuv420p, 320x240, 25 fps\n")
	silent_match = os.environ.get('FAKE_FFMPEG_NO_AUDIO')
	if not silent_match or silent_match not in source:
		sys.stderr.write("  Stream #0:1(und): Audio: aac (LC), 48000 Hz, stereo, fltp\n")
	sys.stderr.write("At least one output file must be specified\n")
	sys.exit(1)
log_file = os.environ.get('FAKE_FFMPEG_LOG')
if log_file:
	with open(log_file, 'a') as handle:
		handle.write(json.dumps(args) + "\n")
fail_match = os.environ.get('FAKE_FFMPEG_FAIL')
if fail_match and any(fail_match in arg for arg in args):
	sys.stderr.write("Input #0, fake\n")
	sys.stderr.write(f"{fail_match}: No such file or directory\n")
	sys.stderr.flush()
	sys.exit(1)
delay = float(os.environ.get('FAKE_FFMPEG_DELAY', '0'))
steps = 4
for step in range(1, steps + 1):
	time.sleep(delay / steps)
	frame = step * 10
	sys.stderr.write(
		f"frame={frame:5d} fps= 30 q=28.0 size=     256kB "
		f"time=00:00:0{step}.00 bitrate= 100.0kbits/s speed=1.0x\r"
	)
	sys.stderr.flush()
sys.stderr.write("\n")
trailing = os.environ.get('FAKE_FFMPEG_TRAILING_HEX')
if trailing:
	sys.stderr.flush()
	sys.stderr.buffer.write(bytes.fromhex(trailing))
	sys.stderr.buffer.flush()
with open(args[-1], 'wb') as handle:
	handle.write(b"fake media\n")
	handle.write(" ".join(args).encode("utf-8"))
'''

#============================================

def write_fake_encoder(directory: str) -> str:
	"""
	Write the fake encoder into directory and return its path.
	"""
	script_path = os.path.join(directory, "fake-ffmpeg")
	with open(script_path, "w", encoding="utf-8") as handle:
		handle.write(f"#!{sys.executable}\n")
		handle.write(FAKE_SCRIPT)
	mode = os.stat(script_path).st_mode
	os.chmod(script_path, mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
	return script_path

#============================================

def read_invocations(log_file: str) -> list:
	if not os.path.exists(log_file):
		return []
	with open(log_file, "r", encoding="utf-8") as handle:
		return [json.loads(line) for line in handle if line.strip()]
