#!/usr/bin/env python3

import argparse
import signal
import sys
import yaml
from tqdm import tqdm
from trackcutlib.core import utils
from trackcutlib.core.errors import EncodeError
from trackcutlib.core.events import build_events
from trackcutlib.core.events import timeline_duration
from trackcutlib.core.loader import JobLoader
from trackcutlib.core.models import ExportState
from trackcutlib.core.orchestrator import ExportOrchestrator
from trackcutlib.core.presets import QUALITY_PRESETS
from trackcutlib.media.encoder import Encoder

#============================================

EXIT_SUCCESS = 0
EXIT_FAILURE = 1
EXIT_CANCELLED = 130

#============================================

def parse_args(argv: list = None):
	"""
	Parse command-line arguments.
	"""
	parser = argparse.ArgumentParser(description="Multi-track timeline exporter")
	parser.add_argument('-y', '--yaml', dest='yamlfile', required=True,
		help='export job yaml with the timeline and export settings')
	parser.add_argument('-o', '--output', dest='output_file',
		help='override output file from yaml')
	parser.add_argument('-q', '--quality', dest='quality',
		choices=list(QUALITY_PRESETS),
		help='override quality preset from yaml')
	parser.add_argument('-c', '--cache-dir', dest='cache_dir',
		help='directory for temporary segment files')
	parser.add_argument('-f', '--ffmpeg', dest='ffmpeg_path',
		help='path to the ffmpeg executable')
	parser.add_argument('-n', '--dry-run', dest='dry_run', action='store_true',
		help='build the event list only, do not render')
	parser.add_argument('-p', '--dump-events', dest='dump_events', action='store_true',
		help='print the resolved event list as yaml')
	args = parser.parse_args(argv)
	return args

#============================================

def event_to_dict(event) -> dict:
	entry = {
		'kind': event.kind,
		'start': round(event.start_time, 6),
		'end': round(event.end_time, 6),
	}
	if event.kind == 'clip':
		entry['file'] = event.source_file
		entry['in'] = round(event.trim_in, 6)
		entry['out'] = round(event.trim_out, 6)
		entry['track'] = event.track_id
		entry['clip'] = event.clip_id
	return entry

#============================================

def dump_events(events: list) -> str:
	plan = {
		'duration': round(timeline_duration(events), 6),
		'events': [event_to_dict(event) for event in events],
	}
	return yaml.safe_dump(plan, sort_keys=False)

#============================================

def run_export(orchestrator: ExportOrchestrator, job) -> int:
	export_id = orchestrator.start_export(job.config, job.timeline)
	channel = orchestrator.channel(export_id)

	def _cancel(signum, frame):
		orchestrator.cancel_export(export_id)

	previous_handler = signal.signal(signal.SIGINT, _cancel)
	terminal = None
	try:
		with tqdm(total=100.0, unit='%', desc=export_id,
			bar_format="{l_bar}{bar}| {n:.1f}/{total:.0f}% {postfix}") as bar:
			for event in channel:
				if event.progress is not None:
					bar.n = event.progress.percent
					bar.set_postfix_str(
						f"segment {event.segment_index}/{event.segment_count} "
						f"eta {utils.format_eta(event.progress.eta)}"
					)
					bar.refresh()
				if event.is_terminal:
					terminal = event
	finally:
		signal.signal(signal.SIGINT, previous_handler)
	result = orchestrator.wait(export_id)
	if terminal is None or result is None:
		print("export ended without a result")
		return EXIT_FAILURE
	if result.state == ExportState.COMPLETED:
		print(f"wrote {result.output_path} ({result.file_size} bytes, "
			f"{result.duration:.1f}s)")
		return EXIT_SUCCESS
	if result.state == ExportState.CANCELLED:
		print("export cancelled")
		return EXIT_CANCELLED
	print(f"export failed: {result.error}")
	return EXIT_FAILURE

#============================================

def main(argv: list = None) -> int:
	args = parse_args(argv)
	loader = JobLoader(args.yamlfile, output_override=args.output_file,
		quality_override=args.quality)
	job = loader.load()
	if args.dump_events or args.dry_run:
		events = build_events(job.timeline.clips())
		if args.dump_events:
			print(dump_events(events))
		else:
			print(f"{len(events)} events, {timeline_duration(events):.3f}s")
		return EXIT_SUCCESS
	encoder = Encoder(args.ffmpeg_path or job.ffmpeg_path)
	try:
		version = encoder.validate()
	except EncodeError as exc:
		print(f"encoder check failed: {exc}")
		return EXIT_FAILURE
	utils.log_message(f"using {version}")
	# progress bar replaces the per-command console lines
	utils.set_quiet_mode(True)
	orchestrator = ExportOrchestrator(encoder=encoder,
		workspace_dir=args.cache_dir)
	try:
		return run_export(orchestrator, job)
	finally:
		utils.set_quiet_mode(False)


if __name__ == '__main__':
	sys.exit(main())
