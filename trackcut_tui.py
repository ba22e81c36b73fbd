#!/usr/bin/env python3

"""
Textual TUI wrapper for trackcut exports.
"""

# Standard Library
import argparse
import os
import re
import shlex
import sys
import threading
import time
import traceback

script_dir = os.path.dirname(os.path.abspath(__file__))
if script_dir not in sys.path:
	sys.path.insert(0, script_dir)

# PIP3 modules
from textual.app import App, ComposeResult
from textual.containers import Horizontal, Vertical
from textual.widgets import RichLog, Static
from rich.text import Text

# local repo modules
from trackcutlib.core import utils
from trackcutlib.core.loader import JobLoader
from trackcutlib.core.models import ExportState
from trackcutlib.core.orchestrator import ExportOrchestrator
from trackcutlib.media.encoder import Encoder

#============================================

NORD_COLORS = {
	'background': "#2E3440",
	'foreground': "#D8DEE9",
	'dim': "#4C566A",
	'header': "#88C0D0",
	'command': "#ECEFF4",
	'flags': "#81A1C1",
	'numbers': "#B48EAD",
	'paths': "#A3BE8C",
	'strings': "#EBCB8B",
	'error': "#BF616A",
	'warning': "#D08770",
}

#============================================

def parse_args():
	"""
	Parse command-line arguments.
	"""
	parser = argparse.ArgumentParser(description="trackcut TUI wrapper")
	parser.add_argument('-y', '--yaml', dest='yamlfile', required=True,
		help='export job yaml with the timeline and export settings')
	parser.add_argument('-o', '--output', dest='output_file',
		help='override output file from yaml')
	parser.add_argument('-c', '--cache-dir', dest='cache_dir',
		help='directory for temporary segment files')
	parser.add_argument('-f', '--ffmpeg', dest='ffmpeg_path',
		help='path to the ffmpeg executable')
	parser.add_argument('-d', '--debug', dest='debug_log', action='store_true',
		help='write debug log to trackcut_tui.log in the current directory')
	args = parser.parse_args()
	return args

#============================================

class TrackcutTuiApp(App):
	BINDINGS = [
		("c", "cancel_export", "Cancel"),
		("q", "quit", "Quit"),
	]

	CSS = """
	#root {
		height: 1fr;
	}

	#top_row {
		height: 30%;
		min-height: 8;
	}

	#left_panel {
		width: 40%;
		height: 1fr;
		border: solid gray;
	}

	#right_panel {
		width: 60%;
		height: 1fr;
		border: solid gray;
	}

	#metrics_title {
		height: 1;
		color: #88C0D0;
	}

	#metrics {
		height: 1fr;
	}

	#job_title {
		height: 1;
		color: #88C0D0;
	}

	#job_info {
		height: 1fr;
	}

	#footer_note {
		height: 1;
		color: #4C566A;
	}

	#log {
		height: 1fr;
		border: solid gray;
	}
	"""

	def __init__(self, yaml_file: str, output_override: str = None,
		cache_dir: str = None, ffmpeg_path: str = None, debug_log: bool = False):
		super().__init__()
		self.yaml_file = yaml_file
		self.output_override = output_override
		self.cache_dir = cache_dir
		self.ffmpeg_path = ffmpeg_path
		self.orchestrator = None
		self.export_id = None
		self.output_file = None
		self.quality = None
		self.state = None
		self.percent = 0.0
		self.eta_seconds = None
		self.segment_index = 0
		self.segment_count = 0
		self.current_summary = ""
		self.start_time = None
		self.finish_time = None
		self.error_text = None
		self.metrics_widget = None
		self.job_widget = None
		self.log_widget = None
		self.finished = False
		self.command_styles = self._build_command_styles()
		self.debug_mode = debug_log
		self.log_path = None
		self.log_lock = threading.Lock()
		if self.debug_mode:
			self.log_path = os.path.join(os.getcwd(), "trackcut_tui.log")
			self._reset_log()
			self._write_log(f"debug log: {self.log_path}")

	#============================
	def compose(self) -> ComposeResult:
		yield Static("TRACKCUT TUI", id="header")
		with Vertical(id="root"):
			with Horizontal(id="top_row"):
				with Vertical(id="left_panel"):
					yield Static("Dashboard", id="metrics_title")
					yield Static("", id="metrics")
					yield Static("Press c to cancel, q to quit", id="footer_note")
				with Vertical(id="right_panel"):
					yield Static("Export job", id="job_title")
					yield Static("", id="job_info")
			yield RichLog(id="log", wrap=True, highlight=False)

	#============================
	def on_mount(self) -> None:
		self.metrics_widget = self.query_one("#metrics", Static)
		self.job_widget = self.query_one("#job_info", Static)
		self.log_widget = self.query_one(RichLog)
		self.start_time = time.time()
		self._update_job_info()
		if self.debug_mode and self.log_widget is not None and self.log_path is not None:
			self.log_widget.write(f"debug log: {self.log_path}")
		thread = threading.Thread(target=self._run_export, daemon=True)
		thread.start()
		self.set_interval(0.5, self._refresh_status)

	#============================
	def _refresh_status(self) -> None:
		self._update_metrics()

	#============================
	def action_cancel_export(self) -> None:
		if self.orchestrator is None or self.export_id is None or self.finished:
			return
		self.log_widget.write(Text("cancelling export...",
			style=f"bold {NORD_COLORS['warning']}"))
		self._write_log(f"cancel requested: {self.export_id}")
		self.orchestrator.cancel_export(self.export_id)

	#============================
	def _run_export(self) -> None:
		utils.set_quiet_mode(True)
		utils.set_command_reporter(self._report_command)
		try:
			loader = JobLoader(self.yaml_file, output_override=self.output_override)
			job = loader.load()
			self.output_file = job.config.output_path
			self.quality = job.config.quality
			self.call_from_thread(self._update_job_info)
			encoder = Encoder(self.ffmpeg_path or job.ffmpeg_path)
			version = encoder.validate()
			self.call_from_thread(self._show_encoder_version, version)
			self.orchestrator = ExportOrchestrator(encoder=encoder,
				workspace_dir=self.cache_dir)
			self.export_id = self.orchestrator.start_export(job.config, job.timeline)
			self.call_from_thread(self._update_job_info)
			for event in self.orchestrator.channel(self.export_id):
				self.call_from_thread(self._handle_export_event, event)
			result = self.orchestrator.wait(self.export_id)
			if result is not None and result.state == ExportState.FAILED:
				self.call_from_thread(self._set_error, result.error)
		except Exception as exc:
			self.call_from_thread(self._set_error, str(exc), traceback.format_exc())
		finally:
			utils.clear_command_reporter()
			utils.set_quiet_mode(False)
			self.call_from_thread(self._finish)

	#============================
	def _show_encoder_version(self, version: str) -> None:
		self._write_log(f"encoder: {version}")
		if self.log_widget is not None:
			self.log_widget.write(Text(version, style=NORD_COLORS['dim']))

	#============================
	def _handle_export_event(self, event) -> None:
		self.state = event.state
		self.segment_index = event.segment_index
		self.segment_count = event.segment_count
		if event.progress is not None:
			self.percent = event.progress.percent
			self.eta_seconds = event.progress.eta
		if event.is_terminal:
			self._write_log(f"{event.kind}: {self.export_id}")
		self._update_metrics()

	#============================
	def _set_error(self, text: str, trace_text: str = None) -> None:
		self.error_text = text
		if trace_text:
			self._write_log(trace_text)
		if self.log_widget is not None:
			self.log_widget.write(
				Text(f"error: {text}", style=f"bold {NORD_COLORS['error']}")
			)

	#============================
	def _finish(self) -> None:
		if self.log_widget is None or self.metrics_widget is None:
			return
		self.finished = True
		if self.start_time is not None and self.finish_time is None:
			self.finish_time = time.time() - self.start_time
		if self.state == ExportState.COMPLETED:
			self._write_complete_banner()
			self.log_widget.write(f"complete: {self.output_file}")
			self._write_log(f"complete: {self.output_file}")
		elif self.state == ExportState.CANCELLED:
			self.log_widget.write(Text("cancelled", style=f"bold {NORD_COLORS['warning']}"))
			self._write_log("cancelled")
		else:
			self.log_widget.write("complete with errors")
			self._write_log("complete with errors")
		self._update_metrics()

	#============================
	def _report_command(self, event: dict) -> None:
		self.call_from_thread(self._handle_command_event, event)

	#============================
	def _handle_command_event(self, event: dict) -> None:
		if self.log_widget is None:
			return
		event_type = event.get('event')
		command = event.get('command', '')
		summary = self._summarize_command(command)
		if event_type == 'start':
			self.current_summary = summary
			prefix = utils.command_prefix(event.get('index'), event.get('total'))
			if prefix:
				self.log_widget.write("")
				self.log_widget.write(Text(prefix, style=f"bold {NORD_COLORS['header']}"))
			self.log_widget.write(self._highlight_command(command))
			self._write_log(f"start: {command}")
		if event_type == 'end' and event.get('returncode', 0) != 0:
			code = event.get('returncode')
			self.log_widget.write(
				Text(f"error ({code}): {summary}", style=f"bold {NORD_COLORS['error']}")
			)
			self._write_log(f"error ({code}): {command}")
		if event_type == 'end' and event.get('returncode', 0) == 0:
			seconds = event.get('seconds', 0.0)
			self._write_log(f"end ({seconds:.3f}s): {command}")
		self._update_metrics()

	#============================
	def _write_log(self, message: str) -> None:
		if not self.debug_mode or self.log_path is None:
			return
		timestamp = time.strftime("%Y-%m-%d %H:%M:%S")
		line = f"[{timestamp}] {message}\n"
		with self.log_lock:
			with open(self.log_path, "a", encoding="utf-8") as handle:
				handle.write(line)

	#============================
	def _reset_log(self) -> None:
		if not self.debug_mode or self.log_path is None:
			return
		with self.log_lock:
			with open(self.log_path, "w", encoding="utf-8"):
				return

	#============================
	def _summarize_command(self, command: str) -> str:
		if command is None or command == "":
			return "command"
		try:
			parts = shlex.split(command)
		except ValueError:
			return command
		if len(parts) == 0:
			return command
		tool = os.path.basename(parts[0])
		if len(parts) > 1:
			output_file = os.path.basename(parts[-1])
			return f"{tool}: {output_file}"
		return f"{tool}: {command}"

	#============================
	def _status_text(self) -> str:
		if self.error_text is not None:
			return "failed"
		if self.state is None:
			return "starting"
		return self.state.value

	#============================
	def _update_metrics(self) -> None:
		if self.metrics_widget is None:
			return
		if self.start_time is None:
			elapsed = 0.0
		elif self.finished:
			elapsed = self.finish_time or (time.time() - self.start_time)
		else:
			elapsed = time.time() - self.start_time
		status = self._status_text()
		metrics = Text()
		status_style = NORD_COLORS['foreground']
		if status == "failed":
			status_style = NORD_COLORS['error']
		elif status == "cancelled":
			status_style = NORD_COLORS['warning']
		elif status == "completed":
			status_style = NORD_COLORS['paths']
		metrics.append("Status: ", style=NORD_COLORS['dim'])
		metrics.append(status, style=status_style)
		metrics.append("\n")
		metrics.append("Elapsed: ", style=NORD_COLORS['dim'])
		metrics.append(self._format_duration(elapsed), style=NORD_COLORS['numbers'])
		metrics.append("\n")
		metrics.append("Segment: ", style=NORD_COLORS['dim'])
		metrics.append(f"{self.segment_index}", style=NORD_COLORS['numbers'])
		if self.segment_count:
			metrics.append(f"/{self.segment_count}", style=NORD_COLORS['numbers'])
		metrics.append(" | ", style=NORD_COLORS['dim'])
		metrics.append(f"{self.percent:.1f}%", style=NORD_COLORS['numbers'])
		metrics.append(" | ETA: ", style=NORD_COLORS['dim'])
		eta_text = self._eta_text()
		eta_style = NORD_COLORS['numbers']
		if eta_text == "N/A":
			eta_style = NORD_COLORS['dim']
		metrics.append(eta_text, style=eta_style)
		metrics.append("\n")
		metrics.append("Current: ", style=NORD_COLORS['dim'])
		metrics.append(self.current_summary, style=NORD_COLORS['foreground'])
		self.metrics_widget.update(metrics)

	#============================
	def _eta_text(self) -> str:
		if self.finished or self.eta_seconds is None:
			return "N/A"
		if self.percent <= 0.0:
			return "N/A"
		return self._format_duration_estimate(self.eta_seconds)

	#============================
	def _update_job_info(self) -> None:
		if self.job_widget is None:
			return
		job = Text()
		job.append("YAML: ", style=NORD_COLORS['dim'])
		job.append(self.yaml_file, style=NORD_COLORS['paths'])
		job.append("\n")
		output_value = self.output_override or self.output_file or "N/A"
		job.append("Output: ", style=NORD_COLORS['dim'])
		output_style = NORD_COLORS['paths']
		if output_value == "N/A":
			output_style = NORD_COLORS['dim']
		job.append(output_value, style=output_style)
		job.append("\n")
		job.append("Quality: ", style=NORD_COLORS['dim'])
		job.append(self.quality or "N/A", style=NORD_COLORS['foreground'])
		job.append("\n")
		cache_value = self.cache_dir or "default"
		job.append("Cache: ", style=NORD_COLORS['dim'])
		cache_style = NORD_COLORS['paths']
		if cache_value == "default":
			cache_style = NORD_COLORS['dim']
		job.append(cache_value, style=cache_style)
		if self.export_id is not None:
			job.append("\n")
			job.append("Export id: ", style=NORD_COLORS['dim'])
			job.append(self.export_id, style=NORD_COLORS['strings'])
		if self.debug_mode and self.log_path is not None:
			job.append("\n")
			job.append("Debug log: ", style=NORD_COLORS['dim'])
			job.append(self.log_path, style=NORD_COLORS['paths'])
		self.job_widget.update(job)

	#============================
	def _build_command_styles(self) -> list:
		return [
			(re.compile(r"\blibx265\b|\blibx264\b|\blibvpx-vp9\b|\baac\b"),
				NORD_COLORS['foreground']),
			(re.compile(r"--?[A-Za-z0-9][A-Za-z0-9_:-]*"), NORD_COLORS['flags']),
			(re.compile(r"\b\d+\.\d+\b"), NORD_COLORS['numbers']),
			(re.compile(r"\b\d+\b(?!\.\d)"), NORD_COLORS['numbers']),
			(re.compile(r"'[^']*'|\"[^\"]*\""), NORD_COLORS['strings']),
			(re.compile(r"(?:/|~|\./|\.\./)[^\s'\"`]+"), NORD_COLORS['paths']),
		]

	#============================
	def _highlight_command(self, command: str):
		if command is None or command == "":
			return ""
		text = Text(command, style=f"bold {NORD_COLORS['command']}")
		for pattern, style in self.command_styles:
			for match in pattern.finditer(command):
				text.stylize(style, match.start(), match.end())
		return text

	#============================
	def _write_complete_banner(self) -> None:
		if self.log_widget is None:
			return
		lines = [
			"  ____   ___  _   _ _____ ",
			" |  _ \\ / _ \\| \\ | | ____|",
			" | | | | | | |  \\| |  _|  ",
			" | |_| | |_| | |\\  | |___ ",
			" |____/ \\___/|_| \\_|_____|",
		]
		self.log_widget.write("")
		for line in lines:
			self.log_widget.write(line)
		self._write_log("complete banner")

	#============================
	def _format_duration(self, seconds: float) -> str:
		if seconds < 60:
			return f"{seconds:.1f}s"
		minutes = int(seconds // 60)
		remaining = seconds - (minutes * 60)
		seconds_text = f"{remaining:04.1f}"
		if minutes < 60:
			return f"{minutes}m {seconds_text}s"
		hours = int(minutes // 60)
		minutes = minutes - (hours * 60)
		return f"{hours}h {minutes:02d}m {seconds_text}s"

	#============================
	def _format_duration_estimate(self, seconds: float) -> str:
		rounded = int(seconds)
		if seconds > rounded:
			rounded += 1
		if rounded < 60:
			return f"{rounded:d}s"
		minutes = rounded // 60
		remaining = rounded - (minutes * 60)
		if minutes < 60:
			return f"{minutes}m {remaining:02d}s"
		hours = minutes // 60
		minutes = minutes - (hours * 60)
		return f"{hours}h {minutes:02d}m {remaining:02d}s"

#============================================

def main():
	args = parse_args()
	sys.argv = [arg for arg in sys.argv if arg not in ("-d", "--debug")]
	app = TrackcutTuiApp(args.yamlfile,
		output_override=args.output_file,
		cache_dir=args.cache_dir,
		ffmpeg_path=args.ffmpeg_path,
		debug_log=args.debug_log)
	app.run()

#============================================

if __name__ == '__main__':
	main()
