#!/usr/bin/env python3

from dataclasses import replace
from trackcutlib.core.errors import EventBuildError
from trackcutlib.core.models import Clip
from trackcutlib.core.models import ClipEvent
from trackcutlib.core.models import GapEvent

#============================================

TIME_EPSILON = 1e-6
DURATION_TOLERANCE = 1e-3

#============================================

def build_events(clips) -> list:
	"""
	Resolve track overlaps and gaps into one ordered list of clip and gap events.
	"""
	builder = EventBuilder()
	return builder.build(clips)

#============================================

def timeline_duration(events: list) -> float:
	if len(events) == 0:
		return 0.0
	return events[-1].end_time

#============================================

class EventBuilder():
	"""
	Overlap resolution is one-directional: a clip resolved earlier is never
	truncated again by a later, higher-track clip. The gap pass then clamps
	the later clip so earlier-resolved clips keep their range.
	"""

	#============================
	def build(self, clips) -> list:
		clip_list = list(clips)
		for clip in clip_list:
			self._validate_clip(clip)
		ordered = sorted(clip_list, key=self._sort_key)
		resolved = self._resolve_overlaps(ordered)
		return self._fill_gaps(resolved)

	#============================
	def _validate_clip(self, clip: Clip) -> None:
		if not isinstance(clip, Clip):
			raise EventBuildError(f"expected Clip, got {type(clip).__name__}")
		if clip.trim_out <= clip.trim_in:
			raise EventBuildError(f"clip {clip.id} requires trim_in < trim_out")
		if clip.end_time <= clip.start_time:
			raise EventBuildError(f"clip {clip.id} requires start_time < end_time")
		if clip.start_time < 0 or clip.trim_in < 0:
			raise EventBuildError(f"clip {clip.id} has a negative time value")
		timeline_length = clip.end_time - clip.start_time
		source_length = clip.trim_out - clip.trim_in
		if abs(timeline_length - source_length) > DURATION_TOLERANCE:
			raise EventBuildError(
				f"clip {clip.id} timeline duration {timeline_length:.3f}s does not "
				f"match trimmed source duration {source_length:.3f}s"
			)

	#============================
	def _sort_key(self, clip: Clip) -> tuple:
		return (clip.start_time, -clip.track_number, clip.end_time,
			clip.track_id, clip.id, clip.source_file, clip.trim_in)

	#============================
	def _resolve_overlaps(self, ordered: list) -> list:
		resolved = []
		for candidate in ordered:
			current = self._resolve_candidate(candidate, resolved)
			if current is not None:
				resolved.append(current)
		return resolved

	#============================
	def _resolve_candidate(self, candidate: Clip, resolved: list):
		current = candidate
		for other in resolved:
			if not self._intersects(current, other):
				continue
			if current.track_number > other.track_number:
				continue
			if self._covers(other, current):
				return None
			current = self._truncate(current, other)
			if current.duration <= TIME_EPSILON:
				return None
		return current

	#============================
	def _intersects(self, clip: Clip, other: Clip) -> bool:
		if clip.start_time >= other.end_time - TIME_EPSILON:
			return False
		if other.start_time >= clip.end_time - TIME_EPSILON:
			return False
		return True

	#============================
	def _covers(self, outer: Clip, inner: Clip) -> bool:
		if outer.start_time > inner.start_time + TIME_EPSILON:
			return False
		if outer.end_time < inner.end_time - TIME_EPSILON:
			return False
		return True

	#============================
	def _truncate(self, clip: Clip, other: Clip) -> Clip:
		if other.start_time <= clip.start_time < other.end_time:
			return self._shift_start(clip, other.end_time)
		if other.start_time < clip.end_time <= other.end_time:
			return self._shift_end(clip, other.start_time)
		# clip strictly contains other; keep the leading part
		return self._shift_end(clip, other.start_time)

	#============================
	def _shift_start(self, clip: Clip, new_start: float) -> Clip:
		delta = new_start - clip.start_time
		return replace(clip, start_time=new_start, trim_in=clip.trim_in + delta)

	#============================
	def _shift_end(self, clip: Clip, new_end: float) -> Clip:
		delta = clip.end_time - new_end
		return replace(clip, end_time=new_end, trim_out=clip.trim_out - delta)

	#============================
	def _fill_gaps(self, resolved: list) -> list:
		events = []
		cursor = 0.0
		for clip in sorted(resolved, key=self._sort_key):
			if clip.start_time < cursor:
				if clip.end_time <= cursor + TIME_EPSILON:
					continue
				clip = self._shift_start(clip, cursor)
			if clip.start_time > cursor + TIME_EPSILON:
				events.append(GapEvent(start_time=cursor, end_time=clip.start_time))
			events.append(ClipEvent(
				start_time=clip.start_time,
				end_time=clip.end_time,
				source_file=clip.source_file,
				trim_in=clip.trim_in,
				trim_out=clip.trim_out,
				track_id=clip.track_id,
				clip_id=clip.id,
			))
			cursor = clip.end_time
		return events
