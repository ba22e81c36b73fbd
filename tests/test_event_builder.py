#!/usr/bin/env python3

"""
Unit tests for timeline event building.
"""

# Standard Library
import os
import random
import sys

import pytest

REPO_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if REPO_ROOT not in sys.path:
	sys.path.insert(0, REPO_ROOT)

from trackcutlib.core.errors import EventBuildError
from trackcutlib.core.events import build_events
from trackcutlib.core.events import timeline_duration
from trackcutlib.core.models import Clip
from trackcutlib.core.models import Timeline
from trackcutlib.core.models import Track

#============================================

def _clip(clip_id: str, start: float, end: float, track: int = 1,
	trim_in: float = 0.0) -> Clip:
	return Clip(
		id=clip_id,
		source_file=f"{clip_id}.mp4",
		start_time=start,
		end_time=end,
		trim_in=trim_in,
		trim_out=trim_in + (end - start),
		track_id=f"t{track}",
		track_number=track,
	)

#============================================

def _summary(events: list) -> list:
	rows = []
	for event in events:
		if event.kind == 'gap':
			rows.append(('gap', event.start_time, event.end_time))
		else:
			rows.append((event.clip_id, event.start_time, event.end_time))
	return rows

#============================================

def _assert_tiles(events: list) -> None:
	cursor = 0.0
	for event in events:
		assert event.start_time == pytest.approx(cursor)
		assert event.end_time > event.start_time
		cursor = event.end_time

#============================================

def test_empty_input_yields_no_events() -> None:
	assert build_events([]) == []
	assert timeline_duration([]) == 0.0

#============================================

def test_single_clip_at_zero() -> None:
	events = build_events([_clip('a', 0.0, 5.0)])
	assert _summary(events) == [('a', 0.0, 5.0)]
	assert events[0].source_file == "a.mp4"
	assert events[0].trim_in == 0.0
	assert events[0].trim_out == 5.0

#============================================

def test_leading_gap_is_filled() -> None:
	events = build_events([_clip('a', 2.0, 4.0)])
	assert _summary(events) == [('gap', 0.0, 2.0), ('a', 2.0, 4.0)]

#============================================

def test_gap_between_clips() -> None:
	events = build_events([_clip('b', 4.0, 6.0), _clip('a', 0.0, 2.0)])
	assert _summary(events) == [('a', 0.0, 2.0), ('gap', 2.0, 4.0), ('b', 4.0, 6.0)]
	assert timeline_duration(events) == 6.0

#============================================

def test_higher_track_clip_hides_later_lower_clip_start() -> None:
	events = build_events([_clip('low', 3.0, 8.0, track=1),
		_clip('high', 0.0, 5.0, track=2)])
	assert _summary(events) == [('high', 0.0, 5.0), ('low', 5.0, 8.0)]
	# trim_in moves with the truncated start
	assert events[1].trim_in == pytest.approx(2.0)
	assert events[1].trim_out == pytest.approx(5.0)

#============================================

def test_same_start_higher_track_wins() -> None:
	events = build_events([_clip('low', 0.0, 10.0, track=1),
		_clip('high', 0.0, 4.0, track=2)])
	assert _summary(events) == [('high', 0.0, 4.0), ('low', 4.0, 10.0)]
	assert events[1].trim_in == pytest.approx(4.0)

#============================================

def test_fully_covered_lower_clip_is_dropped() -> None:
	events = build_events([_clip('high', 0.0, 10.0, track=2),
		_clip('low', 2.0, 4.0, track=1)])
	assert _summary(events) == [('high', 0.0, 10.0)]

#============================================

def test_equal_tracks_truncate_later_clip() -> None:
	events = build_events([_clip('a', 0.0, 5.0), _clip('b', 3.0, 8.0)])
	assert _summary(events) == [('a', 0.0, 5.0), ('b', 5.0, 8.0)]
	assert events[1].trim_in == pytest.approx(2.0)

#============================================

def test_earlier_lower_clip_keeps_range_over_later_higher_clip() -> None:
	events = build_events([_clip('a', 0.0, 10.0, track=1),
		_clip('b', 5.0, 8.0, track=2)])
	assert _summary(events) == [('a', 0.0, 10.0)]

#============================================

def test_later_higher_clip_is_clamped_after_earlier_clip() -> None:
	events = build_events([_clip('a', 0.0, 5.0, track=1),
		_clip('b', 3.0, 8.0, track=2)])
	assert _summary(events) == [('a', 0.0, 5.0), ('b', 5.0, 8.0)]
	assert events[1].trim_in == pytest.approx(2.0)
	_assert_tiles(events)

#============================================

def test_result_does_not_depend_on_input_order() -> None:
	clips = [
		_clip('a', 0.0, 3.0, track=1),
		_clip('b', 2.0, 6.0, track=2),
		_clip('c', 5.0, 9.0, track=1),
		_clip('d', 5.0, 7.0, track=3),
		_clip('e', 11.0, 12.5, track=2),
		_clip('f', 8.0, 9.5, track=2),
	]
	expected = build_events(clips)
	shuffler = random.Random(7)
	for _ in range(20):
		shuffled = list(clips)
		shuffler.shuffle(shuffled)
		assert build_events(shuffled) == expected
	_assert_tiles(expected)

#============================================

def test_events_tile_the_timeline() -> None:
	clips = [
		_clip('a', 1.0, 3.0, track=1),
		_clip('b', 2.5, 4.0, track=2),
		_clip('c', 3.5, 7.0, track=1),
		_clip('d', 9.0, 10.0, track=4),
	]
	events = build_events(clips)
	_assert_tiles(events)
	assert timeline_duration(events) == pytest.approx(10.0)
	for event in events:
		if event.kind == 'clip':
			assert event.trim_out - event.trim_in == pytest.approx(event.duration)

#============================================

def test_timeline_clips_carry_track_number() -> None:
	timeline = Timeline(tracks=(
		Track(id="main", number=1, clips=(Clip('a', 'a.mp4', 0.0, 4.0, 0.0, 4.0),)),
		Track(id="overlay", number=2, clips=(Clip('b', 'b.mp4', 0.0, 2.0, 1.0, 3.0),)),
	))
	events = build_events(timeline.clips())
	assert _summary(events) == [('b', 0.0, 2.0), ('a', 2.0, 4.0)]
	assert events[0].track_id == "overlay"
	assert events[0].trim_in == 1.0

#============================================

@pytest.mark.parametrize("bad_clip", [
	Clip('x', 'x.mp4', 0.0, 2.0, 3.0, 3.0),
	Clip('x', 'x.mp4', 2.0, 2.0, 0.0, 1.0),
	Clip('x', 'x.mp4', -1.0, 1.0, 0.0, 2.0),
	Clip('x', 'x.mp4', 0.0, 2.0, 0.0, 5.0),
])
def test_invalid_clip_raises(bad_clip) -> None:
	with pytest.raises(EventBuildError):
		build_events([bad_clip])

#============================================

def test_non_clip_input_raises() -> None:
	with pytest.raises(EventBuildError):
		build_events([{'start': 0, 'end': 1}])
