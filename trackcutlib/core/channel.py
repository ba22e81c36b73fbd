#!/usr/bin/env python3

import threading
import time
from trackcutlib.core.errors import ChannelClosedError
from trackcutlib.core.models import ExportEvent

#============================================

class ExportChannel():
	"""
	Ordered event stream for one export: one producer, any number of readers.

	Events are kept for the life of the channel, so a reader that subscribes
	late still sees the whole stream. The channel closes itself after the
	terminal event and rejects anything published afterwards.
	"""
	def __init__(self, export_id: str):
		self.export_id = export_id
		self._events = []
		self._closed = False
		self._condition = threading.Condition()

	#============================
	@property
	def closed(self) -> bool:
		with self._condition:
			return self._closed

	#============================
	def publish(self, event: ExportEvent) -> None:
		with self._condition:
			if self._closed:
				raise ChannelClosedError(f"channel for {self.export_id} is closed")
			self._events.append(event)
			if event.is_terminal:
				self._closed = True
			self._condition.notify_all()

	#============================
	def close(self) -> None:
		with self._condition:
			self._closed = True
			self._condition.notify_all()

	#============================
	def snapshot(self) -> list:
		with self._condition:
			return list(self._events)

	#============================
	def terminal_event(self):
		with self._condition:
			if len(self._events) > 0 and self._events[-1].is_terminal:
				return self._events[-1]
			return None

	#============================
	def wait_terminal(self, timeout: float = None):
		deadline = None
		if timeout is not None:
			deadline = time.monotonic() + timeout
		with self._condition:
			while not self._closed:
				remaining = None
				if deadline is not None:
					remaining = deadline - time.monotonic()
					if remaining <= 0:
						break
				self._condition.wait(remaining)
			if len(self._events) > 0 and self._events[-1].is_terminal:
				return self._events[-1]
			return None

	#============================
	def events(self, timeout: float = None):
		"""
		Yield events in publish order until the channel closes.

		timeout bounds the wait for each next event; on expiry the
		generator stops early.
		"""
		index = 0
		while True:
			with self._condition:
				while index >= len(self._events) and not self._closed:
					if not self._condition.wait(timeout):
						return
				if index >= len(self._events):
					return
				event = self._events[index]
			index += 1
			yield event

	#============================
	def __iter__(self):
		return self.events()
