"""
Parser for the runtime's raw event stream.
Chunks do not respect message boundaries: one chunk can hold several
events, half an event, or garbage.
"""
import codecs
import json
import logging
from typing import Any, Dict, List, Optional, Union

logger = logging.getLogger(__name__)

DEFAULT_MAX_BUFFER = 1024 * 1024


class EventStreamParser:
    """
    Incremental decoder for newline or chunk delimited JSON events.
    """
    def __init__(self, max_buffer: int = DEFAULT_MAX_BUFFER):
        """
        Initializes the parser.

        :param max_buffer: Characters kept while waiting for the rest of an event.
        """
        self.max_buffer = max_buffer
        self._buffer = ""
        self._decoder = json.JSONDecoder()
        self._text = codecs.getincrementaldecoder("utf-8")(errors="replace")

    def feed(self, chunk: Union[bytes, str]) -> List[Dict[str, Any]]:
        """
        Feeds one chunk and returns the events completed by it.

        Undecodable lines are logged and skipped. A trailing partial event
        stays buffered until the next chunk.

        :param chunk: Raw bytes or text from the stream.
        :return: Decoded event objects, in stream order.
        """
        if isinstance(chunk, bytes):
            chunk = self._text.decode(chunk)
        buffer = self._buffer + chunk
        events: List[Dict[str, Any]] = []
        pos = 0
        length = len(buffer)

        while True:
            while pos < length and buffer[pos].isspace():
                pos += 1
            if pos >= length:
                break
            try:
                event, end = self._decoder.raw_decode(buffer, pos)
            except json.JSONDecodeError:
                newline = buffer.find("\n", pos)
                if newline == -1:
                    # Possibly an event split across chunks
                    break
                logger.warning("Skipping undecodable event data: %r", buffer[pos:newline][:200])
                pos = newline + 1
                continue
            if isinstance(event, dict):
                events.append(event)
            else:
                logger.debug("Ignoring non-object event: %r", event)
            pos = end

        self._buffer = buffer[pos:]
        if len(self._buffer) > self.max_buffer:
            logger.warning("Discarding %d characters of undecodable event data", len(self._buffer))
            self._buffer = ""
        return events

    @property
    def pending(self) -> str:
        return self._buffer

    def reset(self) -> None:
        self._buffer = ""
        self._text.reset()


def is_container_event(event: Dict[str, Any]) -> bool:
    return event.get("Type") == "container"


def event_action(event: Dict[str, Any]) -> Optional[str]:
    return event.get("Action") or event.get("status")


def event_container_id(event: Dict[str, Any]) -> Optional[str]:
    actor = event.get("Actor") or {}
    return actor.get("ID") or event.get("id")
