# backend/services/stream_parser.py
"""
Marker Stream Parser

Splits a streamed voice response of the form

    [FEEDBACK: Good.] [QUESTION: How did you size the Kafka cluster?]

into its feedback and question segments while tokens are still arriving.

The parser is a three-state machine (SEEKING, IN_FEEDBACK, IN_QUESTION) fed one
token at a time. Markers are matched case-insensitively and may be split across
any number of tokens. A `]` closes the current segment unless it balances a
literal `[` opened inside it, so code like `arr[i]` survives. Each character
is examined once, so the accumulated buffer is never rescanned.
"""

from enum import Enum
from typing import List, NamedTuple, Optional


class ParserState(str, Enum):
    SEEKING = "seeking"
    IN_FEEDBACK = "in_feedback"
    IN_QUESTION = "in_question"


FEEDBACK_MARKER = "[feedback:"
QUESTION_MARKER = "[question:"

_MARKERS = {
    FEEDBACK_MARKER: ParserState.IN_FEEDBACK,
    QUESTION_MARKER: ParserState.IN_QUESTION,
}


class ParsedResponse(NamedTuple):
    feedback: str
    question: str
    full_text: str


class MarkerStreamParser:
    """
    Incremental parser for one streamed response.

    Text outside any marker is kept separately and used as the question when
    the model never emits a QUESTION marker.
    """

    def __init__(self):
        self.state = ParserState.SEEKING
        self._pending = ""
        self._feedback: List[str] = []
        self._question: List[str] = []
        self._unmarked: List[str] = []
        self._full: List[str] = []
        self._saw_question_marker = False
        # Literal brackets open inside the current segment
        self._depth = 0

    def feed(self, token: str) -> None:
        """Consume the next streamed token."""
        if not token:
            return
        self._full.append(token)
        for char in token:
            self._consume(char)

    def _consume(self, char: str) -> None:
        if self._pending or char == "[":
            self._pending += char
            self._match_pending()
            return

        if char == "]" and self.state != ParserState.SEEKING:
            if self._depth:
                self._depth -= 1
                self._sink().append(char)
                return
            self.state = ParserState.SEEKING
            return

        self._sink().append(char)

    def _match_pending(self) -> None:
        candidate = self._pending.lower()
        for marker, target in _MARKERS.items():
            if candidate == marker:
                self._pending = ""
                self.state = target
                self._depth = 0
                if target == ParserState.IN_QUESTION:
                    self._saw_question_marker = True
                return
            if marker.startswith(candidate):
                return

        # Not a marker: release the held characters as ordinary text
        held, self._pending = self._pending, ""
        first, rest = held[0], held[1:]
        if self.state != ParserState.SEEKING:
            self._depth += 1
        self._sink().append(first)
        for char in rest:
            self._consume(char)

    def _sink(self) -> List[str]:
        if self.state == ParserState.IN_FEEDBACK:
            return self._feedback
        if self.state == ParserState.IN_QUESTION:
            return self._question
        return self._unmarked

    def finish(self) -> ParsedResponse:
        """Flush held characters and return the parsed segments."""
        if self._pending:
            held, self._pending = self._pending, ""
            self._sink().append(held)

        feedback = "".join(self._feedback).strip()
        question = "".join(self._question).strip()
        if not self._saw_question_marker:
            question = "".join(self._unmarked).strip()
        return ParsedResponse(feedback=feedback, question=question, full_text="".join(self._full))


def parse_marked_response(text: Optional[str]) -> ParsedResponse:
    """Parse a complete (non-streamed) response."""
    parser = MarkerStreamParser()
    parser.feed(text or "")
    return parser.finish()
