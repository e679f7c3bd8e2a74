# backend/services/live_transcription.py
"""
Live Transcription Service

Streams raw 16 kHz linear PCM audio to Deepgram's live speech-to-text API over
a websocket and reports transcripts back through callbacks.

Key Features:
- Partial (interim) transcripts for live captioning
- Final transcripts only when Deepgram marks the end of an utterance
- Explicit CloseStream on finish so Deepgram flushes pending audio
- Listener runs as its own task; errors are reported, never raised into the caller
"""

import asyncio
import json
import logging
from typing import Awaitable, Callable, Optional

import websockets

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

TranscriptCallback = Callable[[str], Awaitable[None]]
ErrorCallback = Callable[[str], Awaitable[None]]


class TranscriptionError(RuntimeError):
    """The live transcription stream could not be opened or broke mid-session."""


class LiveTranscriber:
    """
    One Deepgram live transcription stream.

    Attributes:
        api_key: Deepgram API key
        on_partial: Awaited with interim transcript text
        on_final: Awaited with the transcript of a finished utterance
        on_error: Awaited with a short message when the stream fails
    """

    URL = (
        "wss://api.deepgram.com/v1/listen"
        "?model=nova-2"
        "&language=en"
        "&encoding=linear16"
        "&sample_rate=16000"
        "&interim_results=true"
        "&endpointing=300"
        "&vad_events=true"
        "&smart_format=true"
        "&punctuate=true"
    )

    def __init__(
        self,
        api_key: Optional[str],
        on_partial: TranscriptCallback,
        on_final: TranscriptCallback,
        on_error: Optional[ErrorCallback] = None,
        url: Optional[str] = None
    ):
        self.api_key = api_key
        self.on_partial = on_partial
        self.on_final = on_final
        self.on_error = on_error
        self.url = url or self.URL
        self._ws = None
        self._listen_task: Optional[asyncio.Task] = None

    @property
    def is_open(self) -> bool:
        return self._ws is not None

    async def connect(self) -> None:
        """
        Open the websocket and start the listener task.

        Raises:
            TranscriptionError: Missing key or connection failure
        """
        if not self.api_key:
            raise TranscriptionError("DEEPGRAM_API_KEY is not configured")
        try:
            self._ws = await websockets.connect(
                self.url,
                additional_headers={"Authorization": f"Token {self.api_key}"},
                ping_interval=20,
                ping_timeout=10,
            )
        except (OSError, websockets.WebSocketException) as e:
            logger.error(f"Failed to connect to Deepgram: {e}")
            raise TranscriptionError(f"Failed to connect to Deepgram: {e}") from e

        self._listen_task = asyncio.create_task(self._listen())
        logger.info("Deepgram stream ready")

    async def send_audio(self, chunk: bytes) -> None:
        """Forward one binary audio frame verbatim."""
        if self._ws is None:
            return
        try:
            await self._ws.send(chunk)
        except websockets.ConnectionClosed:
            logger.warning("Deepgram connection closed while sending audio")
            self._ws = None

    async def handle_event(self, event: dict) -> None:
        """Dispatch one decoded Deepgram message."""
        event_type = event.get("type")
        if event_type == "Error":
            logger.error(f"Deepgram error: {event.get('message') or event.get('description')}")
            await self._report_error("Transcription error")
            return
        if event_type != "Results":
            return

        alternatives = (event.get("channel") or {}).get("alternatives") or [{}]
        transcript = (alternatives[0].get("transcript") or "").strip()
        if not transcript:
            return

        if not event.get("is_final"):
            await self.on_partial(transcript)
        elif event.get("speech_final"):
            await self.on_final(transcript)

    async def _listen(self) -> None:
        try:
            async for message in self._ws:
                if isinstance(message, bytes):
                    continue
                try:
                    event = json.loads(message)
                except json.JSONDecodeError:
                    logger.warning("Ignoring non-JSON message from Deepgram")
                    continue
                await self.handle_event(event)
        except websockets.ConnectionClosedError as e:
            logger.error(f"Deepgram connection dropped: {e}")
            await self._report_error("Transcription error")
        finally:
            logger.info("Deepgram connection closed")

    async def _report_error(self, message: str) -> None:
        if self.on_error is not None:
            await self.on_error(message)

    async def finish(self) -> None:
        """Ask Deepgram to flush and close, then stop the listener."""
        ws, self._ws = self._ws, None
        if ws is not None:
            try:
                await ws.send(json.dumps({"type": "CloseStream"}))
                await ws.close()
            except websockets.WebSocketException as e:
                logger.warning(f"Error while closing Deepgram stream: {e}")

        task, self._listen_task = self._listen_task, None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass


TranscriberFactory = Callable[..., LiveTranscriber]


def create_live_transcriber(
    api_key: Optional[str],
    on_partial: TranscriptCallback,
    on_final: TranscriptCallback,
    on_error: Optional[ErrorCallback] = None
) -> LiveTranscriber:
    """Default factory used by voice sessions."""
    return LiveTranscriber(api_key, on_partial, on_final, on_error)
