"""Transcription producers that turn raw audio into text."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from src.services.errors import ProducerError


@dataclass
class TranscriptionResult:
    """Result from a transcription producer."""

    text: str
    confidence: Optional[float] = None
    duration_seconds: Optional[float] = None


class TranscriptionProducer(ABC):
    """Converts an audio file into text."""

    @abstractmethod
    async def transcribe(
        self,
        audio_data: bytes,
        filename: str,
        mime_type: str,
    ) -> TranscriptionResult:
        """
        Transcribe audio.

        Args:
            audio_data: Raw audio bytes
            filename: Original file name
            mime_type: MIME type reported by the client

        Returns:
            TranscriptionResult with text and optional confidence

        Raises:
            ProducerError: If the audio cannot be transcribed
        """


class MockTranscriptionProducer(TranscriptionProducer):
    """
    Placeholder producer.

    There is no speech-to-text engine behind this service yet; the returned
    text only echoes the file name and size.
    """

    def __init__(self, confidence: float = 0.95):
        self.confidence = confidence

    async def transcribe(
        self,
        audio_data: bytes,
        filename: str,
        mime_type: str,
    ) -> TranscriptionResult:
        if not audio_data:
            raise ProducerError("Audio data is empty")

        return TranscriptionResult(
            text=f"Transcribed text for {filename} ({len(audio_data)} bytes)",
            confidence=self.confidence,
        )


_producer: Optional[TranscriptionProducer] = None


def get_producer() -> TranscriptionProducer:
    """Get the shared transcription producer."""
    global _producer
    if _producer is None:
        _producer = MockTranscriptionProducer()
    return _producer
