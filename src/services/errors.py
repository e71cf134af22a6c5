"""Error taxonomy for the transcription store."""


class TranscriptionError(Exception):
    """Base class for transcription store errors."""


class ValidationError(TranscriptionError):
    """Input to a store operation violates policy. Raised before any write."""

    def __init__(self, field: str, message: str):
        self.field = field
        self.message = message
        super().__init__(f"{field}: {message}")


class NotFoundError(TranscriptionError):
    """No transcription exists for the given id."""

    def __init__(self, transcription_id: str):
        self.transcription_id = transcription_id
        super().__init__(f"Transcription {transcription_id} not found")


class CorruptRecordError(TranscriptionError):
    """Stored data could not be decoded into the expected shape."""

    def __init__(self, key: str, reason: str):
        self.key = key
        self.reason = reason
        super().__init__(f"Corrupt data at {key}: {reason}")


class ProducerError(TranscriptionError):
    """The transcription producer failed to transcribe the audio."""
