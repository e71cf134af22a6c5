"""Key naming for the key-value backend.

Layout:
    transcription:{transcription_id}   -> JSON record
    user_transcriptions:{owner_id}     -> JSON array of transcription ids
"""

PRIMARY_PREFIX = "transcription:"
INDEX_PREFIX = "user_transcriptions:"


def primary_key(transcription_id: str) -> str:
    """Key of the record for a transcription."""
    return f"{PRIMARY_PREFIX}{transcription_id}"


def index_key(owner_id: str) -> str:
    """Key of the owner's list of transcription ids."""
    return f"{INDEX_PREFIX}{owner_id}"


def id_from_primary_key(key: str) -> str:
    if not key.startswith(PRIMARY_PREFIX):
        raise ValueError(f"Not a transcription key: {key}")
    return key[len(PRIMARY_PREFIX):]


def owner_from_index_key(key: str) -> str:
    if not key.startswith(INDEX_PREFIX):
        raise ValueError(f"Not an owner index key: {key}")
    return key[len(INDEX_PREFIX):]
