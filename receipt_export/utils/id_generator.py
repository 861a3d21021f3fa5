"""
ID helpers for export filenames and log correlation.
"""
import uuid


def generate_short_id() -> str:
    """
    First 8 hex characters of a UUID4.

    Breaks ties between export files created in the same millisecond.
    """
    return uuid.uuid4().hex[:8]


def generate_request_id() -> str:
    """
    Full UUID4 string attached to every log line of one export request.
    """
    return str(uuid.uuid4())
