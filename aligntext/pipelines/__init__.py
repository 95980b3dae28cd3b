"""Pipeline modules for orchestrating reading sessions."""

from .reader_session import ReaderSession, ReaderSessionConfig

__all__ = [
    "ReaderSession",
    "ReaderSessionConfig",
]
