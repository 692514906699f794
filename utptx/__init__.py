"""Transmit-side building blocks for uTP: send buffer, segment tracking, sequence numbers and environment."""

__version__ = "0.5.1"
__all__ = ["environment", "segment", "segments", "stream_tx", "utils"]