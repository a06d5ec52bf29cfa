"""Compatibility utilities."""
import logging
from typing import AnyStr, Union, cast

__all__ = ['want_bytes', 'want_str', 'get_logger']


def want_bytes(s: AnyStr) -> bytes:
    if isinstance(s, str):
        return cast(str, s).encode()
    if isinstance(s, (bytearray, memoryview)):
        return bytes(s)
    if not isinstance(s, bytes):
        raise TypeError(
            'expected str or bytes, not {0}'.format(type(s).__name__))
    return s


def want_str(s: AnyStr) -> str:
    if isinstance(s, bytes):
        return cast(bytes, s).decode()
    return s


def get_logger(logger: Union[logging.Logger, str] = None) -> logging.Logger:
    """Get logger by name."""
    if isinstance(logger, str):
        logger = logging.getLogger(logger)
    if not logger.handlers:
        logger.addHandler(logging.NullHandler())
    return logger
