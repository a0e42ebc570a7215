from .base import ByteSink, ReadyCallback
from .file import FileSink

__all__ = ["ByteSink", "ReadyCallback", "FileSink"]
