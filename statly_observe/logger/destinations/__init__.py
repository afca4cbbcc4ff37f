"""Log destinations: where a Logger writes its entries."""

from .base import Destination
from .console import ConsoleDestination
from .file import FileDestination
from .observe import ObserveDestination

__all__ = ["Destination", "ConsoleDestination", "FileDestination", "ObserveDestination"]
