"""Source gateways: where sheet rows come from."""

from .base import SourceFetchError, SourceGateway
from .workbook import WorkbookSource

__all__ = [
    "SourceFetchError",
    "SourceGateway",
    "WorkbookSource",
]
