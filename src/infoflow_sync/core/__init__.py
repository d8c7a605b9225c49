"""InfoFlow API client and item models shared by the CLI and MCP server."""

from .async_utils import run_sync
from .client import InfoFlowAPIError, InfoFlowClient
from .models import Highlight, Item, ItemType, Label

__all__ = [
    "Highlight",
    "InfoFlowAPIError",
    "InfoFlowClient",
    "Item",
    "ItemType",
    "Label",
    "run_sync",
]
