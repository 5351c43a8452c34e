"""The data lookup tool and its bridge to the analytics backend."""

from .bridge import Emit, ToolBridge
from .spec import DATA_LOOKUP_TOOL, DataLookupInput, ToolSpec

__all__ = ["DATA_LOOKUP_TOOL", "DataLookupInput", "Emit", "ToolBridge", "ToolSpec"]
