"""Tool calling over the bookshelf."""

from .tools import (
    Tool,
    ToolResult,
    SearchBooksTool,
    GetBookDetailsTool,
    GetReadingStatsTool,
    GetOwnerInfoTool,
    build_bookshelf_tools,
)
from .loop import ToolCallingLoop

__all__ = [
    "Tool",
    "ToolResult",
    "SearchBooksTool",
    "GetBookDetailsTool",
    "GetReadingStatsTool",
    "GetOwnerInfoTool",
    "build_bookshelf_tools",
    "ToolCallingLoop",
]
