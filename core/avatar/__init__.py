"""
Avatar Domain - VRM display state and the tools that drive it
"""

from .assets import AssetLocator, LocalAssetLocator
from .catalog import TOOL_CATALOG
from .state import DisplayState, Pose, Quaternion, Vector3
from .tools import (
    AvatarToolHandler,
    InvalidArguments,
    ToolError,
    ToolExecutionError,
    UnknownTool,
    text_result,
)

__all__ = [
    "AssetLocator",
    "LocalAssetLocator",
    "TOOL_CATALOG",
    "DisplayState",
    "Pose",
    "Quaternion",
    "Vector3",
    "AvatarToolHandler",
    "InvalidArguments",
    "ToolError",
    "ToolExecutionError",
    "UnknownTool",
    "text_result",
]
