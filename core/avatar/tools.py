"""
Avatar Tool Handler - Tool invocation against the display state

One handler instance serves every transport (HTTP streaming and stdio).

@.architecture
Incoming: core/mcp/protocol.py, core/mcp/stdio.py --- {tool name, arguments dict}
Processing: list_tools(), call_tool(), _validate(), _require_model() + one method per tool --- {4 jobs: argument_validation, state_mutation, broadcasting, result_formatting}
Outgoing: core/avatar/state.py, ws/hub.py --- {DisplayState mutations, publish(event, payload), MCP tool result dicts}

Each tool body runs without awaiting: the state mutation and the matching
broadcast happen in one step of the event loop, so no other invocation can
interleave between them.

Failures raise the ToolError family; transports turn them into protocol
error objects (never HTTP errors):
    UnknownTool        -32601
    InvalidArguments   -32602
    ToolExecutionError -32603  "Tool execution failed: <reason>"
"""

import json
from typing import Any, Callable, Dict, List, Optional, Tuple, Type

from pydantic import ValidationError

from core.avatar.assets import AssetLocator
from core.avatar.catalog import TOOL_CATALOG
from core.avatar.schemas import (
    AnimateBoneArgs,
    GetStatusArgs,
    ListFilesArgs,
    LoadAnimationArgs,
    LoadModelArgs,
    PlayAnimationArgs,
    SetExpressionArgs,
    SetPoseArgs,
    StopAnimationArgs,
    ToolArguments,
)
from core.avatar.state import DisplayState, Quaternion
from monitoring import get_logger
from ws.hub import BroadcastHub
from ws.protocols import EventType

logger = get_logger(__name__)


# =============================================================================
# Errors
# =============================================================================

class ToolError(Exception):
    """Base class for tool-domain failures."""

    code: int = -32603

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class UnknownTool(ToolError):
    code = -32601

    def __init__(self, name: str):
        self.tool_name = name
        super().__init__(f"Unknown tool: {name}")


class InvalidArguments(ToolError):
    code = -32602


class ToolExecutionError(ToolError):
    code = -32603

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Tool execution failed: {reason}")


MODEL_NOT_LOADED = "VRM model is not loaded"


def text_result(text: str) -> Dict[str, Any]:
    """MCP tool result with a single text block."""
    return {"content": [{"type": "text", "text": text}]}


def _without_none(values: Dict[str, Any]) -> Dict[str, Any]:
    return {key: value for key, value in values.items() if value is not None}


# =============================================================================
# Handler
# =============================================================================

class AvatarToolHandler:
    """
    Executes avatar tools.

    Usage:
        handler = AvatarToolHandler(state, hub, models=..., animations=...)
        result = await handler.call_tool("load_vrm_model", {"filePath": "character.vrm"})
    """

    def __init__(
        self,
        state: DisplayState,
        hub: BroadcastHub,
        models: AssetLocator,
        animations: AssetLocator
    ):
        """
        Initialize tool handler.

        Args:
            state: Display state to mutate
            hub: Viewer fan-out for state deltas
            models: Lookup for .vrm files
            animations: Lookup for .vrma files
        """
        self.state = state
        self.hub = hub
        self.models = models
        self.animations = animations

        self._tools: Dict[str, Tuple[Type[ToolArguments], Callable[[Any], Dict[str, Any]]]] = {
            "load_vrm_model": (LoadModelArgs, self._load_vrm_model),
            "set_vrm_expression": (SetExpressionArgs, self._set_vrm_expression),
            "set_vrm_pose": (SetPoseArgs, self._set_vrm_pose),
            "animate_vrm_bone": (AnimateBoneArgs, self._animate_vrm_bone),
            "get_vrm_status": (GetStatusArgs, self._get_vrm_status),
            "list_vrm_files": (ListFilesArgs, self._list_vrm_files),
            "load_vrma_animation": (LoadAnimationArgs, self._load_vrma_animation),
            "play_vrma_animation": (PlayAnimationArgs, self._play_vrma_animation),
            "stop_vrma_animation": (StopAnimationArgs, self._stop_vrma_animation),
        }

    def list_tools(self) -> List[Dict[str, Any]]:
        """Tool descriptors for tools/list."""
        return [dict(tool) for tool in TOOL_CATALOG]

    async def call_tool(
        self,
        name: str,
        arguments: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """
        Run a tool.

        Args:
            name: Tool name
            arguments: Raw tool arguments

        Returns:
            MCP tool result ({"content": [...]})

        Raises:
            ToolError: Unknown tool, invalid arguments, or execution failure
        """
        if name not in self._tools:
            raise UnknownTool(name)

        schema, run = self._tools[name]
        args = self._validate(name, schema, arguments)
        result = run(args)
        logger.info(f"✅ Tool executed: {name}")
        return result

    @staticmethod
    def _validate(name: str, schema: Type[ToolArguments], arguments: Optional[Dict[str, Any]]) -> Any:
        if arguments is not None and not isinstance(arguments, dict):
            raise InvalidArguments(f"Invalid arguments for {name}: expected an object")
        try:
            return schema.model_validate(arguments or {})
        except ValidationError as e:
            problems = "; ".join(
                f"{'.'.join(str(p) for p in err['loc']) or 'arguments'}: {err['msg']}"
                for err in e.errors()
            )
            raise InvalidArguments(f"Invalid arguments for {name}: {problems}") from e

    def _require_model(self) -> None:
        if not self.state.is_loaded:
            raise ToolExecutionError(MODEL_NOT_LOADED)

    # =========================================================================
    # Tools
    # =========================================================================

    def _load_vrm_model(self, args: LoadModelArgs) -> Dict[str, Any]:
        if not self.models.exists(args.filePath):
            raise ToolExecutionError(f"Failed to load VRM model: {args.filePath}")

        self.state.load_model(args.filePath)
        self.hub.publish(
            EventType.LOAD_VRM_MODEL.value,
            {"filePath": self.models.url_for(args.filePath)},
        )
        return text_result(f"✓ Loaded VRM model: {args.filePath}")

    def _set_vrm_expression(self, args: SetExpressionArgs) -> Dict[str, Any]:
        self._require_model()

        self.state.set_expression(args.expression, args.weight)
        self.hub.publish(
            EventType.SET_VRM_EXPRESSION.value,
            {"expression": args.expression, "weight": args.weight},
        )
        return text_result(f'✓ Set expression "{args.expression}" to {args.weight}')

    def _set_vrm_pose(self, args: SetPoseArgs) -> Dict[str, Any]:
        self._require_model()

        position = args.position.model_dump(exclude_none=True) if args.position else None
        rotation = args.rotation.model_dump(exclude_none=True) if args.rotation else None

        self.state.set_pose(position=position, rotation=rotation)
        self.hub.publish(
            EventType.SET_VRM_POSE.value,
            _without_none({"position": position, "rotation": rotation}),
        )
        return text_result("✓ Updated VRM model pose")

    def _animate_vrm_bone(self, args: AnimateBoneArgs) -> Dict[str, Any]:
        self._require_model()

        rotation = args.rotation.model_dump()
        self.state.set_bone(args.boneName, Quaternion(**rotation))
        self.hub.publish(
            EventType.ANIMATE_VRM_BONE.value,
            {"boneName": args.boneName, "rotation": rotation},
        )
        return text_result(f'✓ Rotated bone "{args.boneName}"')

    def _get_vrm_status(self, args: GetStatusArgs) -> Dict[str, Any]:
        return text_result(f"VRM model status:\n{json.dumps(self.state.status(), indent=2)}")

    def _list_vrm_files(self, args: ListFilesArgs) -> Dict[str, Any]:
        summary: List[str] = []

        if args.type in ("models", "all"):
            models = self.models.list()
            summary.append(f"📦 VRM models ({len(models)}):")
            summary.extend(f"  - {name}" for name in models)

        if args.type in ("animations", "all"):
            animations = self.animations.list()
            summary.append(f"🎬 VRMA animations ({len(animations)}):")
            summary.extend(f"  - {name}" for name in animations)

        return text_result("\n".join(summary) or "No files available")

    def _load_vrma_animation(self, args: LoadAnimationArgs) -> Dict[str, Any]:
        if not self.animations.exists(args.animationPath):
            raise ToolExecutionError(f"Failed to load VRMA animation: {args.animationPath}")

        self.state.add_animation(args.animationName)
        self.hub.publish(
            EventType.LOAD_VRMA_ANIMATION.value,
            {
                "animationPath": self.animations.url_for(args.animationPath),
                "animationName": args.animationName,
            },
        )
        return text_result(f'✓ Loaded VRMA animation "{args.animationName}": {args.animationPath}')

    def _play_vrma_animation(self, args: PlayAnimationArgs) -> Dict[str, Any]:
        self._require_model()

        self.hub.publish(
            EventType.PLAY_VRMA_ANIMATION.value,
            _without_none({
                "animationName": args.animationName,
                "loop": args.loop,
                "fadeInDuration": args.fadeInDuration,
            }),
        )
        suffix = " (loop)" if args.loop else ""
        return text_result(f'▶ Playing VRMA animation "{args.animationName}"{suffix}')

    def _stop_vrma_animation(self, args: StopAnimationArgs) -> Dict[str, Any]:
        self.hub.publish(
            EventType.STOP_VRMA_ANIMATION.value,
            _without_none({"fadeOutDuration": args.fadeOutDuration}),
        )
        return text_result("⏹ Stopped VRMA animation")
