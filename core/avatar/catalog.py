"""
Tool Catalog - Schemas advertised by tools/list
"""

from typing import Any, Dict, List

_VECTOR3 = {
    "type": "object",
    "properties": {
        "x": {"type": "number"},
        "y": {"type": "number"},
        "z": {"type": "number"},
    },
}

TOOL_CATALOG: List[Dict[str, Any]] = [
    {
        "name": "load_vrm_model",
        "description": "Load a VRM model file",
        "inputSchema": {
            "type": "object",
            "properties": {
                "filePath": {
                    "type": "string",
                    "description": "VRM file name (e.g. character.vrm), relative to VRM_MODELS_DIR",
                },
            },
            "required": ["filePath"],
        },
    },
    {
        "name": "set_vrm_expression",
        "description": "Set a facial expression on the VRM model",
        "inputSchema": {
            "type": "object",
            "properties": {
                "expression": {
                    "type": "string",
                    "description": "Expression name (e.g. happy, angry, sad, surprised, neutral)",
                },
                "weight": {
                    "type": "number",
                    "minimum": 0,
                    "maximum": 1,
                    "description": "Expression strength (0.0-1.0)",
                },
            },
            "required": ["expression", "weight"],
        },
    },
    {
        "name": "set_vrm_pose",
        "description": "Set the position and rotation of the VRM model",
        "inputSchema": {
            "type": "object",
            "properties": {
                "position": {**_VECTOR3, "description": "Model position"},
                "rotation": {
                    "type": "object",
                    "properties": {
                        "x": {"type": "number", "description": "Radians"},
                        "y": {"type": "number", "description": "Radians"},
                        "z": {"type": "number", "description": "Radians"},
                    },
                    "description": "Model rotation",
                },
            },
        },
    },
    {
        "name": "animate_vrm_bone",
        "description": "Rotate a single bone of the VRM model",
        "inputSchema": {
            "type": "object",
            "properties": {
                "boneName": {
                    "type": "string",
                    "description": "Bone name (e.g. leftUpperArm, rightUpperArm, head, spine)",
                },
                "rotation": {
                    "type": "object",
                    "properties": {
                        "x": {"type": "number"},
                        "y": {"type": "number"},
                        "z": {"type": "number"},
                        "w": {"type": "number"},
                    },
                    "required": ["x", "y", "z", "w"],
                    "description": "Quaternion rotation",
                },
            },
            "required": ["boneName", "rotation"],
        },
    },
    {
        "name": "get_vrm_status",
        "description": "Get the current state of the VRM model",
        "inputSchema": {"type": "object", "properties": {}},
    },
    {
        "name": "list_vrm_files",
        "description": "List available VRM models and VRMA animation files",
        "inputSchema": {
            "type": "object",
            "properties": {
                "type": {
                    "type": "string",
                    "enum": ["models", "animations", "all"],
                    "description": "Which files to list (default: all)",
                },
            },
        },
    },
    {
        "name": "load_vrma_animation",
        "description": "Load an animation from a VRMA file",
        "inputSchema": {
            "type": "object",
            "properties": {
                "animationPath": {
                    "type": "string",
                    "description": "VRMA file name (e.g. greeting.vrma), relative to VRMA_ANIMATIONS_DIR",
                },
                "animationName": {
                    "type": "string",
                    "description": "Name used to play the animation later",
                },
            },
            "required": ["animationPath", "animationName"],
        },
    },
    {
        "name": "play_vrma_animation",
        "description": "Play a loaded VRMA animation",
        "inputSchema": {
            "type": "object",
            "properties": {
                "animationName": {"type": "string", "description": "Animation to play"},
                "loop": {"type": "boolean", "description": "Loop playback"},
                "fadeInDuration": {"type": "number", "description": "Fade-in time in seconds"},
            },
            "required": ["animationName"],
        },
    },
    {
        "name": "stop_vrma_animation",
        "description": "Stop the playing VRMA animation",
        "inputSchema": {
            "type": "object",
            "properties": {
                "fadeOutDuration": {"type": "number", "description": "Fade-out time in seconds"},
            },
        },
    },
]


def tool_names() -> List[str]:
    return [tool["name"] for tool in TOOL_CATALOG]
