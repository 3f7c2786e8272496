"""
Tool Argument Schemas

Pydantic models validating the arguments of each avatar tool. Field names
follow the wire format (camelCase).
"""

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class ToolArguments(BaseModel):
    """Base for tool arguments; unknown keys are ignored."""
    model_config = ConfigDict(extra="ignore")


class PartialVector3(ToolArguments):
    x: Optional[float] = None
    y: Optional[float] = None
    z: Optional[float] = None


class QuaternionArgs(ToolArguments):
    x: float
    y: float
    z: float
    w: float


class LoadModelArgs(ToolArguments):
    filePath: str = Field(..., min_length=1)


class SetExpressionArgs(ToolArguments):
    expression: str = Field(..., min_length=1)
    weight: float = Field(..., ge=0.0, le=1.0)


class SetPoseArgs(ToolArguments):
    position: Optional[PartialVector3] = None
    rotation: Optional[PartialVector3] = None


class AnimateBoneArgs(ToolArguments):
    boneName: str = Field(..., min_length=1)
    rotation: QuaternionArgs


class GetStatusArgs(ToolArguments):
    pass


class ListFilesArgs(ToolArguments):
    type: Literal["models", "animations", "all"] = "all"


class LoadAnimationArgs(ToolArguments):
    animationPath: str = Field(..., min_length=1)
    animationName: str = Field(..., min_length=1)


class PlayAnimationArgs(ToolArguments):
    animationName: str = Field(..., min_length=1)
    loop: Optional[bool] = None
    fadeInDuration: Optional[float] = Field(None, ge=0.0)


class StopAnimationArgs(ToolArguments):
    fadeOutDuration: Optional[float] = Field(None, ge=0.0)
