"""
Display State - The avatar's shared mutable record

One instance per bridge context. Mutated only by AvatarToolHandler; read by
the status tool and by the init snapshot sent to new viewers.

Loading a different model leaves expressions, bone rotations and the loaded
animation list untouched.
"""

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class Vector3:
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0

    def merged(self, partial: Dict[str, float]) -> "Vector3":
        """Copy with the supplied axes replaced."""
        values = asdict(self)
        values.update({axis: float(v) for axis, v in partial.items() if axis in values})
        return Vector3(**values)


@dataclass
class Quaternion:
    x: float
    y: float
    z: float
    w: float


@dataclass
class Pose:
    position: Vector3 = field(default_factory=Vector3)
    rotation: Vector3 = field(default_factory=Vector3)


@dataclass
class DisplayState:
    model_path: Optional[str] = None
    is_loaded: bool = False
    expressions: Dict[str, float] = field(default_factory=dict)
    pose: Pose = field(default_factory=Pose)
    bones: Dict[str, Quaternion] = field(default_factory=dict)
    loaded_animations: List[str] = field(default_factory=list)

    def load_model(self, model_path: str) -> None:
        self.model_path = model_path
        self.is_loaded = True

    def set_expression(self, name: str, weight: float) -> None:
        self.expressions[name] = weight

    def set_pose(
        self,
        position: Optional[Dict[str, float]] = None,
        rotation: Optional[Dict[str, float]] = None
    ) -> None:
        if position:
            self.pose.position = self.pose.position.merged(position)
        if rotation:
            self.pose.rotation = self.pose.rotation.merged(rotation)

    def set_bone(self, bone_name: str, rotation: Quaternion) -> None:
        self.bones[bone_name] = rotation

    def add_animation(self, name: str) -> bool:
        """Remember an animation name; returns False if it was already known."""
        if name in self.loaded_animations:
            return False
        self.loaded_animations.append(name)
        return True

    def snapshot(self) -> Dict[str, Any]:
        """Payload of the init event sent to newly connected streams."""
        return {"isLoaded": self.is_loaded, "modelPath": self.model_path}

    def status(self) -> Dict[str, Any]:
        """Everything the status tool reports."""
        return {
            "isLoaded": self.is_loaded,
            "modelPath": self.model_path,
            "expressions": dict(self.expressions),
            "pose": asdict(self.pose),
            "bones": {name: asdict(q) for name, q in self.bones.items()},
            "loadedAnimations": list(self.loaded_animations),
        }
