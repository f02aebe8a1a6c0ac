"""
GestureTree 核心模块
包含手势识别、交互状态机、队形生成、粒子编排、相机和场景运行时
"""

from .capture import CameraCapture
from .detector import HandDetector
from .gesture import GestureClassifier, GestureState, GestureType
from .interaction import InteractionController, SceneMode
from .formation import ElementClass, FormationGenerator
from .choreographer import ParticleChoreographer
from .camera import CameraDirector
from .tracking import HandTracker
from .scene import TreeScene

__all__ = [
    "CameraCapture",
    "HandDetector",
    "GestureClassifier",
    "GestureState",
    "GestureType",
    "InteractionController",
    "SceneMode",
    "ElementClass",
    "FormationGenerator",
    "ParticleChoreographer",
    "CameraDirector",
    "HandTracker",
    "TreeScene"
]
