"""pathfirst-platformer: path-first procedural level generation for 2D platformers.

A level is generated by first playing it: a Markov input policy drives the
character's own physics across an empty tile grid, reserving floors where it
lands and open space wherever its body passes. The reserved grid is then
skinned into terrain, platforms, coins, enemies and power-ups without ever
blocking the recorded path, so every level is completable by construction.
"""

from .config import PhysicsConfig, PatherConfig, SkinnerConfig, MapConfig, GeneratorConfig, CONFIGS
from .tiles import Tile, TileGrid
from .physics import InputState, KinematicState, CharacterController, CollisionResult
from .distributions import ProbabilityTable
from .policies import BasePolicy, HoldDirectionPolicy, MarkovPolicy, POLICIES
from .pather import Pather, PathResult
from .skinner import MapSkinner, SkinReport
from .level_gen import LevelGenerator, GeneratedLevel, generate_level
from .constraints import (
    ParameterConstraints,
    ConstrainedSampler,
    ConstraintResult,
    ConstraintViolation,
    ConfigurationError,
)
from .calibration import BehavioralProfile, calibrate

__all__ = [
    "PhysicsConfig",
    "PatherConfig",
    "SkinnerConfig",
    "MapConfig",
    "GeneratorConfig",
    "CONFIGS",
    "Tile",
    "TileGrid",
    "InputState",
    "KinematicState",
    "CharacterController",
    "CollisionResult",
    "ProbabilityTable",
    "BasePolicy",
    "HoldDirectionPolicy",
    "MarkovPolicy",
    "POLICIES",
    "Pather",
    "PathResult",
    "MapSkinner",
    "SkinReport",
    "LevelGenerator",
    "GeneratedLevel",
    "generate_level",
    "ParameterConstraints",
    "ConstrainedSampler",
    "ConstraintResult",
    "ConstraintViolation",
    "ConfigurationError",
    "BehavioralProfile",
    "calibrate",
]
