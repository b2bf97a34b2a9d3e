"""Configuration system for path-first level generation.

PhysicsConfig defines the character controller that the path generator
simulates. Its derived timing metrics (launch velocity, time to peak, time
to fall) are stored values, refreshed by an explicit recompute() whenever a
base parameter changes, so every consumer reads the same numbers.

This design separates:
- Character capabilities (what the player can do) - PhysicsConfig
- Path search behaviour (how the sampler walks) - PatherConfig
- Decoration (what gets placed along the path) - SkinnerConfig
- Map dimensions - MapConfig
"""

import math
from dataclasses import dataclass, field, fields
from typing import Tuple, Dict, Any, ClassVar, Optional

import numpy as np


def _rng(rng: Optional[np.random.Generator]) -> np.random.Generator:
    return rng if rng is not None else np.random.default_rng()


@dataclass
class PhysicsConfig:
    """Character controller parameters, in tiles and seconds.

    Derived fields (jump_velocity, time_to_peak, time_to_fall) are not
    constructor arguments. Call recompute() after changing any base value.
    """

    # === BASE PARAMETERS ===

    run_speed: float = 5.0  # Top horizontal speed (tiles/s)
    jump_height: float = 4.0  # Apex height of a full jump (tiles)
    gravity: float = 5.0  # Downward acceleration (tiles/s^2), rows grow downward
    falling_gravity_boost: float = 1.7  # Gravity multiplier while descending
    max_acceleration: float = 20.0  # Speed-up limit (tiles/s^2)
    max_deceleration: float = 150.0  # Stop / reverse limit (tiles/s^2)
    air_control: float = 0.03  # Fraction of ground traction available in the air
    coyote_frames: int = 2  # Frames after leaving a ledge that still count as grounded

    # Sprite size, just under one tile to avoid boundary ambiguity
    width: float = 0.99
    height: float = 0.99

    dt: float = 1.0 / 20.0  # Fixed simulation step (s)

    # Facing policy: whether the character forgets its direction
    neutral_facing_after_jump: bool = True
    neutral_facing_after_landing: bool = True

    # === DERIVED METRICS (refreshed by recompute) ===

    jump_velocity: float = field(init=False, default=0.0)
    time_to_peak: float = field(init=False, default=0.0)
    time_to_fall: float = field(init=False, default=0.0)

    # === SAMPLING RANGES ===

    RUN_SPEED_RANGE: ClassVar[Tuple[float, float]] = (3.0, 8.0)
    JUMP_HEIGHT_RANGE: ClassVar[Tuple[float, float]] = (2.0, 6.0)
    GRAVITY_RANGE: ClassVar[Tuple[float, float]] = (3.0, 10.0)
    FALLING_BOOST_RANGE: ClassVar[Tuple[float, float]] = (1.0, 2.5)
    AIR_CONTROL_RANGE: ClassVar[Tuple[float, float]] = (0.0, 0.5)

    def __post_init__(self):
        self.recompute()

    def recompute(self) -> None:
        """Refresh the derived timing metrics from the base parameters."""
        height = max(self.jump_height, 0.0)
        self.jump_velocity = -math.sqrt(2 * height * self.gravity) if self.gravity > 0 else 0.0
        self.time_to_peak = -self.jump_velocity / self.gravity if self.gravity > 0 else 0.0
        fall_gravity = self.gravity * self.falling_gravity_boost
        self.time_to_fall = math.sqrt(2 * height / fall_gravity) if fall_gravity > 0 else 0.0

    @property
    def can_jump(self) -> bool:
        return self.jump_height > 0 and self.jump_velocity < 0

    @property
    def peak_frames(self) -> int:
        """Frames from launch to apex."""
        return int(round(self.time_to_peak / self.dt))

    @property
    def fall_frames(self) -> int:
        """Frames from apex back down to launch height."""
        return int(round(self.time_to_fall / self.dt))

    @classmethod
    def sample(cls, rng: Optional[np.random.Generator] = None) -> "PhysicsConfig":
        """Sample the movement parameters, keeping the rest at defaults."""
        rng = _rng(rng)
        return cls(
            run_speed=float(rng.uniform(*cls.RUN_SPEED_RANGE)),
            jump_height=float(rng.uniform(*cls.JUMP_HEIGHT_RANGE)),
            gravity=float(rng.uniform(*cls.GRAVITY_RANGE)),
            falling_gravity_boost=float(rng.uniform(*cls.FALLING_BOOST_RANGE)),
            air_control=float(rng.uniform(*cls.AIR_CONTROL_RANGE)),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary (base params only)."""
        return {f.name: getattr(self, f.name) for f in fields(self) if f.init}

    def to_dict_with_derived(self) -> Dict[str, Any]:
        """Convert to dictionary including derived timing metrics."""
        return {
            **self.to_dict(),
            "jump_velocity": self.jump_velocity,
            "time_to_peak": self.time_to_peak,
            "time_to_fall": self.time_to_fall,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "PhysicsConfig":
        """Create from dictionary (ignores derived values and unknown keys)."""
        names = {f.name for f in fields(cls) if f.init}
        return cls(**{k: v for k, v in d.items() if k in names})


@dataclass
class PatherConfig:
    """Sampling policy and search budget for the path generator."""
    move_probability: float = 0.9  # Chance per frame of pushing in the facing direction
    backtrack_probability: float = 0.1  # Chance a fresh facing points left
    min_seconds_on_platform: float = 0.5  # Earliest jump / drop off a platform
    max_seconds_on_platform: float = 2.0  # Jump or drop forced by then
    height_variance: float = 0.5  # Spread of landing heights around the launch height (0-1)
    seconds_budget: float = 60.0  # Simulated time per attempt
    attempt_limit: int = 50
    fall_margin: int = 3  # Rows kept clear at the bottom of the map
    jump_free_columns: int = 3  # Opening stretch with no jumps and no drops

    MOVE_PROBABILITY_RANGE: ClassVar[Tuple[float, float]] = (0.7, 1.0)
    BACKTRACK_PROBABILITY_RANGE: ClassVar[Tuple[float, float]] = (0.0, 0.3)
    HEIGHT_VARIANCE_RANGE: ClassVar[Tuple[float, float]] = (0.1, 0.9)

    @classmethod
    def sample(cls, rng: Optional[np.random.Generator] = None) -> "PatherConfig":
        rng = _rng(rng)
        min_seconds = float(rng.uniform(0.25, 1.0))
        return cls(
            move_probability=float(rng.uniform(*cls.MOVE_PROBABILITY_RANGE)),
            backtrack_probability=float(rng.uniform(*cls.BACKTRACK_PROBABILITY_RANGE)),
            min_seconds_on_platform=min_seconds,
            max_seconds_on_platform=min_seconds + float(rng.uniform(0.5, 2.0)),
            height_variance=float(rng.uniform(*cls.HEIGHT_VARIANCE_RANGE)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


@dataclass
class SkinnerConfig:
    """Decoration parameters for turning reservations into level content."""
    platform_extend_probability: float = 0.5
    power_up_probability: float = 0.1
    coin_probability: float = 0.1
    enemy_probability: float = 0.1
    enemy_spacing: int = 4  # Minimum columns between enemies on the same row
    edge_margin: int = 2  # No power-ups this close to the left/right edges
    min_arc_displacement: float = 2.0  # Jumps smaller than this get no coin arc (tiles)
    arc_center_tolerance: float = 0.15  # How close to a tile centre an arc coin must be
    enemy_requires_path_above: bool = True  # False: any non-solid cell above will do
    place_markers: bool = True  # Start sign and goal flag

    @classmethod
    def sample(cls, rng: Optional[np.random.Generator] = None) -> "SkinnerConfig":
        rng = _rng(rng)
        return cls(
            platform_extend_probability=float(rng.uniform(0.0, 1.0)),
            power_up_probability=float(rng.uniform(0.0, 0.3)),
            coin_probability=float(rng.uniform(0.0, 0.3)),
            enemy_probability=float(rng.uniform(0.0, 0.3)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


@dataclass
class MapConfig:
    """Tile grid dimensions."""
    columns: int = 50
    rows: int = 20

    def to_dict(self) -> Dict[str, int]:
        return {"columns": self.columns, "rows": self.rows}


@dataclass
class GeneratorConfig:
    """Complete generation configuration combining all parameter groups."""
    physics: PhysicsConfig = field(default_factory=PhysicsConfig)
    pather: PatherConfig = field(default_factory=PatherConfig)
    skinner: SkinnerConfig = field(default_factory=SkinnerConfig)
    map: MapConfig = field(default_factory=MapConfig)

    @classmethod
    def sample_physics_only(cls, rng: Optional[np.random.Generator] = None) -> "GeneratorConfig":
        """Sample config with only the character varied."""
        return cls(physics=PhysicsConfig.sample(rng))

    @classmethod
    def sample_full(cls, rng: Optional[np.random.Generator] = None) -> "GeneratorConfig":
        """Sample complete random configuration (map size kept)."""
        rng = _rng(rng)
        return cls(
            physics=PhysicsConfig.sample(rng),
            pather=PatherConfig.sample(rng),
            skinner=SkinnerConfig.sample(rng),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to nested dictionary."""
        return {
            "physics": self.physics.to_dict(),
            "pather": self.pather.to_dict(),
            "skinner": self.skinner.to_dict(),
            "map": self.map.to_dict(),
        }


# Named presets for demos and tests
CONFIGS = {
    # Balanced runner used by the demos
    "default": GeneratorConfig(),

    # High, slow jumps with some steering - tall, spread out levels
    "floaty": GeneratorConfig(physics=PhysicsConfig(
        jump_height=5.0,
        gravity=3.5,
        falling_gravity_boost=1.2,
        air_control=0.3,
    )),

    # Short, snappy hops - dense, low platforms
    "tight": GeneratorConfig(physics=PhysicsConfig(
        jump_height=2.5,
        gravity=9.0,
        falling_gravity_boost=2.0,
    )),

    # Heavy fall, slow runner
    "heavy": GeneratorConfig(physics=PhysicsConfig(
        run_speed=3.5,
        jump_height=3.0,
        gravity=8.0,
        falling_gravity_boost=2.5,
    )),

    # No jumping at all - the path can only walk and drop
    "grounded": GeneratorConfig(physics=PhysicsConfig(jump_height=0.0)),

    # Long platforms, few decorations
    "sparse": GeneratorConfig(
        pather=PatherConfig(min_seconds_on_platform=1.0, max_seconds_on_platform=3.0,
                            backtrack_probability=0.0),
        skinner=SkinnerConfig(coin_probability=0.05, enemy_probability=0.0,
                              power_up_probability=0.05),
    ),

    # Short platforms, lots to collect and dodge
    "busy": GeneratorConfig(
        pather=PatherConfig(min_seconds_on_platform=0.25, max_seconds_on_platform=1.0),
        skinner=SkinnerConfig(coin_probability=0.3, enemy_probability=0.3,
                              power_up_probability=0.3),
    ),
}
