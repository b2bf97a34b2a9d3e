"""Parameter constraints and validation for generation requests.

Catches configurations that cannot produce a level before any attempt runs:
1. Validating individual parameter ranges
2. Checking cross-parameter consistency (e.g., the map must be tall enough
   for the jump ceiling to sit above the fall limit)
3. Providing constraint-aware sampling

Key insight: a configuration error is different from a pathing failure. An
invalid config can never succeed; a valid one may still be unlucky.
"""

import math
from dataclasses import dataclass
from typing import List, Optional, Tuple

import numpy as np

from .config import PhysicsConfig, PatherConfig, SkinnerConfig, MapConfig, GeneratorConfig


@dataclass
class ConstraintViolation:
    """Describes a constraint violation."""
    param: str
    message: str
    severity: str  # "error" = cannot generate, "warning" = likely to struggle


@dataclass
class ConstraintResult:
    """Result of constraint validation."""
    valid: bool
    violations: List[ConstraintViolation]

    def __bool__(self) -> bool:
        return self.valid

    @property
    def errors(self) -> List[ConstraintViolation]:
        return [v for v in self.violations if v.severity == "error"]

    @property
    def warnings(self) -> List[ConstraintViolation]:
        return [v for v in self.violations if v.severity == "warning"]


def _result(violations: List[ConstraintViolation]) -> ConstraintResult:
    errors = [v for v in violations if v.severity == "error"]
    return ConstraintResult(valid=len(errors) == 0, violations=violations)


class ConfigurationError(ValueError):
    """Raised when a generation request is configured so it cannot succeed."""

    def __init__(self, result: ConstraintResult):
        self.result = result
        messages = "; ".join(f"{v.param}: {v.message}" for v in result.errors)
        super().__init__(f"Invalid generation config: {messages}")


def jump_limit(physics: PhysicsConfig) -> int:
    """Highest row the character may jump from without leaving the map."""
    return int(math.ceil(max(physics.jump_height, 0.0))) + 1


def fall_limit(rows: int, pather: PatherConfig) -> int:
    """Lowest row the character may fall to before a landing is forced."""
    return rows - pather.fall_margin


class ParameterConstraints:
    """Defines and checks constraints on generation parameters."""

    # Physics bounds
    RUN_SPEED_MAX_WARNING = 12.0  # Fast runners outpace the jump arcs
    JUMP_HEIGHT_MAX_WARNING = 8.0
    AIR_CONTROL_MIN = 0.0
    AIR_CONTROL_MAX = 1.0

    # Map bounds
    COLUMNS_MIN = 2
    FALL_MARGIN_MIN = 1

    @classmethod
    def validate_physics(cls, physics: PhysicsConfig) -> ConstraintResult:
        """Validate the character controller."""
        violations = []

        if physics.dt <= 0:
            violations.append(ConstraintViolation(
                "dt", f"Time step {physics.dt} must be positive", "error"))
        if physics.gravity <= 0:
            violations.append(ConstraintViolation(
                "gravity", f"Gravity {physics.gravity} must be positive", "error"))
        if physics.falling_gravity_boost <= 0:
            violations.append(ConstraintViolation(
                "falling_gravity_boost",
                f"Falling gravity boost {physics.falling_gravity_boost} must be positive", "error"))
        if physics.run_speed <= 0:
            violations.append(ConstraintViolation(
                "run_speed", f"Run speed {physics.run_speed} must be positive", "error"))
        if physics.run_speed > cls.RUN_SPEED_MAX_WARNING:
            violations.append(ConstraintViolation(
                "run_speed", f"Run speed {physics.run_speed} is very high", "warning"))
        if physics.max_acceleration <= 0 or physics.max_deceleration <= 0:
            violations.append(ConstraintViolation(
                "max_acceleration", "Acceleration and deceleration limits must be positive", "error"))

        if physics.jump_height < 0:
            violations.append(ConstraintViolation(
                "jump_height", f"Jump height {physics.jump_height} < 0", "error"))
        if physics.jump_height > cls.JUMP_HEIGHT_MAX_WARNING:
            violations.append(ConstraintViolation(
                "jump_height", f"Jump height {physics.jump_height} is very high", "warning"))

        if not (cls.AIR_CONTROL_MIN <= physics.air_control <= cls.AIR_CONTROL_MAX):
            violations.append(ConstraintViolation(
                "air_control", f"Air control {physics.air_control} outside [0, 1]", "error"))
        if physics.coyote_frames < 0:
            violations.append(ConstraintViolation(
                "coyote_frames", f"Coyote frames {physics.coyote_frames} < 0", "error"))

        for name in ("width", "height"):
            size = getattr(physics, name)
            if not (0 < size < 1):
                violations.append(ConstraintViolation(
                    name, f"Sprite {name} {size} must be inside (0, 1) tiles", "error"))

        # Collision resolves one tile per axis per frame
        if physics.dt > 0 and physics.run_speed * physics.dt >= 1.0:
            violations.append(ConstraintViolation(
                "run_speed",
                f"Run speed {physics.run_speed} moves {physics.run_speed * physics.dt:.2f} tiles "
                f"per frame; must stay under 1",
                "error"))

        return _result(violations)

    @classmethod
    def validate_pather(cls, pather: PatherConfig) -> ConstraintResult:
        """Validate the path sampler."""
        violations = []

        for name in ("move_probability", "backtrack_probability"):
            value = getattr(pather, name)
            if not (0 <= value <= 1):
                violations.append(ConstraintViolation(
                    name, f"{name} {value} outside [0, 1]", "error"))
        if pather.move_probability == 0:
            violations.append(ConstraintViolation(
                "move_probability", "The character never moves", "error"))

        if pather.min_seconds_on_platform < 0:
            violations.append(ConstraintViolation(
                "min_seconds_on_platform",
                f"Minimum platform time {pather.min_seconds_on_platform} < 0", "error"))
        if pather.min_seconds_on_platform > pather.max_seconds_on_platform:
            violations.append(ConstraintViolation(
                "max_seconds_on_platform",
                f"Platform time range [{pather.min_seconds_on_platform}, "
                f"{pather.max_seconds_on_platform}] is empty", "error"))

        if not (0 <= pather.height_variance <= 1):
            violations.append(ConstraintViolation(
                "height_variance", f"Height variance {pather.height_variance} outside [0, 1]", "error"))

        if pather.seconds_budget <= 0:
            violations.append(ConstraintViolation(
                "seconds_budget", f"Time budget {pather.seconds_budget} must be positive", "error"))
        if pather.attempt_limit < 1:
            violations.append(ConstraintViolation(
                "attempt_limit", f"Attempt limit {pather.attempt_limit} < 1", "error"))
        if pather.fall_margin < cls.FALL_MARGIN_MIN:
            violations.append(ConstraintViolation(
                "fall_margin", f"Fall margin {pather.fall_margin} < {cls.FALL_MARGIN_MIN}", "error"))
        if pather.jump_free_columns < 0:
            violations.append(ConstraintViolation(
                "jump_free_columns", f"Jump-free columns {pather.jump_free_columns} < 0", "error"))

        return _result(violations)

    @classmethod
    def validate_skinner(cls, skinner: SkinnerConfig) -> ConstraintResult:
        """Validate decoration parameters."""
        violations = []

        for name in ("platform_extend_probability", "power_up_probability",
                     "coin_probability", "enemy_probability"):
            value = getattr(skinner, name)
            if not (0 <= value <= 1):
                violations.append(ConstraintViolation(
                    name, f"{name} {value} outside [0, 1]", "error"))

        if skinner.enemy_spacing < 0:
            violations.append(ConstraintViolation(
                "enemy_spacing", f"Enemy spacing {skinner.enemy_spacing} < 0", "error"))
        if skinner.edge_margin < 0:
            violations.append(ConstraintViolation(
                "edge_margin", f"Edge margin {skinner.edge_margin} < 0", "error"))
        if not (0 <= skinner.arc_center_tolerance <= 0.5):
            violations.append(ConstraintViolation(
                "arc_center_tolerance",
                f"Arc tolerance {skinner.arc_center_tolerance} outside [0, 0.5]", "error"))

        return _result(violations)

    @classmethod
    def validate_map(
        cls,
        columns: int,
        rows: int,
        physics: PhysicsConfig,
        pather: PatherConfig,
    ) -> ConstraintResult:
        """Check that the map leaves room for the character's jumps and falls."""
        violations = []

        if columns < cls.COLUMNS_MIN:
            violations.append(ConstraintViolation(
                "columns", f"Map needs at least {cls.COLUMNS_MIN} columns, got {columns}", "error"))

        top = jump_limit(physics)
        bottom = fall_limit(rows, pather)
        if top >= bottom:
            violations.append(ConstraintViolation(
                "rows",
                f"Map of {rows} rows is too short: jump ceiling row {top} is not above "
                f"fall limit row {bottom}",
                "error"))
        elif bottom - top < 2:
            violations.append(ConstraintViolation(
                "rows", f"Only {bottom - top} start rows between jump ceiling and fall limit",
                "warning"))

        if pather.jump_free_columns >= columns:
            violations.append(ConstraintViolation(
                "jump_free_columns",
                f"Jump-free stretch {pather.jump_free_columns} covers the whole map", "warning"))

        # Fastest fall possible inside the map, as tiles per frame
        fall_gravity = physics.gravity * physics.falling_gravity_boost
        if fall_gravity > 0 and physics.dt > 0:
            per_frame = math.sqrt(2 * fall_gravity * rows) * physics.dt
            if per_frame >= 1.0:
                violations.append(ConstraintViolation(
                    "gravity",
                    f"Falls reach {per_frame:.2f} tiles per frame on a {rows}-row map",
                    "warning"))

        return _result(violations)

    @classmethod
    def validate_request(
        cls,
        columns: int,
        rows: int,
        physics: PhysicsConfig,
        pather: PatherConfig,
    ) -> ConstraintResult:
        """Everything a path search depends on: character, sampler, map."""
        violations = []
        violations.extend(cls.validate_physics(physics).violations)
        violations.extend(cls.validate_pather(pather).violations)
        violations.extend(cls.validate_map(columns, rows, physics, pather).violations)
        return _result(violations)

    @classmethod
    def validate_config(cls, config: GeneratorConfig) -> ConstraintResult:
        """Validate a full generator config."""
        all_violations = []

        all_violations.extend(cls.validate_request(
            config.map.columns, config.map.rows, config.physics, config.pather).violations)
        all_violations.extend(cls.validate_skinner(config.skinner).violations)

        return _result(all_violations)


class ConstrainedSampler:
    """Samples parameters while respecting constraints.

    Physics is sampled first; the rest is checked against it with rejection
    sampling for the rare invalid combination.
    """

    def __init__(self, rng: Optional[np.random.Generator] = None, max_attempts: int = 100):
        self.rng = rng or np.random.default_rng()
        self.max_attempts = max_attempts

    def sample_physics(
        self,
        run_speed_range: Optional[Tuple[float, float]] = None,
        jump_height_range: Optional[Tuple[float, float]] = None,
        gravity_range: Optional[Tuple[float, float]] = None,
        rows: Optional[int] = None,
    ) -> PhysicsConfig:
        """Sample valid physics, optionally limited to fit a map height."""
        rs_range = run_speed_range or PhysicsConfig.RUN_SPEED_RANGE
        jh_range = jump_height_range or PhysicsConfig.JUMP_HEIGHT_RANGE
        g_range = gravity_range or PhysicsConfig.GRAVITY_RANGE

        for _ in range(self.max_attempts):
            physics = PhysicsConfig(
                run_speed=float(self.rng.uniform(*rs_range)),
                jump_height=float(self.rng.uniform(*jh_range)),
                gravity=float(self.rng.uniform(*g_range)),
                falling_gravity_boost=float(self.rng.uniform(*PhysicsConfig.FALLING_BOOST_RANGE)),
                air_control=float(self.rng.uniform(*PhysicsConfig.AIR_CONTROL_RANGE)),
            )
            if not ParameterConstraints.validate_physics(physics):
                continue
            if rows is not None and not ParameterConstraints.validate_map(
                    ParameterConstraints.COLUMNS_MIN, rows, physics, PatherConfig()):
                continue
            return physics

        raise ValueError(f"No valid physics config found in {self.max_attempts} samples")

    def sample_config(self, map_config: Optional[MapConfig] = None) -> GeneratorConfig:
        """Sample a complete valid config for the given map size."""
        map_config = map_config or MapConfig()
        for _ in range(self.max_attempts):
            config = GeneratorConfig(
                physics=self.sample_physics(rows=map_config.rows),
                pather=PatherConfig.sample(self.rng),
                skinner=SkinnerConfig.sample(self.rng),
                map=MapConfig(map_config.columns, map_config.rows),
            )
            if ParameterConstraints.validate_config(config):
                return config

        raise ValueError(f"No valid generator config found in {self.max_attempts} samples")
