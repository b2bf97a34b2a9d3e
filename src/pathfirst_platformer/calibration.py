"""Behavioral calibration: measure what a character controller actually does.

PhysicsConfig parameters (jump_height, run_speed, gravity, ...) are inputs
to the equations of motion. With acceleration limits, limited air control
and boosted falling gravity, the resulting behaviour is not simply the
declared values. This module runs canonical test actions through the same
CharacterController the pather uses and reports the measured outcomes:
- Jump arcs for previews (standing, running, stalling, reverse)
- A BehavioralProfile of reach and timing for analysis and tuning

Usage:
    profile = calibrate(physics_config)
    print(profile.actual_apex_height)  # measured, not declared
"""

from dataclasses import dataclass, asdict, replace
from typing import Dict, List, Optional, Tuple

from .config import PhysicsConfig
from .physics import CharacterController, InputState, KinematicState, SolidQuery
from .policies import BasePolicy, HoldDirectionPolicy


@dataclass
class BehavioralProfile:
    """Measured behavioral outcomes for one physics config.

    Fields are grouped by which canonical test produces them:
    - Vertical: from a standing jump with no horizontal input
    - Horizontal: from running on flat ground
    - Combined: from jumping while running at speed
    """

    # --- Vertical (canonical jump test) ---
    actual_apex_height: float     # tiles - max height reached above the launch point
    actual_apex_time: float       # s - time from launch to apex
    actual_total_airtime: float   # s - time from launch to landing
    trajectory_asymmetry: float   # rise_time / fall_time (1.0 = symmetric parabola)

    # --- Horizontal (canonical movement test) ---
    actual_max_speed: float       # tiles/s - measured top speed
    time_to_max_speed: float      # s - time from rest to 90% of max speed
    stopping_distance: float      # tiles - distance to stop from max speed, no input

    # --- Combined (jump + movement test) ---
    horizontal_jump_reach: float  # tiles - x displacement of a full jump at speed

    def to_dict(self) -> Dict[str, float]:
        """Convert to dictionary for serialization."""
        return asdict(self)

    @classmethod
    def from_dict(cls, d: Dict[str, float]) -> "BehavioralProfile":
        """Create from dictionary."""
        return cls(**d)


# ---------------------------------------------------------------------------
# Simulation helpers
# ---------------------------------------------------------------------------

_MAX_JUMP_FRAMES = 400      # safety cutoff for a single jump
_MAX_MOVEMENT_FRAMES = 400  # safety cutoff for the movement test
_STOPPED_THRESHOLD = 0.01   # tiles/s below which the character is "stopped"

# Test floor, far from any wall
_FLOOR_ROW = 100
_START_COLUMN = 3


def _flat_floor(floor_row: int) -> SolidQuery:
    return lambda x, y: y >= floor_row


def simulate_jump(
    controller: CharacterController,
    state: KinematicState,
    inp: InputState,
) -> List[KinematicState]:
    """Trajectory of a jump in open air, until it drops below launch height.

    The input is held for the whole jump, so only the first frame can
    launch. Without a jump the list ends after the first step.
    """
    start_y = state.y
    path = [state]
    for _ in range(_MAX_JUMP_FRAMES):
        state = controller.step(state, inp)
        path.append(state)
        if state.y > start_y:
            break
    return path


def jump_arcs(
    controller: CharacterController,
    column: float = _START_COLUMN,
    floor_row: int = 9,
) -> Dict[str, List[KinematicState]]:
    """The four reference jumps from a standing spot.

    standing: from rest, pushing right
    running: already at full speed, pushing right
    stalling: at full speed, letting go as the jump starts
    reverse: at full speed, turning around as the jump starts
    """
    start = replace(controller.start_state(0, floor_row), x=float(column))
    running = replace(start, vel_x=controller.config.run_speed)
    return {
        "standing": simulate_jump(controller, start, InputState(x=1.0, jump=True)),
        "running": simulate_jump(controller, running, InputState(x=1.0, jump=True)),
        "stalling": simulate_jump(controller, running, InputState(x=0.0, jump=True)),
        "reverse": simulate_jump(controller, running, InputState(x=-1.0, jump=True)),
    }


def _run_on_floor(
    controller: CharacterController,
    state: KinematicState,
    policy: BasePolicy,
    max_frames: int,
) -> List[KinematicState]:
    """Step under a policy on a flat floor until the first landing after a jump.

    Stops after one frame if the character never leaves the ground.
    """
    is_solid = _flat_floor(_FLOOR_ROW)
    path = [state]
    airborne = False
    for frame in range(max_frames):
        state = controller.handle_collision(controller.step(state, policy(state)), is_solid).state
        path.append(state)
        if state.frames_since_ground > 0:
            airborne = True
        elif airborne or frame == 0:
            break
    return path


def _was_airborne(path: List[KinematicState]) -> bool:
    return any(s.frames_since_ground > 0 for s in path)


def _run_jump_test(controller: CharacterController) -> Tuple[float, float, float, float]:
    """Standing jump: apex height, apex time, total airtime, asymmetry."""
    dt = controller.dt
    start = controller.start_state(_START_COLUMN, _FLOOR_ROW)
    path = _run_on_floor(controller, start, HoldDirectionPolicy(x=0.0, jump=True), _MAX_JUMP_FRAMES)

    if not _was_airborne(path):
        return 0.0, 0.0, 0.0, 1.0

    ys = [s.y for s in path]
    apex_index = min(range(len(ys)), key=ys.__getitem__)
    apex_height = start.y - ys[apex_index]
    apex_time = apex_index * dt
    airtime = (len(path) - 1) * dt
    fall_time = airtime - apex_time
    asymmetry = apex_time / fall_time if fall_time > 0 else 1.0
    return apex_height, apex_time, airtime, asymmetry


def _run_movement_test(controller: CharacterController) -> Tuple[float, float, float]:
    """Run right from rest, then let go: max speed, time to 90%, stopping distance."""
    dt = controller.dt
    is_solid = _flat_floor(_FLOOR_ROW)
    state = controller.start_state(_START_COLUMN, _FLOOR_ROW)

    speeds = []
    run = HoldDirectionPolicy(x=1.0)
    for _ in range(_MAX_MOVEMENT_FRAMES):
        state = controller.handle_collision(controller.step(state, run(state)), is_solid).state
        speeds.append(state.vel_x)
        if len(speeds) > 1 and speeds[-1] == speeds[-2]:
            break

    max_speed = max(speeds)
    time_to_max = next(i + 1 for i, v in enumerate(speeds) if v >= 0.9 * max_speed) * dt

    stop = HoldDirectionPolicy(x=0.0)
    start_x = state.x
    for _ in range(_MAX_MOVEMENT_FRAMES):
        state = controller.handle_collision(controller.step(state, stop(state)), is_solid).state
        if abs(state.vel_x) < _STOPPED_THRESHOLD:
            break

    return max_speed, time_to_max, state.x - start_x


def _run_combined_test(controller: CharacterController) -> float:
    """Jump at full speed: horizontal distance covered before landing."""
    start = controller.start_state(_START_COLUMN, _FLOOR_ROW)
    start = replace(start, vel_x=controller.config.run_speed)
    path = _run_on_floor(controller, start, HoldDirectionPolicy(x=1.0, jump=True), _MAX_JUMP_FRAMES)
    if not _was_airborne(path):
        return 0.0
    return path[-1].x - start.x


# ---------------------------------------------------------------------------
# Calibration cache
# ---------------------------------------------------------------------------

# Cache: maps config hash -> BehavioralProfile
_calibration_cache: Dict[str, BehavioralProfile] = {}


def _config_hash(physics_config: PhysicsConfig) -> str:
    """Hashable key from every base parameter that affects behavior."""
    return "|".join(f"{k}={v}" for k, v in sorted(physics_config.to_dict().items()))


def calibrate(
    physics_config: Optional[PhysicsConfig] = None,
    use_cache: bool = True,
) -> BehavioralProfile:
    """Measure actual behavioral outcomes for a physics config.

    Runs three canonical tests on a flat floor:
    1. Standing jump (no horizontal input) -> vertical metrics
    2. Run on flat ground, then release -> horizontal metrics
    3. Jump while running -> combined reach

    Results are cached by config hash so repeated calls are free.

    Args:
        physics_config: Character configuration. Defaults to PhysicsConfig().
        use_cache: Whether to use cached results. Set False for testing.

    Returns:
        BehavioralProfile with all measured outcomes.
    """
    physics_config = physics_config or PhysicsConfig()
    key = _config_hash(physics_config)
    if use_cache and key in _calibration_cache:
        return _calibration_cache[key]

    # Work on a private copy so measuring never touches the caller's config
    controller = CharacterController(PhysicsConfig.from_dict(physics_config.to_dict()))

    apex_height, apex_time, total_airtime, asymmetry = _run_jump_test(controller)
    max_speed, time_to_max, stop_distance = _run_movement_test(controller)
    jump_reach = _run_combined_test(controller)

    profile = BehavioralProfile(
        actual_apex_height=apex_height,
        actual_apex_time=apex_time,
        actual_total_airtime=total_airtime,
        trajectory_asymmetry=asymmetry,
        actual_max_speed=max_speed,
        time_to_max_speed=time_to_max,
        stopping_distance=stop_distance,
        horizontal_jump_reach=jump_reach,
    )

    if use_cache:
        _calibration_cache[key] = profile

    return profile


def clear_cache() -> None:
    """Clear the calibration cache. Useful for testing."""
    _calibration_cache.clear()
