"""Tile-space character physics: kinematic state, stepping and collision.

The path generator simulates the same controller a player would use, one
fixed time step at a time. Every operation returns a fresh KinematicState;
a path is just the ordered list of those snapshots.

Coordinates are in tiles. x grows to the right, y grows downward, so gravity
is positive and a jump launches with negative vertical velocity.
"""

import math
from dataclasses import dataclass, replace
from typing import Callable, Iterable, List, Optional, Tuple

from .config import PhysicsConfig


SolidQuery = Callable[[int, int], bool]
"""Callable returning True when the tile at (column, row) blocks movement."""

# Positions snapped against a tile edge must not round into that tile
_EPSILON = 1e-9


@dataclass(frozen=True)
class InputState:
    """One frame of controller input."""
    x: float = 0.0  # Horizontal axis, -1 (left) to 1 (right)
    jump: bool = False


@dataclass(frozen=True)
class KinematicState:
    """Position, velocity and ground-contact counters for one frame.

    frames_since_ground is 0 exactly when the character rests on a surface.
    frames_on_ground counts consecutive grounded frames and survives the
    first airborne frame, so callers can see how long the platform just
    left was occupied.
    """
    x: float
    y: float
    vel_x: float = 0.0
    vel_y: float = 0.0
    frames_since_ground: int = 0
    frames_on_ground: int = 1
    facing: int = 1

    def is_on_ground(self, coyote_frames: int = 0) -> bool:
        return self.vel_y >= 0 and self.frames_since_ground <= coyote_frames

    def accelerate_toward(
        self,
        target_velocity: float,
        max_acceleration: float,
        max_deceleration: float,
        dt: float,
    ) -> "KinematicState":
        """Move vel_x toward the target, limited per frame.

        Stopping or reversing uses the deceleration limit.
        """
        delta = target_velocity - self.vel_x
        stopping = target_velocity == 0 or self.vel_x * delta < 0
        limit = (max_deceleration if stopping else max_acceleration) * dt
        clamped = min(max(delta, -limit), limit)
        return replace(self, vel_x=self.vel_x + clamped)

    def advance(self, gravity: float, dt: float) -> "KinematicState":
        """Euler step: gravity, then position, then contact counters."""
        vel_y = self.vel_y + gravity * dt
        if self.frames_since_ground == 0:
            # Tentatively airborne; a collision this frame lands it again
            frames_since_ground = 1
            frames_on_ground = self.frames_on_ground
        else:
            frames_since_ground = self.frames_since_ground + 1
            frames_on_ground = 0
        return replace(
            self,
            x=self.x + self.vel_x * dt,
            y=self.y + vel_y * dt,
            vel_y=vel_y,
            frames_since_ground=frames_since_ground,
            frames_on_ground=frames_on_ground,
        )

    def jump(self, jump_velocity: float, neutral_facing: bool = True) -> "KinematicState":
        return replace(
            self,
            vel_y=jump_velocity,
            frames_on_ground=0,
            frames_since_ground=max(self.frames_since_ground, 1),
            facing=0 if neutral_facing else self.facing,
        )

    def land(self, neutral_facing: bool = True) -> "KinematicState":
        """Come to rest on a surface."""
        if self.frames_on_ground > 0:
            # Still in contact with the same floor
            return replace(self, vel_y=0.0, frames_since_ground=0,
                           frames_on_ground=self.frames_on_ground + 1)
        return replace(
            self,
            vel_y=0.0,
            frames_since_ground=0,
            frames_on_ground=1,
            facing=0 if neutral_facing else self.facing,
        )

    def top_tile(self) -> int:
        return math.floor(self.y + _EPSILON)

    def bottom_tile(self, height: float) -> int:
        return math.ceil(self.y + height - 1 - _EPSILON)

    def left_tile(self) -> int:
        return math.floor(self.x + _EPSILON)

    def right_tile(self, width: float) -> int:
        return math.ceil(self.x + width - 1 - _EPSILON)


@dataclass(frozen=True)
class CollisionResult:
    """Resolved state plus the tile rectangle it occupies."""
    state: KinematicState
    collided: bool
    left: int
    right: int
    top: int
    bottom: int

    def footprint(self) -> List[Tuple[int, int]]:
        """Every (column, row) the resolved state overlaps."""
        return [(x, y) for x in range(self.left, self.right + 1)
                for y in range(self.top, self.bottom + 1)]


class CharacterController:
    """Steps and collides a character using a PhysicsConfig.

    The config is shared, not copied: after changing it, call recompute()
    so the derived jump metrics follow.
    """

    def __init__(self, config: Optional[PhysicsConfig] = None):
        self.config = config or PhysicsConfig()

    def recompute(self) -> None:
        self.config.recompute()

    @property
    def width(self) -> float:
        return self.config.width

    @property
    def height(self) -> float:
        return self.config.height

    @property
    def dt(self) -> float:
        return self.config.dt

    def start_state(self, column: int, floor_row: int) -> KinematicState:
        """A character standing on the floor tile at (column, floor_row)."""
        return KinematicState(x=float(column), y=floor_row - self.height)

    def step(self, state: KinematicState, inp: InputState) -> KinematicState:
        """Advance one frame under the given input."""
        cfg = self.config
        new_state = state

        if inp.x != 0:
            new_state = replace(new_state, facing=1 if inp.x > 0 else -1)

        on_ground = new_state.is_on_ground(cfg.coyote_frames)
        traction = 1.0 if on_ground else cfg.air_control
        new_state = new_state.accelerate_toward(
            inp.x * cfg.run_speed,
            cfg.max_acceleration * traction,
            cfg.max_deceleration * traction,
            cfg.dt,
        )

        if on_ground and inp.jump and cfg.can_jump:
            new_state = new_state.jump(cfg.jump_velocity, cfg.neutral_facing_after_jump)

        gravity = cfg.gravity
        if new_state.vel_y > 0:
            gravity *= cfg.falling_gravity_boost
        return new_state.advance(gravity, cfg.dt)

    def handle_collision(self, state: KinematicState, is_solid: SolidQuery) -> CollisionResult:
        """Snap a candidate state out of solid tiles, vertical axis first.

        Only the first colliding column (or row) found from the leading edge
        is resolved, once per axis. Per-frame motion must stay under one tile
        for this to be sufficient.
        """
        neutral_on_landing = self.config.neutral_facing_after_landing
        collided = False

        left = state.left_tile()
        right = state.right_tile(self.width)
        top = state.top_tile()
        bottom = state.bottom_tile(self.height)

        if state.vel_y > 0:
            # Falling: land on the first surface under the footprint
            for x in range(left, right + 1):
                if is_solid(x, bottom) and not is_solid(x, bottom - 1):
                    state = replace(state, y=bottom - self.height).land(neutral_on_landing)
                    top = state.top_tile()
                    bottom -= 1
                    collided = True
                    break
        elif state.vel_y < 0:
            # Rising: stop at a ceiling
            for x in range(left, right + 1):
                if is_solid(x, top) and not is_solid(x, top + 1):
                    state = replace(state, y=top + 1, vel_y=0.0)
                    top += 1
                    bottom = state.bottom_tile(self.height)
                    collided = True
                    break

        if state.vel_x > 0:
            for y in range(top, bottom + 1):
                if is_solid(right, y):
                    state = replace(state, x=right - self.width, vel_x=0.0, facing=-state.facing)
                    left = state.left_tile()
                    right -= 1
                    collided = True
                    break
        elif state.vel_x < 0:
            for y in range(top, bottom + 1):
                if is_solid(left, y):
                    state = replace(state, x=left + 1, vel_x=0.0, facing=-state.facing)
                    left += 1
                    right = state.right_tile(self.width)
                    collided = True
                    break

        return CollisionResult(state, collided, left, right, top, bottom)

    def simulate(
        self,
        state: KinematicState,
        inputs: Iterable[InputState],
        is_solid: Optional[SolidQuery] = None,
    ) -> List[KinematicState]:
        """Run a sequence of inputs, returning every state including the first."""
        states = [state]
        for inp in inputs:
            state = self.step(state, inp)
            if is_solid is not None:
                state = self.handle_collision(state, is_solid).state
            states.append(state)
        return states
