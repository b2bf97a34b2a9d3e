"""Input policies that drive the simulated character.

Each policy takes the current KinematicState and returns an InputState.
The path generator uses MarkovPolicy; calibration uses HoldDirectionPolicy.
"""

from typing import Optional

import numpy as np

from .config import PatherConfig, PhysicsConfig
from .distributions import ProbabilityTable
from .physics import InputState, KinematicState


class BasePolicy:
    """Base class for input policies."""

    name: str = "base"

    def __call__(self, state: KinematicState) -> InputState:
        return self.act(state)

    def act(self, state: KinematicState) -> InputState:
        raise NotImplementedError

    def reset(self):
        """Called at the start of each attempt."""
        pass


class HoldDirectionPolicy(BasePolicy):
    """Same input every frame."""

    name = "hold"

    def __init__(self, x: float = 1.0, jump: bool = False):
        self.input = InputState(x=float(np.clip(x, -1.0, 1.0)), jump=jump)

    def act(self, state):
        return self.input


class MarkovPolicy(BasePolicy):
    """Plausible-player input sampler, conditioned only on the current state.

    Movement: with move_probability, push toward the current facing. When
    facing is neutral (just after a jump or a landing) a fresh direction is
    drawn, pointing left with backtrack_probability.

    Jumping: only when grounded (within coyote frames), below the jump
    ceiling and past the opening columns. Whether to jump this frame comes
    from the jump-timing table keyed on frames spent on the ground.
    """

    name = "markov"

    def __init__(
        self,
        physics: PhysicsConfig,
        pather: PatherConfig,
        jump_table: ProbabilityTable,
        jump_limit: float,
        rng: Optional[np.random.Generator] = None,
    ):
        self.physics = physics
        self.pather = pather
        self.jump_table = jump_table
        self.jump_limit = jump_limit
        self.rng = rng or np.random.default_rng()

    def choose_direction(self, state: KinematicState) -> int:
        if state.facing != 0:
            return state.facing
        return -1 if self.rng.random() < self.pather.backtrack_probability else 1

    def may_jump(self, state: KinematicState) -> bool:
        return (
            self.physics.can_jump
            and state.x >= self.pather.jump_free_columns
            and state.y > self.jump_limit
            and state.is_on_ground(self.physics.coyote_frames)
        )

    def act(self, state):
        x = 0.0
        if self.rng.random() < self.pather.move_probability:
            x = float(self.choose_direction(state))

        jump = False
        if self.may_jump(state):
            jump = self.jump_table.roll(state.frames_on_ground, self.rng)

        return InputState(x=x, jump=jump)


POLICIES = {
    "hold": HoldDirectionPolicy,
    "markov": MarkovPolicy,
}
