"""Tile vocabulary and the 2D tile grid that levels are built in.

Reservation tiles are working state of the path generator: they mark cells
that must end up solid (floor under a landing) or must stay open (space the
character's body passes through). The skinner replaces every reservation
with real content before a level is handed out.
"""

from enum import IntEnum
from typing import Callable, Dict, Iterable, Optional, Tuple, Union

import numpy as np


class Tile(IntEnum):
    """Closed set of tile symbols."""
    NONE = 0
    SOLID = 1
    GRASS_TOP_BLOCK = 2
    DIRT_BLOCK = 3
    EXCLAMATION_BOX = 4  # power-up
    WOOD_BOX = 5
    PINK_SLIME = 6  # enemy
    COIN = 7
    START_SIGN = 8
    GREEN_FLAG = 9
    PLAYER_STAND = 10

    # Generation-only markers
    SOLID_RESERVATION = 100
    PLAYER_RESERVATION = 101

    @property
    def is_reservation(self) -> bool:
        return self in _RESERVATIONS

    @property
    def is_solid(self) -> bool:
        return self in _SOLIDS

    @property
    def symbol(self) -> str:
        return _SYMBOLS[self]


_RESERVATIONS = frozenset({Tile.SOLID_RESERVATION, Tile.PLAYER_RESERVATION})

# Tiles the character cannot pass through
_SOLIDS = frozenset({
    Tile.SOLID,
    Tile.GRASS_TOP_BLOCK,
    Tile.DIRT_BLOCK,
    Tile.EXCLAMATION_BOX,
    Tile.WOOD_BOX,
    Tile.SOLID_RESERVATION,
})

# Tiles that count as something to stand on when placing markers
_GROUND = frozenset({
    Tile.SOLID,
    Tile.GRASS_TOP_BLOCK,
    Tile.DIRT_BLOCK,
    Tile.EXCLAMATION_BOX,
    Tile.WOOD_BOX,
})

_SYMBOLS: Dict[Tile, str] = {
    Tile.NONE: " ",
    Tile.SOLID: "#",
    Tile.GRASS_TOP_BLOCK: "=",
    Tile.DIRT_BLOCK: "#",
    Tile.EXCLAMATION_BOX: "?",
    Tile.WOOD_BOX: "B",
    Tile.PINK_SLIME: "e",
    Tile.COIN: "o",
    Tile.START_SIGN: "S",
    Tile.GREEN_FLAG: "F",
    Tile.PLAYER_STAND: "@",
    Tile.SOLID_RESERVATION: "X",
    Tile.PLAYER_RESERVATION: ".",
}

# DIRT_BLOCK and SOLID share "#"; parsing maps it back to SOLID
_FROM_SYMBOL: Dict[str, Tile] = {
    s: t for t, s in _SYMBOLS.items() if t is not Tile.DIRT_BLOCK
}

TileSource = Union[Tile, Callable[[int, int], Tile]]


class TileGrid:
    """A whole map, or a piece of one, as a 2D array of tiles.

    Addressed by (column, row): column 0 is leftmost, row 0 is topmost.
    Backed by a numpy array indexed [column, row].
    """

    def __init__(self, columns: int, rows: int, fill_with: Tile = Tile.NONE):
        if columns <= 0 or rows <= 0:
            raise ValueError(f"Grid dimensions must be positive, got {columns}x{rows}")
        self._tiles = np.full((columns, rows), int(fill_with), dtype=np.int16)

    # ------------------------------------------------------------------
    # Basic access
    # ------------------------------------------------------------------

    @property
    def columns(self) -> int:
        return self._tiles.shape[0]

    @property
    def rows(self) -> int:
        return self._tiles.shape[1]

    @property
    def array(self) -> np.ndarray:
        """Read-only view of the raw tile codes, indexed [column, row]."""
        view = self._tiles.view()
        view.flags.writeable = False
        return view

    def get_dimensions(self) -> Tuple[int, int]:
        """Return (columns, rows)."""
        return self._tiles.shape

    def in_bounds(self, x: int, y: int) -> bool:
        return 0 <= x < self.columns and 0 <= y < self.rows

    def get_tile_at(self, x: int, y: int) -> Tile:
        """Tile at (x, y). Accesses outside the map return NONE."""
        if not self.in_bounds(x, y):
            return Tile.NONE
        return Tile(int(self._tiles[x, y]))

    def is_solid(self, x: int, y: int) -> bool:
        return self.get_tile_at(x, y).is_solid

    def place(self, tile: Tile, x: int, y: int) -> "TileGrid":
        """Place a single tile, skipping it if out of bounds.

        (Unlike fill, which clamps the rectangle.) Returns self for chaining.
        """
        if self.in_bounds(x, y):
            self._tiles[x, y] = int(tile)
        return self

    def fill(
        self,
        tile: TileSource,
        x_min: int,
        y_min: int,
        x_max: Optional[int] = None,
        y_max: Optional[int] = None,
    ) -> "TileGrid":
        """Fill the rectangle (x_min, y_min)..(x_max, y_max), inclusive.

        Parts hanging outside the map are ignored. A missing max, or one
        smaller than its min, falls back to the min. `tile` may be a Tile or
        a function of (x, y) returning the Tile for that cell.
        """
        columns, rows = self.get_dimensions()

        x_min = max(0, x_min)
        if x_min >= columns:
            return self
        if x_max is None or x_max < x_min:
            x_max = x_min
        x_max = min(x_max, columns - 1)

        y_min = max(0, y_min)
        if y_min >= rows:
            return self
        if y_max is None or y_max < y_min:
            y_max = y_min
        y_max = min(y_max, rows - 1)

        if callable(tile):
            for x in range(x_min, x_max + 1):
                for y in range(y_min, y_max + 1):
                    self._tiles[x, y] = int(tile(x, y))
        else:
            self._tiles[x_min:x_max + 1, y_min:y_max + 1] = int(tile)
        return self

    def clear(self) -> "TileGrid":
        """Empty the grid, replacing all contents with NONE."""
        self._tiles.fill(int(Tile.NONE))
        return self

    def copy(self) -> "TileGrid":
        clone = TileGrid.__new__(TileGrid)
        clone._tiles = self._tiles.copy()
        return clone

    def __eq__(self, other) -> bool:
        if not isinstance(other, TileGrid):
            return NotImplemented
        return np.array_equal(self._tiles, other._tiles)

    __hash__ = None

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def count(self, tile: Tile) -> int:
        return int(np.count_nonzero(self._tiles == int(tile)))

    def replace(self, old: Tile, new: Tile) -> int:
        """Swap every `old` tile for `new`, returning how many changed."""
        mask = self._tiles == int(old)
        self._tiles[mask] = int(new)
        return int(np.count_nonzero(mask))

    def has_reservations(self) -> bool:
        return bool(np.isin(self._tiles, [int(t) for t in _RESERVATIONS]).any())

    def cells(self, tile: Tile) -> Iterable[Tuple[int, int]]:
        """(x, y) of every cell holding `tile`, column-major order."""
        xs, ys = np.nonzero(self._tiles == int(tile))
        return list(zip(xs.tolist(), ys.tolist()))

    def solid_mask(self) -> np.ndarray:
        """Boolean [column, row] array, True where the tile is solid."""
        return np.isin(self._tiles, [int(t) for t in _SOLIDS])

    def aspect(self) -> float:
        return self.rows / self.columns

    # ------------------------------------------------------------------
    # Level helpers
    # ------------------------------------------------------------------

    def place_atop_ground(self, tile: Tile, x: int) -> None:
        """Place `tile` in the first open cell above ground in column x.

        Scans up from the bottom. With ground but no open cell, carves a spot
        in the top row. With no ground at all, puts a solid tile in the bottom
        row and places above it.
        """
        x = max(0, min(x, self.columns - 1))
        found_ground = False
        for y in range(self.rows - 1, -1, -1):
            if self.get_tile_at(x, y) in _GROUND:
                found_ground = True
            elif found_ground:
                self._tiles[x, y] = int(tile)
                return

        if found_ground:
            self._tiles[x, 0] = int(tile)
        else:
            self._tiles[x, self.rows - 1] = int(Tile.SOLID)
            self.place(tile, x, self.rows - 2)

    def prep_start_end(self) -> None:
        """Start sign in the first column, goal flag in the last."""
        self.place_atop_ground(Tile.START_SIGN, 0)
        self.place_atop_ground(Tile.GREEN_FLAG, self.columns - 1)

    def stamp_into(self, other: "TileGrid", start_x: int = 0, start_y: int = 0) -> None:
        """Copy this grid into `other` at an offset, dropping the overhang."""
        for x in range(self.columns):
            dest_x = start_x + x
            if not 0 <= dest_x < other.columns:
                continue
            for y in range(self.rows):
                dest_y = start_y + y
                if 0 <= dest_y < other.rows:
                    other._tiles[dest_x, dest_y] = self._tiles[x, y]

    def surface_tiles(self) -> "TileGrid":
        """Copy with SOLID split into grass-topped and dirt blocks.

        The top solid tile of each vertical run gets grass; solid tiles under
        another solid tile are dirt.
        """
        result = self.copy()
        solid = self._tiles == int(Tile.SOLID)
        below_solid = np.zeros_like(solid)
        below_solid[:, 1:] = solid[:, :-1]
        result._tiles[solid & below_solid] = int(Tile.DIRT_BLOCK)
        result._tiles[solid & ~below_solid] = int(Tile.GRASS_TOP_BLOCK)
        return result

    # ------------------------------------------------------------------
    # Text form (debugging and tests)
    # ------------------------------------------------------------------

    def to_text(self, show_reservations: bool = True) -> str:
        """One line per row, one character per tile."""
        lines = []
        for y in range(self.rows):
            chars = []
            for x in range(self.columns):
                tile = Tile(int(self._tiles[x, y]))
                if tile.is_reservation and not show_reservations:
                    tile = Tile.NONE
                chars.append(tile.symbol)
            lines.append("".join(chars))
        return "\n".join(lines)

    @classmethod
    def from_text(cls, text: str) -> "TileGrid":
        """Parse the output of to_text(). Rows are padded with NONE."""
        lines = text.split("\n")
        columns = max(len(line) for line in lines)
        grid = cls(columns, len(lines))
        for y, line in enumerate(lines):
            for x, char in enumerate(line):
                try:
                    grid._tiles[x, y] = int(_FROM_SYMBOL[char])
                except KeyError:
                    raise ValueError(f"Unknown tile symbol {char!r} at ({x}, {y})") from None
        return grid

    def __repr__(self) -> str:
        return f"TileGrid({self.columns}x{self.rows})"
