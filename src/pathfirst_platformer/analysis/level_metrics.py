"""Per-level metric computation for batches of generated levels.

Generates levels for a set of configs and seeds and reduces each one to a
flat row of metrics for diversity analysis and tuning.

Usage:
    # Single level
    level = LevelGenerator(config).generate(seed=0)
    metrics = compute_level_metrics(level, config)

    # Presets x seeds -> DataFrame
    df = compute_batch_metrics(CONFIGS, seeds=range(100))

    # Save as CSV
    df.to_csv("levels/metrics.csv", index=False)
"""

from concurrent.futures import ProcessPoolExecutor
from typing import Dict, Iterable, Mapping, Optional, Union

import numpy as np
import pandas as pd

from ..config import GeneratorConfig
from ..constraints import ConfigurationError
from ..level_gen import GeneratedLevel, LevelGenerator
from ..skinner import airborne_segments
from ..tiles import Tile

# Tiles worth counting in a finished level
_COUNTED_TILES = {
    "solid_tiles": Tile.SOLID,
    "power_ups": Tile.EXCLAMATION_BOX,
    "enemies": Tile.PINK_SLIME,
    "coins": Tile.COIN,
}


def compute_level_metrics(level: GeneratedLevel, config: GeneratorConfig) -> dict:
    """Compute metrics for one generated level.

    Args:
        level: Output of LevelGenerator.generate().
        config: Config the level was generated with.

    Returns:
        Flat dict of metrics.
    """
    path = level.path
    dt = config.physics.dt

    metrics = {
        "seed": level.seed,
        "success": level.success,
        "attempts": level.attempts,
        "columns": config.map.columns,
        "rows": config.map.rows,
    }

    # ------------------------------------------------------------------
    # Config fields - character and sampler
    # ------------------------------------------------------------------
    metrics.update(config.physics.to_dict_with_derived())
    for name in ("move_probability", "backtrack_probability", "height_variance",
                 "min_seconds_on_platform", "max_seconds_on_platform"):
        metrics[name] = getattr(config.pather, name)

    # ------------------------------------------------------------------
    # Path metrics
    # ------------------------------------------------------------------
    metrics["path_frames"] = len(path)
    metrics["path_time"] = len(path) * dt

    if len(path) > 1:
        xs = np.array([s.x for s in path])
        ys = np.array([s.y for s in path])
        airborne = np.array([s.frames_since_ground > 0 for s in path])

        metrics["final_x"] = float(xs[-1])
        metrics["airborne_fraction"] = float(airborne.mean())

        # Backtrack ratio: net displacement / total distance, 1.0 = direct
        total_dx = float(np.abs(np.diff(xs)).sum())
        net_dx = abs(float(xs[-1] - xs[0]))
        metrics["backtrack_ratio"] = net_dx / total_dx if total_dx > 1e-3 else 1.0

        # Highest and lowest point reached (rows grow downward)
        metrics["height_range"] = float(ys.max() - ys.min())
        metrics["unique_cells_visited"] = len(set(zip(np.floor(xs).astype(int).tolist(),
                                                      np.floor(ys).astype(int).tolist())))

        # Airborne stretches: jumps launch upward, drops walk off an edge
        segments = airborne_segments(path)
        rises = [path[a].y - path[b].y for a, b in segments]
        jumps = sum(1 for a, _ in segments if path[a + 1].vel_y < 0)
        metrics["jump_count"] = jumps
        metrics["drop_count"] = len(segments) - jumps
        metrics["max_climb"] = float(max(rises, default=0.0))
        metrics["max_descent"] = float(-min(rises, default=0.0))
        metrics["mean_airtime"] = (
            float(np.mean([(b - a) * dt for a, b in segments])) if segments else 0.0)
    else:
        metrics["final_x"] = np.nan
        metrics["airborne_fraction"] = np.nan
        metrics["backtrack_ratio"] = np.nan
        metrics["height_range"] = np.nan
        metrics["unique_cells_visited"] = 0
        metrics["jump_count"] = 0
        metrics["drop_count"] = 0
        metrics["max_climb"] = np.nan
        metrics["max_descent"] = np.nan
        metrics["mean_airtime"] = np.nan

    # ------------------------------------------------------------------
    # Content metrics - only meaningful for skinned levels
    # ------------------------------------------------------------------
    if level.success:
        for column, tile in _COUNTED_TILES.items():
            metrics[column] = level.grid.count(tile)
        metrics["solid_fraction"] = float(level.grid.solid_mask().mean())
        metrics["arc_coins"] = level.report.arc_coins
        metrics["extensions"] = level.report.extensions
    else:
        for column in _COUNTED_TILES:
            metrics[column] = np.nan
        metrics["solid_fraction"] = np.nan
        metrics["arc_coins"] = np.nan
        metrics["extensions"] = np.nan

    return metrics


def _generate_and_measure(job) -> dict:
    """Worker for one (label, config, seed) job.

    Configuration errors become error rows so one bad config does not stop
    a batch.
    """
    label, config, seed = job
    try:
        level = LevelGenerator(config).generate(seed)
    except ConfigurationError as e:
        return {"config": label, "seed": seed, "_error": str(e)}
    row = compute_level_metrics(level, config)
    row["config"] = label
    return row


def compute_batch_metrics(
    configs: Union[GeneratorConfig, Mapping[str, GeneratorConfig]],
    seeds: Iterable[int],
    workers: int = 1,
) -> pd.DataFrame:
    """Generate and measure a level for every config x seed.

    Args:
        configs: One config, or a mapping of label -> config (e.g. CONFIGS).
        seeds: Seeds to generate for each config.
        workers: Number of parallel worker processes.

    Returns:
        DataFrame with one row per level and a "config" label column.
    """
    if isinstance(configs, GeneratorConfig):
        configs = {"custom": configs}

    jobs = [(label, config, int(seed)) for label, config in configs.items() for seed in seeds]
    print(f"Generating {len(jobs)} levels for {len(configs)} configs ({workers} workers)...")

    if workers <= 1:
        rows = []
        for i, job in enumerate(jobs):
            rows.append(_generate_and_measure(job))
            if (i + 1) % 100 == 0:
                print(f"  {i+1}/{len(jobs)}...")
    else:
        with ProcessPoolExecutor(max_workers=workers) as pool:
            rows = list(pool.map(_generate_and_measure, jobs, chunksize=10))

    good_rows = [r for r in rows if "_error" not in r]
    bad_rows = [r for r in rows if "_error" in r]

    if bad_rows:
        print(f"WARNING: {len(bad_rows)} levels had invalid configs:")
        for r in bad_rows[:5]:
            print(f"  {r['config']} seed={r['seed']}: {r['_error']}")
        if len(bad_rows) > 5:
            print(f"  ... and {len(bad_rows) - 5} more")

    df = pd.DataFrame(good_rows)
    print(f"Measured {len(df)} levels successfully.")
    return df


def summarize_by_config(df: pd.DataFrame, columns: Optional[Dict[str, str]] = None) -> pd.DataFrame:
    """Per-config aggregates: success rate, attempts and path shape."""
    columns = columns or {
        "success": "mean",
        "attempts": "mean",
        "path_time": "mean",
        "jump_count": "mean",
        "backtrack_ratio": "mean",
        "coins": "mean",
        "enemies": "mean",
    }
    columns = {c: agg for c, agg in columns.items() if c in df.columns}
    summary = df.groupby("config").agg(columns)
    summary["levels"] = df.groupby("config").size()
    return summary.rename(columns={"success": "success_rate"})
