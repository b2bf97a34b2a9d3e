"""Aggregate diversity analysis for batches of generated levels.

Takes a metrics DataFrame (from level_metrics.py) and produces:
1. Success rate and attempts per config
2. Distributions of path and content metrics
3. Character parameters vs. level shape
4. Gap report: flags configs that rarely produce a level

Outputs: JSON summary + matplotlib figures saved to an output directory.
plot_level() additionally renders a single level with its path.

Usage:
    from pathfirst_platformer.analysis.level_metrics import compute_batch_metrics
    from pathfirst_platformer.analysis.diversity_report import generate_report

    df = compute_batch_metrics(CONFIGS, seeds=range(100))
    generate_report(df, output_dir="levels/analysis")
"""

import json
import numpy as np
import pandas as pd
import matplotlib
matplotlib.use("Agg")  # headless rendering - no display needed
import matplotlib.pyplot as plt
from matplotlib.colors import ListedColormap
from pathlib import Path

from ..tiles import Tile


def _save_fig(fig, output_dir, name):
    """Save figure and close it."""
    path = Path(output_dir) / f"{name}.png"
    fig.savefig(path, dpi=150, bbox_inches="tight", facecolor="white")
    plt.close(fig)
    return str(path)


# ===================================================================
# 1. Success rates
# ===================================================================

def plot_success_rates(df, output_dir):
    """Bar charts of success rate and mean attempts per config."""
    grouped = df.groupby("config")
    success = grouped["success"].mean().sort_values()
    attempts = grouped["attempts"].mean().reindex(success.index)

    fig, axes = plt.subplots(1, 2, figsize=(12, max(3, 0.4 * len(success) + 1)))

    axes[0].barh(success.index, success.values, color="#4C72B0", edgecolor="black")
    axes[0].set_xlim(0, 1)
    axes[0].set_xlabel("Success rate")
    axes[0].set_title("Levels found")

    axes[1].barh(attempts.index, attempts.values, color="#DD8452", edgecolor="black")
    axes[1].set_xlabel("Mean attempts")
    axes[1].set_title("Attempts per request")

    fig.tight_layout()
    return _save_fig(fig, output_dir, "success_rates")


# ===================================================================
# 2. Metric distributions
# ===================================================================

def plot_metric_distributions(df, output_dir):
    """Histograms of path and content metrics over successful levels.

    Shows whether the sampler produces varied levels or keeps producing
    the same shape.
    """
    metric_cols = [
        ("path_time", "Path time (s)"),
        ("jump_count", "Jumps"),
        ("airborne_fraction", "Airborne fraction"),
        ("backtrack_ratio", "Backtrack ratio"),
        ("height_range", "Height range (tiles)"),
        ("coins", "Coins"),
    ]
    ok = df[df["success"].astype(bool)]
    metric_cols = [(c, label) for c, label in metric_cols
                   if c in ok.columns and ok[c].notna().sum() > 0]

    fig, axes = plt.subplots(2, 3, figsize=(15, 8))
    axes = axes.flatten()

    for i, (col, label) in enumerate(metric_cols):
        ax = axes[i]
        ax.hist(ok[col].dropna(), bins=30, edgecolor="black",
                alpha=0.7, color="#4C72B0")
        ax.set_xlabel(label)
        ax.set_ylabel("Count")
        ax.set_title(label)

    # Hide unused axes
    for i in range(len(metric_cols), len(axes)):
        axes[i].set_visible(False)

    fig.suptitle("Level Metric Distributions", fontsize=14)
    fig.tight_layout()
    return _save_fig(fig, output_dir, "metric_distributions")


# ===================================================================
# 3. Physics vs. shape
# ===================================================================

def plot_physics_vs_shape(df, output_dir):
    """Scatter character parameters against the level shape they produce."""
    pairs = [
        ("jump_height", "max_climb", "Jump height (tiles)", "Max climb (tiles)"),
        ("run_speed", "path_time", "Run speed (tiles/s)", "Path time (s)"),
        ("gravity", "mean_airtime", "Gravity (tiles/s^2)", "Mean airtime (s)"),
    ]
    pairs = [p for p in pairs if p[0] in df.columns and p[1] in df.columns]

    fig, axes = plt.subplots(1, max(len(pairs), 1), figsize=(5 * max(len(pairs), 1), 4.5),
                             squeeze=False)
    success = df["success"].astype(bool)
    for ax, (x_col, y_col, x_label, y_label) in zip(axes[0], pairs):
        ax.scatter(df.loc[success, x_col], df.loc[success, y_col],
                   s=12, alpha=0.6, color="#55A868", label="found")
        ax.scatter(df.loc[~success, x_col], df.loc[~success, y_col],
                   s=12, alpha=0.6, color="#C44E52", marker="x", label="failed")
        ax.set_xlabel(x_label)
        ax.set_ylabel(y_label)
        ax.legend(fontsize=8)

    fig.suptitle("Character Parameters vs. Level Shape", fontsize=14)
    fig.tight_layout()
    return _save_fig(fig, output_dir, "physics_vs_shape")


# ===================================================================
# 4. Gap report
# ===================================================================

def compute_gap_report(df, min_levels=10, min_success_rate=0.5):
    """Flag configs with too few levels or a low success rate.

    Returns:
        List of dicts describing each flagged config.
    """
    gaps = []
    for label, group in df.groupby("config"):
        n = len(group)
        rate = float(group["success"].mean())
        issues = []
        if n < min_levels:
            issues.append(f"only {n} levels (< {min_levels})")
        if rate < min_success_rate:
            issues.append(f"success rate {rate:.2f} (< {min_success_rate})")
        if issues:
            gaps.append({
                "config": label,
                "levels": n,
                "success_rate": rate,
                "mean_attempts": float(group["attempts"].mean()),
                "issues": issues,
            })
    return gaps


# ===================================================================
# Single level rendering
# ===================================================================

# Draw order of tile codes -> colours; anything unlisted is drawn empty
_TILE_COLOURS = [
    (Tile.NONE, "#F4F1E8"),
    (Tile.SOLID, "#7A5230"),
    (Tile.GRASS_TOP_BLOCK, "#5DA130"),
    (Tile.DIRT_BLOCK, "#7A5230"),
    (Tile.EXCLAMATION_BOX, "#F2C230"),
    (Tile.WOOD_BOX, "#A0703C"),
    (Tile.PINK_SLIME, "#E070B0"),
    (Tile.COIN, "#FFD700"),
    (Tile.START_SIGN, "#3070C0"),
    (Tile.GREEN_FLAG, "#20A040"),
    (Tile.PLAYER_STAND, "#303030"),
    (Tile.SOLID_RESERVATION, "#B0B0B0"),
    (Tile.PLAYER_RESERVATION, "#DDE8F5"),
]


def plot_level(grid, path, output_dir, name="level", title=None):
    """Render a tile grid with the recorded path drawn over it."""
    index = {int(tile): i for i, (tile, _) in enumerate(_TILE_COLOURS)}
    codes = grid.array.T  # rows down, columns across
    image = np.vectorize(lambda c: index.get(int(c), 0))(codes)
    cmap = ListedColormap([colour for _, colour in _TILE_COLOURS])

    fig, ax = plt.subplots(figsize=(max(6, grid.columns * 0.25), max(3, grid.rows * 0.25)))
    ax.imshow(image, cmap=cmap, vmin=0, vmax=len(_TILE_COLOURS) - 1,
              interpolation="nearest", extent=(0, grid.columns, grid.rows, 0))
    if path:
        # Sprite centre, in tile coordinates
        ax.plot([s.x + 0.5 for s in path], [s.y + 0.5 for s in path],
                color="#C44E52", linewidth=1.2)
    ax.set_xlim(0, grid.columns)
    ax.set_ylim(grid.rows, 0)
    ax.set_aspect("equal")
    ax.set_xticks([])
    ax.set_yticks([])
    if title:
        ax.set_title(title)

    Path(output_dir).mkdir(parents=True, exist_ok=True)
    return _save_fig(fig, output_dir, name)


# ===================================================================
# Full report
# ===================================================================

def generate_report(
    df: pd.DataFrame,
    output_dir: str | Path,
    min_levels_per_config: int = 10,
    min_success_rate: float = 0.5,
) -> dict:
    """Generate full diversity analysis report.

    Creates figures and a JSON summary in the output directory.

    Args:
        df: Metrics DataFrame from compute_batch_metrics().
        output_dir: Directory to write analysis outputs.
        min_levels_per_config: Threshold for gap report.
        min_success_rate: Threshold for gap report.

    Returns:
        Summary dict (also saved as JSON).
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    print(f"Generating diversity report in {output_dir}/")
    figures = {}

    print("  Plotting success rates...")
    figures["success_rates"] = plot_success_rates(df, output_dir)

    print("  Plotting metric distributions...")
    figures["metric_distributions"] = plot_metric_distributions(df, output_dir)

    print("  Plotting physics vs. shape...")
    figures["physics_vs_shape"] = plot_physics_vs_shape(df, output_dir)

    print("  Computing gap report...")
    gaps = compute_gap_report(df, min_levels_per_config, min_success_rate)

    per_config = {}
    for label, group in df.groupby("config"):
        ok = group[group["success"].astype(bool)]
        per_config[str(label)] = {
            "levels": int(len(group)),
            "success_rate": float(group["success"].mean()),
            "mean_attempts": float(group["attempts"].mean()),
            "mean_path_time": float(ok["path_time"].mean()) if len(ok) else None,
            "mean_jump_count": float(ok["jump_count"].mean()) if len(ok) else None,
        }

    summary = {
        "total_levels": int(len(df)),
        "success_rate": float(df["success"].mean()) if len(df) else 0.0,
        "configs": per_config,
        "gaps": gaps,
        "figures": figures,
    }

    summary_path = output_dir / "summary.json"
    with open(summary_path, "w") as f:
        json.dump(summary, f, indent=2)

    print(f"  {len(gaps)} config(s) flagged in gap report")
    print(f"Report written to {summary_path}")
    return summary
