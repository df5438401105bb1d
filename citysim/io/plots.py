from __future__ import annotations

from pathlib import Path

import matplotlib

matplotlib.use("Agg")
import matplotlib.pyplot as plt
import pandas as pd

from citysim.clock import TICKS_PER_SECOND
from citysim.world.trips import TripMode


def plot_duration_histograms(trips: pd.DataFrame, out_dir: str | Path) -> Path:
    out_dir = Path(out_dir)
    path = out_dir / "trip_durations.png"
    fig, ax = plt.subplots(figsize=(8, 4))
    for mode in TripMode:
        subset = trips[trips["mode"] == mode.value]
        if subset.empty:
            continue
        ax.hist(subset["duration"] / TICKS_PER_SECOND / 60, bins=30, alpha=0.4, label=mode.value)
    ax.set_title("Trip Durations by Mode")
    ax.set_xlabel("Duration (minutes)")
    ax.set_ylabel("Trips")
    if not trips.empty:
        ax.legend(loc="upper right", fontsize=8)
    fig.tight_layout()
    fig.savefig(path, dpi=150)
    plt.close(fig)
    return path
