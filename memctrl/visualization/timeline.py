"""
Timeline charts for the memory controller.

Grant timeline (which request issued each cycle and which channel owns the
response bus) and queue occupancy curves.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple, TYPE_CHECKING

import numpy as np
import matplotlib.pyplot as plt
from matplotlib.figure import Figure

if TYPE_CHECKING:
    from ..metrics.collector import MetricsCollector


@dataclass
class TimelineConfig:
    """Configuration for timeline charts."""

    title: str = "Memory Controller Grant Timeline"
    figsize: Tuple[int, int] = (12, 6)
    read_color: str = "tab:blue"
    write_color: str = "tab:orange"
    cmap: str = "tab10"


def _save(fig: Figure, save_path: Optional[str]) -> None:
    if save_path:
        from pathlib import Path
        Path(save_path).parent.mkdir(parents=True, exist_ok=True)
        fig.savefig(save_path, dpi=150, bbox_inches='tight')


def plot_grant_timeline(
    collector: "MetricsCollector",
    config: Optional[TimelineConfig] = None,
    save_path: Optional[str] = None,
) -> Figure:
    """
    Plot per-cycle request grants and response-bus ownership.

    Top panel: channel line carrying a read or write request each cycle.
    Bottom panel: channel owning the response bus, with read-beat handshakes
    marked.

    Args:
        collector: MetricsCollector with captured data.
        config: Visualization configuration.
        save_path: Optional path to save the figure.

    Returns:
        Matplotlib Figure object.
    """
    if config is None:
        config = TimelineConfig()

    cycles = collector.cycles()
    grants = collector.grants()
    active = collector.active_channels()
    served = collector.served_channels()
    fires = np.array([s.r_fire for s in collector.snapshots], dtype=bool)

    fig, (ax_req, ax_rsp) = plt.subplots(2, 1, figsize=config.figsize, sharex=True)

    reads = grants == 1
    writes = grants == 2
    ax_req.scatter(cycles[reads], active[reads], marker='|', s=120,
                   color=config.read_color, label='Read')
    ax_req.scatter(cycles[writes], active[writes], marker='|', s=120,
                   color=config.write_color, label='Write beat')
    ax_req.set_ylabel('Channel')
    ax_req.set_title(config.title, fontsize=14, fontweight='bold')
    ax_req.legend(loc='upper right')

    ax_rsp.step(cycles, served, where='post', color='gray', label='Served channel')
    ax_rsp.scatter(cycles[fires], served[fires], marker='o', s=12,
                   color=config.read_color, label='R beat')
    ax_rsp.set_xlabel('Cycle')
    ax_rsp.set_ylabel('Response bus')
    ax_rsp.legend(loc='upper right')

    num_channels = collector.channel_occupancy().shape[1] if len(collector) else 1
    for ax in (ax_req, ax_rsp):
        ax.set_yticks(np.arange(num_channels))
        ax.set_ylim(-0.5, num_channels - 0.5)
        ax.grid(True, alpha=0.3)

    plt.tight_layout()
    _save(fig, save_path)
    return fig


def plot_queue_occupancy(
    collector: "MetricsCollector",
    config: Optional[TimelineConfig] = None,
    save_path: Optional[str] = None,
) -> Figure:
    """
    Plot write-assembler queue occupancy and per-channel read occupancy.

    Args:
        collector: MetricsCollector with captured data.
        config: Visualization configuration.
        save_path: Optional path to save the figure.

    Returns:
        Matplotlib Figure object.
    """
    if config is None:
        config = TimelineConfig(title="Queue Occupancy")

    cycles = collector.cycles()
    queues = collector.queue_occupancy()
    channels = collector.channel_occupancy()

    fig, (ax_wr, ax_rd) = plt.subplots(2, 1, figsize=config.figsize, sharex=True)

    ax_wr.step(cycles, queues["aw"], where='post', label='AW queue')
    ax_wr.step(cycles, queues["w"], where='post', label='W queue')
    ax_wr.set_ylabel('Slots used')
    ax_wr.set_title(config.title, fontsize=14, fontweight='bold')
    ax_wr.legend(loc='upper right')
    ax_wr.grid(True, alpha=0.3)

    cmap = plt.get_cmap(config.cmap)
    if channels.size:
        for ch in range(channels.shape[1]):
            ax_rd.step(cycles, channels[:, ch], where='post',
                       color=cmap(ch % 10), label=f'ch{ch}')
        ax_rd.legend(loc='upper right')
    ax_rd.set_xlabel('Cycle')
    ax_rd.set_ylabel('Pending reads')
    ax_rd.grid(True, alpha=0.3)

    plt.tight_layout()
    _save(fig, save_path)
    return fig
