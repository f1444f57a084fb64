from typing import Optional
import matplotlib.pyplot as plt
import sympy as sp
from .integrator import SimulationTrace
from .state_space_model import StateSpaceSystem


def plot_results(trace: SimulationTrace, system: StateSpaceSystem, file_path: Optional[str] = None):
    """
    Plots the state and output trajectories over time.

    Parameters:
    - trace: Result of the integration.
    - system: The system that produced the trace, for variable names.
    - file_path: Image file to save the figure to; the figure is shown when omitted.

    Returns:
    - The matplotlib figure, or None when there is nothing to plot.
    """
    n_states = system.n_states
    n_outputs = system.n_outputs
    total_plots = n_states + n_outputs
    if total_plots == 0:
        return None

    fig, axes = plt.subplots(total_plots, 1, figsize=(10, 2 * total_plots), squeeze=False)
    axes = axes.flatten()

    for i, element in enumerate(system.state_elements):
        axes[i].plot(trace.time, trace.states[:, i], 'b-', linewidth=2,
                     label=f"State: ${sp.latex(element.state_var)}$")
        axes[i].set_ylabel('Value')
        axes[i].grid(True, alpha=0.3)
        axes[i].legend()

    for i, name in enumerate(system.output_names):
        ax = axes[n_states + i]
        ax.plot(trace.time, trace.outputs[:, i], 'r-', linewidth=2, label=f"Output: {name}")
        ax.set_ylabel('Value')
        ax.grid(True, alpha=0.3)
        ax.legend()

    axes[-1].set_xlabel('Time (s)')
    fig.suptitle(f'Circuit Simulation Results ({trace.status.value})', fontsize=14)
    fig.tight_layout()

    if file_path is not None:
        fig.savefig(file_path)
        plt.close(fig)
    else:
        plt.show()
    return fig
