import math
from typing import Optional
from pydantic import BaseModel, Field, field_validator

class EngineSettings(BaseModel):
    """
    Settings for the simulation engine.

    This class contains all the configuration parameters needed to build and run a simulation.

    Attributes:
        simulation_time (Optional[float]): Total simulated time in seconds. None or a
            non-positive value selects the recommended time for the circuit.
        time_step (Optional[float]): Requested integration step in seconds. None or a
            non-positive value selects the recommended step for the circuit.
        auto_step (bool): Limit the step to a fraction of the stability estimate.
        stability_factor (float): Fraction of 1/spectral-radius used as the step limit.
        lc_seed_voltage (float): Initial capacitor voltage for source-free circuits with inductors.
        damping (bool): Add the explicit damping term of resistors in parallel with capacitors.
        strict_topology (bool): Raise CircuitTopologyError when the sanity checks find errors.
    """
    simulation_time: Optional[float] = Field(default=None, description="Total simulated time in seconds")
    time_step: Optional[float] = Field(default=None, description="Requested integration step in seconds")
    auto_step: bool = Field(
        default=True,
        description="Limit the step to stability_factor / spectral radius estimate"
    )
    stability_factor: float = Field(
        default=0.1,
        description="Fraction of the stable step actually used"
    )
    lc_seed_voltage: float = Field(
        default=1.0,
        description="Capacitor seed voltage for source-free circuits with inductors"
    )
    damping: bool = Field(
        default=True,
        description="Apply the parallel resistor damping term to capacitor equations"
    )
    strict_topology: bool = Field(
        default=True,
        description="Raise on circuit topology errors"
    )


    @field_validator('stability_factor')
    def validate_stability_factor(cls, v):
        """Validate that stability_factor is in (0, 1]."""
        if not 0 < v <= 1:
            raise ValueError("stability_factor must be in (0, 1]")
        return v

    @field_validator('lc_seed_voltage')
    def validate_lc_seed_voltage(cls, v):
        """Validate that the seed voltage is finite."""
        if not math.isfinite(v):
            raise ValueError("lc_seed_voltage must be finite")
        return v
