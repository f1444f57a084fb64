import os
import matplotlib
matplotlib.use("Agg")

import pytest
from statespace_sim.core.components import Element

TEST_DATA_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), "test_data")


@pytest.fixture
def test_data_dir():
    return TEST_DATA_DIR


@pytest.fixture
def rc_circuit():
    """5 V source charging 1 uF through 1 kOhm."""
    return [
        Element.resistor("R1", 1000.0, 1, 2),
        Element.capacitor("C1", 1e-6, 2, 0),
        Element.voltage_source("V1", 5.0, 1, 0),
    ]


@pytest.fixture
def rl_circuit():
    """1 mA source feeding 1 kOhm and 0.1 H in parallel."""
    return [
        Element.current_source("J1", 0.001, 0, 1),
        Element.resistor("R1", 1000.0, 1, 0),
        Element.inductor("L1", 0.1, 1, 0),
    ]


@pytest.fixture
def rlc_circuit():
    """Series RLC circuit driven by 5 V."""
    return [
        Element.voltage_source("V1", 5.0, 1, 0),
        Element.resistor("R1", 10.0, 1, 2),
        Element.inductor("L1", 1e-3, 2, 3),
        Element.capacitor("C1", 1e-6, 3, 0),
    ]


@pytest.fixture
def lc_circuit():
    return [
        Element.capacitor("C1", 1e-6, 1, 0),
        Element.inductor("L1", 1e-3, 1, 0),
    ]


@pytest.fixture
def two_state_circuit():
    """Capacitor and inductor coupled through two resistors and a current source."""
    return [
        Element.resistor("R1", 1000.0, 1, 2),
        Element.resistor("R2", 2000.0, 2, 0),
        Element.capacitor("C1", 1e-6, 2, 0),
        Element.inductor("L1", 0.1, 1, 0),
        Element.current_source("J1", 0.001, 2, 0),
    ]


@pytest.fixture
def divider_circuit():
    """10 V across 1 kOhm and 3 kOhm in series."""
    return [
        Element.voltage_source("V1", 10.0, 1, 0),
        Element.resistor("R1", 1000.0, 1, 2),
        Element.resistor("R2", 3000.0, 2, 0),
    ]
