"""
Tests for the circuit sanity checker module.
"""

import pytest
from statespace_sim.core.components import Element
from statespace_sim.core.circuit_sanity_checker import (
    CircuitSanityChecker, CircuitTopologyError, has_current_path
)
from statespace_sim.core.components import ElementKind
from statespace_sim.core.electrical_graph import TopologyBuilder


def checker_for(elements):
    return CircuitSanityChecker(elements, TopologyBuilder().build(elements))


class TestValidCircuits:
    """Well-formed circuits pass without errors or warnings."""

    def test_rc(self, rc_circuit):
        result = checker_for(rc_circuit).check_all()
        assert result == {'errors': [], 'warnings': []}

    def test_two_state(self, two_state_circuit):
        result = checker_for(two_state_circuit).check_all()
        assert result == {'errors': [], 'warnings': []}


class TestErrors:

    def test_duplicate_ids(self):
        elements = [
            Element.resistor("R1", 10.0, 1, 0),
            Element.capacitor("C1", 1e-6, 1, 0),
            Element.resistor("R1", 20.0, 1, 0),
        ]
        result = checker_for(elements).check_all(raise_on_error=False)
        assert any("Duplicate" in e and "R1" in e for e in result['errors'])

    def test_disconnected_network(self):
        elements = [
            Element.voltage_source("V1", 5.0, 1, 0),
            Element.resistor("R1", 10.0, 1, 0),
            Element.resistor("R2", 10.0, 7, 8),
        ]
        result = checker_for(elements).check_all(raise_on_error=False)
        assert any("disconnected" in e for e in result['errors'])

    def test_voltage_source_loop(self):
        elements = [
            Element.voltage_source("V1", 5.0, 1, 0),
            Element.voltage_source("V2", 5.0, 1, 2),
            Element.voltage_source("V3", 5.0, 2, 0),
        ]
        result = checker_for(elements).check_all(raise_on_error=False)
        assert len(result['errors']) == 1
        assert "V3" in result['errors'][0]

    def test_open_circuit_current_source(self):
        elements = [
            Element.current_source("J1", 0.001, 0, 1),
            Element.resistor("R1", 10.0, 1, 2),
        ]
        result = checker_for(elements).check_all(raise_on_error=False)
        assert any("'J1' is in open circuit" in e for e in result['errors'])

    def test_series_current_sources(self):
        elements = [
            Element.current_source("J1", 0.001, 0, 1),
            Element.current_source("J2", 0.002, 1, 2),
            Element.resistor("R1", 10.0, 2, 0),
        ]
        result = checker_for(elements).check_all(raise_on_error=False)
        assert len(result['errors']) == 2

    def test_raise_on_error(self):
        elements = [
            Element.voltage_source("V1", 5.0, 1, 0),
            Element.voltage_source("V2", 6.0, 1, 0),
        ]
        with pytest.raises(CircuitTopologyError, match="V2"):
            checker_for(elements).check_all()


class TestWarnings:

    def test_capacitor_loop(self):
        elements = [
            Element.voltage_source("V1", 5.0, 1, 0),
            Element.capacitor("C1", 1e-6, 1, 0),
            Element.resistor("R1", 10.0, 1, 0),
        ]
        result = checker_for(elements).check_all()
        assert result['errors'] == []
        assert len(result['warnings']) == 1
        assert "C1" in result['warnings'][0]

    def test_inductor_cutset(self):
        elements = [
            Element.current_source("J1", 0.001, 0, 1),
            Element.inductor("L1", 1e-3, 1, 2),
            Element.resistor("R1", 10.0, 2, 0),
        ]
        result = checker_for(elements).check_all()
        assert len(result['warnings']) == 1
        assert "L1" in result['warnings'][0]


def test_has_current_path_excludes_kinds():
    elements = [
        Element.current_source("J1", 0.001, 0, 1),
        Element.resistor("R1", 10.0, 1, 0),
    ]
    graph = TopologyBuilder().build(elements).to_networkx()

    assert has_current_path(graph, 0, 1)
    assert has_current_path(graph, 0, 1, exclude_kinds=[ElementKind.CURRENT_SOURCE])
    assert not has_current_path(graph, 0, 1, exclude_kinds=[ElementKind.RESISTOR],
                                exclude_elements={elements[0]})


def test_log_results(caplog, rc_circuit):
    checker = checker_for(rc_circuit)
    checker.check_all()
    with caplog.at_level("INFO"):
        checker.log_results()
    assert "passed" in caplog.text
