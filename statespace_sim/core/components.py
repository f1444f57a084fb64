import math
from enum import Enum
from typing import Any
from pydantic import BaseModel, ConfigDict, Field, model_validator
from sympy import Function, Symbol, symbols
from sympy.abc import t


class ElementKind(str, Enum):
    """Closed set of two-terminal element kinds."""
    RESISTOR = "resistor"
    CAPACITOR = "capacitor"
    INDUCTOR = "inductor"
    VOLTAGE_SOURCE = "voltage-source"
    CURRENT_SOURCE = "current-source"


PASSIVE_KINDS = (ElementKind.RESISTOR, ElementKind.CAPACITOR, ElementKind.INDUCTOR)
SOURCE_KINDS = (ElementKind.VOLTAGE_SOURCE, ElementKind.CURRENT_SOURCE)
STATE_KINDS = (ElementKind.CAPACITOR, ElementKind.INDUCTOR)

UNITS = {
    ElementKind.RESISTOR: "Ohm",
    ElementKind.CAPACITOR: "F",
    ElementKind.INDUCTOR: "H",
    ElementKind.VOLTAGE_SOURCE: "V",
    ElementKind.CURRENT_SOURCE: "A",
}


class Element(BaseModel):
    """Immutable two-terminal circuit element directed from ``node_a`` to ``node_b``.

    The element voltage is ``V(node_a) - V(node_b)`` and the element current
    flows from ``node_a`` to ``node_b`` through the element. A current source
    drives ``value`` amperes along that direction, a voltage source holds
    ``V(node_a) - V(node_b) = value``.
    """
    comp_id: str = Field(..., description="Unique identifier for the element", pattern=r"^[A-Za-z].*")
    kind: ElementKind = Field(..., description="Element kind")
    value: float = Field(..., description="Resistance, capacitance, inductance or source magnitude")
    node_a: int = Field(..., description="Node the element is directed from")
    node_b: int = Field(..., description="Node the element is directed to")

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def validate_element(self) -> "Element":
        """Validate terminals and value range for the element kind."""
        if self.node_a == self.node_b:
            raise ValueError(f"Element '{self.comp_id}' connects node {self.node_a} to itself")
        if not math.isfinite(self.value):
            raise ValueError(f"Element '{self.comp_id}' has a non-finite value {self.value}")
        if self.kind in PASSIVE_KINDS and self.value <= 0:
            raise ValueError(
                f"{self.kind.value.capitalize()} '{self.comp_id}' must have a positive value, got {self.value}"
            )
        return self

    def __hash__(self):
        """Make elements hashable by using comp_id."""
        return hash(self.comp_id)

    def __eq__(self, other: Any) -> bool:
        """Elements are equal if they have the same comp_id."""
        if not isinstance(other, Element):
            return False
        return self.comp_id == other.comp_id

    @classmethod
    def resistor(cls, comp_id: str, resistance: float, node_a: int, node_b: int) -> "Element":
        return cls(comp_id=comp_id, kind=ElementKind.RESISTOR, value=resistance, node_a=node_a, node_b=node_b)

    @classmethod
    def capacitor(cls, comp_id: str, capacitance: float, node_a: int, node_b: int) -> "Element":
        return cls(comp_id=comp_id, kind=ElementKind.CAPACITOR, value=capacitance, node_a=node_a, node_b=node_b)

    @classmethod
    def inductor(cls, comp_id: str, inductance: float, node_a: int, node_b: int) -> "Element":
        return cls(comp_id=comp_id, kind=ElementKind.INDUCTOR, value=inductance, node_a=node_a, node_b=node_b)

    @classmethod
    def voltage_source(cls, comp_id: str, voltage: float, node_a: int, node_b: int) -> "Element":
        return cls(comp_id=comp_id, kind=ElementKind.VOLTAGE_SOURCE, value=voltage, node_a=node_a, node_b=node_b)

    @classmethod
    def current_source(cls, comp_id: str, current: float, node_a: int, node_b: int) -> "Element":
        return cls(comp_id=comp_id, kind=ElementKind.CURRENT_SOURCE, value=current, node_a=node_a, node_b=node_b)

    @property
    def nodes(self):
        return (self.node_a, self.node_b)

    @property
    def is_state(self) -> bool:
        """Capacitors and inductors carry a state variable."""
        return self.kind in STATE_KINDS

    @property
    def is_source(self) -> bool:
        return self.kind in SOURCE_KINDS

    @property
    def voltage_var(self) -> Symbol:
        """Returns the voltage variable for this element.

        Capacitor voltages and voltage source values are functions of time,
        every other voltage is a plain symbol.
        """
        if self.kind in (ElementKind.CAPACITOR, ElementKind.VOLTAGE_SOURCE):
            return Function(f"v_{self.comp_id}")(t)
        return symbols(f"v_{self.comp_id}")

    @property
    def current_var(self) -> Symbol:
        """Returns the current variable for this element.

        Inductor currents and current source values are functions of time,
        every other current is a plain symbol.
        """
        if self.kind in (ElementKind.INDUCTOR, ElementKind.CURRENT_SOURCE):
            return Function(f"i_{self.comp_id}")(t)
        return symbols(f"i_{self.comp_id}")

    @property
    def state_var(self) -> Symbol:
        """State variable of a capacitor (voltage) or inductor (current)."""
        if self.kind is ElementKind.CAPACITOR:
            return self.voltage_var
        if self.kind is ElementKind.INDUCTOR:
            return self.current_var
        raise ValueError(f"{self.kind.value} '{self.comp_id}' has no state variable")

    @property
    def input_var(self) -> Symbol:
        """Input variable of a voltage source (voltage) or current source (current)."""
        if self.kind is ElementKind.VOLTAGE_SOURCE:
            return self.voltage_var
        if self.kind is ElementKind.CURRENT_SOURCE:
            return self.current_var
        raise ValueError(f"{self.kind.value} '{self.comp_id}' is not a source")

    def describe(self) -> str:
        return f"{self.comp_id} ({self.kind.value}) {self.node_a}->{self.node_b}, {self.value:g} {UNITS[self.kind]}"


def shared_node(first: Element, second: Element):
    """Return a node shared by two elements, or None.

    ``first.node_a`` is checked before ``first.node_b``.
    """
    for node in first.nodes:
        if node in second.nodes:
            return node
    return None


def meets_at(first: Element, second: Element, node: int) -> bool:
    """True when one element enters ``node`` and the other exits it.

    Elements that meet at a node are traversed in the same direction around a
    loop; elements that both enter or both exit the node diverge.
    """
    first_enters = first.node_b == node
    first_exits = first.node_a == node
    second_enters = second.node_b == node
    second_exits = second.node_a == node
    return (first_enters and second_exits) or (first_exits and second_enters)


def same_node_pair(first: Element, second: Element) -> bool:
    return set(first.nodes) == set(second.nodes)
