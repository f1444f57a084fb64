import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List
from pydantic import ValidationError
from .components import Element, ElementKind


class NetlistParseError(ValueError):
    """Exception raised for malformed circuit descriptions."""
    pass


KIND_ALIASES = {
    "r": ElementKind.RESISTOR,
    "resistor": ElementKind.RESISTOR,
    "c": ElementKind.CAPACITOR,
    "capacitor": ElementKind.CAPACITOR,
    "l": ElementKind.INDUCTOR,
    "inductor": ElementKind.INDUCTOR,
    "v": ElementKind.VOLTAGE_SOURCE,
    "vs": ElementKind.VOLTAGE_SOURCE,
    "voltagesource": ElementKind.VOLTAGE_SOURCE,
    "voltage-source": ElementKind.VOLTAGE_SOURCE,
    "i": ElementKind.CURRENT_SOURCE,
    "j": ElementKind.CURRENT_SOURCE,
    "cs": ElementKind.CURRENT_SOURCE,
    "currentsource": ElementKind.CURRENT_SOURCE,
    "current-source": ElementKind.CURRENT_SOURCE,
}


def parse_kind(name: str) -> ElementKind:
    try:
        return KIND_ALIASES[name.strip().lower()]
    except KeyError:
        raise NetlistParseError(f"Unknown element type '{name}'") from None


def parse_number(text: str) -> float:
    """Parse a float, accepting a comma as decimal separator."""
    try:
        return float(str(text).strip().replace(",", "."))
    except ValueError:
        raise NetlistParseError(f"Invalid number '{text}'") from None


def parse_node(text: Any) -> int:
    try:
        return int(str(text).strip())
    except ValueError:
        raise NetlistParseError(f"Invalid node '{text}'") from None


class CircuitParser(ABC):
    """Abstract base class for circuit parsers that produce element lists."""

    @abstractmethod
    def parse(self, circuit_data: Any) -> List[Element]:
        """
        Parse circuit data into elements.

        Args:
            circuit_data: Circuit description in the format supported by this parser

        Returns:
            List[Element]: Elements in description order
        """
        pass

    def parse_file(self, file_path: str) -> List[Element]:
        with open(file_path, "r", encoding="utf-8") as f:
            return self.parse(self._read(f))

    def _read(self, f) -> Any:
        return f.read()

    @staticmethod
    def _create_element(comp_id: str, kind: ElementKind, value: float, node_a: int, node_b: int) -> Element:
        try:
            return Element(comp_id=comp_id, kind=kind, value=value, node_a=node_a, node_b=node_b)
        except ValidationError as e:
            raise NetlistParseError(f"Invalid element '{comp_id}': {e.errors()[0]['msg']}") from e


class ParserText(CircuitParser):
    """Parser for whitespace separated netlists.

    One element per line: ``Name Type Value Node1 Node2``. Blank lines and
    lines starting with ``//`` or ``#`` are ignored.
    """

    def parse(self, circuit_text: str) -> List[Element]:
        elements = []
        for line_number, raw_line in enumerate(circuit_text.splitlines(), start=1):
            line = raw_line.strip()
            if not line or line.startswith("//") or line.startswith("#"):
                continue
            try:
                elements.append(self._parse_line(line))
            except NetlistParseError as e:
                raise NetlistParseError(f"Line {line_number}: {e}") from e
        logging.info(f"Parsed {len(elements)} elements")
        return elements

    def _parse_line(self, line: str) -> Element:
        fields = line.split()
        if len(fields) < 5:
            raise NetlistParseError(f"Expected 'Name Type Value Node1 Node2', got '{line}'")
        name, kind, value, node_a, node_b = fields[:5]
        if len(fields) > 5:
            logging.warning(f"Ignoring extra fields {fields[5:]} for element {name}")
        return self._create_element(name, parse_kind(kind), parse_number(value),
                                    parse_node(node_a), parse_node(node_b))


class ParserJson(CircuitParser):
    """Parser for JSON circuit descriptions.

    Expects ``{"elements": [{"id": ..., "type": ..., "value": ..., "nodes": [a, b]}]}``.
    """

    def parse(self, circuit_json: Dict[str, Any]) -> List[Element]:
        if "elements" not in circuit_json:
            raise NetlistParseError("Circuit description has no 'elements' list")

        elements = []
        for index, entry in enumerate(circuit_json["elements"]):
            try:
                comp_id = entry["id"]
                kind = parse_kind(entry["type"])
                value = parse_number(entry["value"])
                nodes = entry["nodes"]
            except KeyError as e:
                raise NetlistParseError(f"Element {index} is missing field {e}") from None
            if len(nodes) != 2:
                raise NetlistParseError(f"Element '{comp_id}' must list exactly two nodes, got {nodes}")
            elements.append(self._create_element(comp_id, kind, value, parse_node(nodes[0]), parse_node(nodes[1])))
        logging.info(f"Parsed {len(elements)} elements")
        return elements

    def _read(self, f) -> Any:
        return json.load(f)
