from abc import ABC, abstractmethod
from typing import List, Optional, Sequence, Tuple
import numpy as np
from pydantic import BaseModel, ConfigDict, Field
from .components import Element, ElementKind
from .topology_classifier import TopologyClassifier


class OutputDefinition(BaseModel, ABC):
    """Base class for one row of the output equation y = C x + D u."""
    name: Optional[str] = Field(default=None, description="Label of the output")

    model_config = ConfigDict(frozen=True)

    @abstractmethod
    def expression(self, classifier: TopologyClassifier) -> np.ndarray:
        """Return the output as a form over the state variables followed by the inputs."""
        pass

    @property
    @abstractmethod
    def default_name(self) -> str:
        pass

    @property
    def label(self) -> str:
        return self.name if self.name is not None else self.default_name


class ElementCurrent(OutputDefinition):
    """Current through an element along its node_a -> node_b direction."""
    comp_id: str = Field(..., description="Element whose current is observed")

    def expression(self, classifier: TopologyClassifier) -> np.ndarray:
        return classifier.current_of(classifier.element(self.comp_id))

    @property
    def default_name(self) -> str:
        return f"i_{self.comp_id}"


class ElementVoltage(OutputDefinition):
    """Voltage V(node_a) - V(node_b) across an element."""
    comp_id: str = Field(..., description="Element whose voltage is observed")

    def expression(self, classifier: TopologyClassifier) -> np.ndarray:
        return classifier.voltage_of(classifier.element(self.comp_id))

    @property
    def default_name(self) -> str:
        return f"v_{self.comp_id}"


class LinearCombination(OutputDefinition):
    """Weighted sum of other outputs, e.g. a branch current derived by KCL."""
    terms: Tuple[Tuple[float, OutputDefinition], ...] = Field(..., description="(weight, output) pairs")

    def expression(self, classifier: TopologyClassifier) -> np.ndarray:
        form = np.zeros(classifier.n_vars)
        for weight, output in self.terms:
            form += weight * output.expression(classifier)
        return form

    @property
    def default_name(self) -> str:
        return " + ".join(f"{weight:g}*{output.label}" for weight, output in self.terms)


def state_outputs(state_elements: Sequence[Element]) -> List[OutputDefinition]:
    """Identity outputs: each capacitor voltage and inductor current."""
    outputs = []
    for element in state_elements:
        if element.kind is ElementKind.CAPACITOR:
            outputs.append(ElementVoltage(comp_id=element.comp_id))
        else:
            outputs.append(ElementCurrent(comp_id=element.comp_id))
    return outputs
