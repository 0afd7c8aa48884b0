"""
Calibration data model

A CalibrationSet is an immutable, ordered collection of
(feature vector, screen point) samples. Its JSON form is a list of
{"inputs": [x, y], "target": [x, y]} objects.
"""

from dataclasses import dataclass
from typing import Any, Dict, Iterable, Iterator, List, Tuple

import numpy as np

ScreenPoint = Tuple[float, float]


@dataclass(frozen=True)
class CalibrationSample:
    """One feature vector paired with the screen point the user looked at"""
    inputs: Tuple[float, float]
    target: ScreenPoint

    def to_dict(self) -> Dict[str, List[float]]:
        return {
            'inputs': [self.inputs[0], self.inputs[1]],
            'target': [self.target[0], self.target[1]],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CalibrationSample":
        inputs = data['inputs']
        target = data['target']
        return cls(
            inputs=(float(inputs[0]), float(inputs[1])),
            target=(float(target[0]), float(target[1]))
        )


class CalibrationSet:
    """
    Ordered, immutable set of calibration samples

    Feature and target arrays are built once so the predictor can vectorize.
    """

    def __init__(self, samples: Iterable[CalibrationSample] = ()):
        self._samples: Tuple[CalibrationSample, ...] = tuple(samples)
        self.inputs = np.array([s.inputs for s in self._samples], dtype=float).reshape(-1, 2)
        self.targets = np.array([s.target for s in self._samples], dtype=float).reshape(-1, 2)

    @property
    def samples(self) -> Tuple[CalibrationSample, ...]:
        return self._samples

    def __len__(self) -> int:
        return len(self._samples)

    def __iter__(self) -> Iterator[CalibrationSample]:
        return iter(self._samples)

    def __bool__(self) -> bool:
        return bool(self._samples)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, CalibrationSet):
            return NotImplemented
        return self._samples == other._samples

    def __repr__(self) -> str:
        return f"CalibrationSet({len(self._samples)} samples)"

    def to_list(self) -> List[Dict[str, List[float]]]:
        return [s.to_dict() for s in self._samples]

    @classmethod
    def from_list(cls, data: Iterable[Dict[str, Any]]) -> "CalibrationSet":
        """Rebuild from the JSON form; raises KeyError/TypeError/ValueError when malformed"""
        return cls(CalibrationSample.from_dict(item) for item in data)
