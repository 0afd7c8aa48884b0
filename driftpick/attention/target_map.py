"""
Target map (hit-testing)

Resolves a predicted screen point to the identifier of the item under it.
Regions are published by the host (e.g. a browser extension sending the
bounding boxes of visible product cards). Later regions are on top.
"""

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Tuple


@dataclass(frozen=True)
class TargetRegion:
    """Axis-aligned rectangle in viewport pixels; identifier may be None"""
    identifier: Optional[str]
    x: float
    y: float
    width: float
    height: float

    def contains(self, point: Tuple[float, float]) -> bool:
        px, py = point
        return self.x <= px < self.x + self.width and self.y <= py < self.y + self.height

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TargetRegion":
        identifier = data.get('id', data.get('identifier'))
        return cls(
            identifier=str(identifier) if identifier not in (None, "") else None,
            x=float(data['x']),
            y=float(data['y']),
            width=float(data['width']),
            height=float(data['height'])
        )


class TargetMap:
    """Point -> identifier lookup over the current set of regions"""

    def __init__(self, regions: Iterable[TargetRegion] = ()):
        self._regions: List[TargetRegion] = list(regions)

    @property
    def regions(self) -> List[TargetRegion]:
        return list(self._regions)

    def set_regions(self, regions: Iterable[TargetRegion]):
        """Replace every region (the host re-publishes on scroll/resize)"""
        self._regions = list(regions)

    def resolve(self, point: Optional[Tuple[float, float]]) -> Optional[str]:
        """Identifier of the topmost region containing the point, or None"""
        if point is None:
            return None
        for region in reversed(self._regions):
            if region.contains(point):
                return region.identifier
        return None

    __call__ = resolve
