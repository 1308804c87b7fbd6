"""Copy-on-write working set and the editing transaction."""

from .objects import EdObject, EdNode, EdWay, EdMultipolygon
from .editor import WayEditor

__all__ = [
    'EdObject',
    'EdNode',
    'EdWay',
    'EdMultipolygon',
    'WayEditor',
]
