"""Combination expansion, execution and result publication."""

from .expander import expand_snapshot, expand_tasks, flatten_accessories
from .results import ResultCollection
from .runner import CombinationRunner
from .studio import OutfitStudio

__all__ = [
    "expand_snapshot",
    "expand_tasks",
    "flatten_accessories",
    "ResultCollection",
    "CombinationRunner",
    "OutfitStudio",
]
