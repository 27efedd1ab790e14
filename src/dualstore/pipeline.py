"""Data building through ordered stages of pure transforms.

A transform takes a field mapping and returns a new one. ``DataBuilder``
runs the general stage (transforms shared by every caller) before the
specific stage (transforms for one workflow), so specific rules always see
normalized input.
"""

import logging
from typing import Any, Callable, Dict, Iterable, Mapping, Tuple

logger = logging.getLogger(__name__)

Transform = Callable[[Dict[str, Any]], Dict[str, Any]]


def compose(*transforms: Transform) -> Transform:
    """Combine transforms into one, applied left to right."""

    def composed(data: Dict[str, Any]) -> Dict[str, Any]:
        for transform in transforms:
            data = transform(data)
        return data

    return composed


class DataBuilder:
    """Applies the general stage, then the specific stage, to a copy of the input."""

    def __init__(
        self,
        general: Iterable[Transform] = (),
        specific: Iterable[Transform] = (),
    ) -> None:
        self.general: Tuple[Transform, ...] = tuple(general)
        self.specific: Tuple[Transform, ...] = tuple(specific)

    def build(self, data: Mapping[str, Any], *extra: Transform) -> Dict[str, Any]:
        """Run every stage and return the transformed fields.

        Args:
            data: Input fields; left untouched
            *extra: Per-call transforms appended after the specific stage

        Returns:
            A new dict with all transforms applied
        """
        pipeline = self.general + self.specific + extra
        logger.debug(f"Building data through {len(pipeline)} transforms")
        result = compose(*pipeline)(dict(data))
        if not isinstance(result, dict):
            raise TypeError(
                f"Transforms must return a dict, got {type(result).__name__}"
            )
        return result

    def with_specific(self, *transforms: Transform) -> "DataBuilder":
        """Return a builder sharing the general stage with extra specific transforms."""
        return DataBuilder(self.general, self.specific + transforms)
