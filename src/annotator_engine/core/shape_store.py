"""Canonical ordered collection of annotation shapes."""

from __future__ import annotations

import copy
import logging
from typing import Iterable, Iterator, List, Optional, Union

from .errors import EditResult, EditStatus
from .models import UNSET_CLASS_ID, Geometry, Shape

logger = logging.getLogger(__name__)


class ShapeStore:
    """
    Owns every live shape, in insertion order.

    Ids come from a monotonic counter that never rewinds, so a deleted id is
    never handed out again. At most one shape is selected at any time.
    """

    def __init__(self) -> None:
        self._shapes: List[Shape] = []
        self._next_id = 1

    def __len__(self) -> int:
        return len(self._shapes)

    def __contains__(self, shape_id: object) -> bool:
        return self._index_of(shape_id) is not None

    def __iter__(self) -> Iterator[Shape]:
        return iter(self.shapes())

    def iter(self) -> Iterator[Shape]:
        """Iterate shapes in insertion order."""
        return iter(self.shapes())

    def shapes(self) -> List[Shape]:
        """Return a stable, insertion-ordered list of the live shapes."""
        return list(self._shapes)

    @property
    def next_id(self) -> int:
        return self._next_id

    def _index_of(self, shape_id: object) -> Optional[int]:
        for i, shape in enumerate(self._shapes):
            if shape.id == shape_id:
                return i
        return None

    def _bump_counter(self, shapes: Iterable[Shape]) -> None:
        highest = max((s.id for s in shapes), default=0)
        self._next_id = max(self._next_id, highest + 1)

    # === Queries ===

    def get(self, shape_id: int) -> Optional[Shape]:
        """Return the live shape with this id, or None."""
        index = self._index_of(shape_id)
        return self._shapes[index] if index is not None else None

    @property
    def selected_id(self) -> Optional[int]:
        for shape in self._shapes:
            if shape.selected:
                return shape.id
        return None

    def selected(self) -> Optional[Shape]:
        """Return the selected shape, if any."""
        shape_id = self.selected_id
        return self.get(shape_id) if shape_id is not None else None

    # === Mutations ===

    def add(self, item: Union[Shape, Geometry], class_id: int = UNSET_CLASS_ID) -> int:
        """
        Add a shape and return its newly assigned id.

        Args:
            item: A geometry, or a Shape whose geometry/class are copied
            class_id: Class id for a bare geometry

        Returns:
            The id assigned to the stored shape
        """
        if isinstance(item, Shape):
            geometry, class_id = item.geometry, item.class_id
        else:
            geometry = item

        shape = Shape(id=self._next_id, geometry=geometry, class_id=class_id)
        self._next_id += 1
        self._shapes.append(shape)
        logger.debug(f"Added {shape.type.value} shape {shape.id}")
        return shape.id

    def remove(self, shape_id: int) -> EditResult:
        """Remove a shape by id."""
        index = self._index_of(shape_id)
        if index is None:
            logger.warning(f"Cannot remove shape {shape_id}: not found")
            return EditResult.not_found(shape_id)

        del self._shapes[index]
        logger.debug(f"Removed shape {shape_id}")
        return EditResult.success(shape_id)

    def update_geometry(self, shape_id: int, geometry: Geometry) -> EditResult:
        """Replace the geometry of a shape."""
        shape = self.get(shape_id)
        if shape is None:
            logger.warning(f"Cannot update geometry of shape {shape_id}: not found")
            return EditResult.not_found(shape_id)

        if shape.geometry == geometry:
            return EditResult(EditStatus.NO_CHANGE, shape_id, "Geometry unchanged")

        shape.geometry = geometry
        return EditResult.success(shape_id)

    def set_class(self, shape_id: int, class_id: int) -> EditResult:
        """Assign a class id to a shape."""
        if class_id < 0:
            return EditResult(
                EditStatus.INVALID_GEOMETRY, shape_id, f"Invalid class id {class_id}"
            )

        shape = self.get(shape_id)
        if shape is None:
            logger.warning(f"Cannot classify shape {shape_id}: not found")
            return EditResult.not_found(shape_id)

        if shape.class_id == class_id:
            return EditResult(EditStatus.NO_CHANGE, shape_id, "Class unchanged")

        shape.class_id = class_id
        return EditResult.success(shape_id)

    def select(self, shape_id: int) -> EditResult:
        """Select one shape exclusively."""
        if shape_id not in self:
            return EditResult.not_found(shape_id)

        for shape in self._shapes:
            shape.selected = shape.id == shape_id
        return EditResult.success(shape_id)

    def deselect_all(self) -> None:
        """Clear the selection."""
        for shape in self._shapes:
            shape.selected = False

    # === Bulk state ===

    def load(self, shapes: Iterable[Shape]) -> None:
        """
        Replace the contents with externally loaded shapes.

        The id counter is seeded from the highest id seen. Repeated ids are
        reassigned fresh ones so every id stays unique.
        """
        self._shapes = copy.deepcopy(list(shapes))
        self._enforce_single_selection()
        self._bump_counter(self._shapes)

        seen = set()
        for shape in self._shapes:
            if shape.id in seen:
                logger.warning(f"Duplicate shape id {shape.id} reassigned to {self._next_id}")
                shape.id = self._next_id
                self._next_id += 1
            seen.add(shape.id)

        logger.info(f"Loaded {len(self._shapes)} shapes, next id {self._next_id}")

    def snapshot(self) -> List[Shape]:
        """Deep copy of the current shapes."""
        return copy.deepcopy(self._shapes)

    def restore(self, shapes: Iterable[Shape]) -> None:
        """Fully replace the contents with a deep copy of a snapshot."""
        self._shapes = copy.deepcopy(list(shapes))
        self._enforce_single_selection()
        self._bump_counter(self._shapes)

    def clear(self) -> None:
        """Remove all shapes (the id counter is kept)."""
        self._shapes.clear()

    def _enforce_single_selection(self) -> None:
        seen = False
        for shape in self._shapes:
            if shape.selected:
                if seen:
                    shape.selected = False
                seen = True
