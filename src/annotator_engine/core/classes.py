"""Class definitions used to label annotations."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

logger = logging.getLogger(__name__)


@dataclass
class ClassDefinition:
    """A single annotation class."""

    id: int
    name: str
    color: Optional[str] = None
    shortcut: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"id": self.id, "name": self.name}
        if self.color is not None:
            data["color"] = self.color
        if self.shortcut is not None:
            data["shortcut"] = self.shortcut
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> ClassDefinition:
        return cls(
            id=int(data["id"]),
            name=str(data.get("name", f"Class {data['id']}")),
            color=data.get("color"),
            shortcut=data.get("shortcut"),
        )


def default_classes() -> List[ClassDefinition]:
    """The five classes available before any class file is loaded."""
    colors = ["#ff0000", "#00ff00", "#0000ff", "#ffff00", "#ff00ff"]
    return [
        ClassDefinition(id=i, name=f"Class {i}", color=color, shortcut=str(i))
        for i, color in enumerate(colors, start=1)
    ]


class ClassRegistry:
    """
    Lookup of class names and colours by id.

    Loaded from a YAML file with a top-level `classes` list; unknown ids
    fall back to a generated "Class N" name.
    """

    def __init__(self, classes: Optional[List[ClassDefinition]] = None) -> None:
        self._classes: Dict[int, ClassDefinition] = {}
        for definition in classes if classes is not None else default_classes():
            self._classes[definition.id] = definition

    def __contains__(self, class_id: object) -> bool:
        return class_id in self._classes

    def __len__(self) -> int:
        return len(self._classes)

    @property
    def classes(self) -> List[ClassDefinition]:
        return sorted(self._classes.values(), key=lambda c: c.id)

    def name_for(self, class_id: int) -> str:
        """Get class name by id, or a default if not found."""
        definition = self._classes.get(class_id)
        return definition.name if definition else f"Class {class_id}"

    def color_for(self, class_id: int) -> Optional[str]:
        """Get class colour by id, or None if not found."""
        definition = self._classes.get(class_id)
        return definition.color if definition else None

    @classmethod
    def load(cls, path: Path) -> ClassRegistry:
        """
        Load class definitions from a YAML file.

        Args:
            path: Path to the class file

        Returns:
            Registry with the loaded classes, or the defaults on any error
        """
        path = Path(path).expanduser()
        if not path.exists():
            logger.info(f"Class file not found at {path}, using defaults")
            return cls()

        try:
            with open(path, "r") as f:
                data = yaml.safe_load(f) or {}
            definitions = [ClassDefinition.from_dict(item) for item in data.get("classes", [])]
            logger.info(f"Loaded {len(definitions)} classes from {path}")
            return cls(definitions)
        except yaml.YAMLError as e:
            logger.error(f"Error parsing class file: {e}")
            return cls()
        except (OSError, AttributeError, KeyError, TypeError, ValueError) as e:
            logger.error(f"Error loading class file {path}: {e}")
            return cls()

    def save(self, path: Path) -> bool:
        """
        Save class definitions to a YAML file.

        Returns:
            True if save was successful
        """
        path = Path(path).expanduser()
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, "w") as f:
                yaml.dump(
                    {"classes": [c.to_dict() for c in self.classes]},
                    f,
                    default_flow_style=False,
                    sort_keys=False
                )
            logger.info(f"Saved {len(self)} classes to {path}")
            return True
        except OSError as e:
            logger.error(f"Error saving class file: {e}")
            return False
