"""
Render configuration for orbit trace images.

The configuration is a flat immutable record passed into every rendering
function. It is validated once, before any work starts, so the numeric
core never has to deal with bad input.
"""

import json
import logging
from dataclasses import dataclass, asdict, fields, replace
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

logger = logging.getLogger(__name__)

MAX_OPACITY = 65535


class DrawMode(Enum):
    """Which orbit traces are drawn onto the canvas."""

    ALL = 0
    ESCAPED = 1
    TRAPPED = 2

    @classmethod
    def parse(cls, value) -> 'DrawMode':
        """Parse a mode name case-insensitively ('All', 'escaped', ...)."""
        if isinstance(value, cls):
            return value
        try:
            return cls[str(value).strip().upper()]
        except KeyError:
            names = ', '.join(m.name.capitalize() for m in cls)
            raise ValueError(f"Unknown draw mode '{value}'. Expected one of: {names}")

    @property
    def label(self) -> str:
        return self.name.capitalize()


@dataclass(frozen=True)
class RenderConfig:
    """Configuration for an orbit trace render."""

    # Image and sampling
    size: int = 2000
    bounds: float = 2.0
    delta: float = 0.01
    limit: int = 100

    # Coordinate <-> pixel mapping
    zoom: float = 900.0
    re_off: float = 0.4
    im_off: float = 0.0

    # Parallel work
    chunk_len: int = 10000
    num_processes: Optional[int] = None

    # Drawing
    opacity: int = 64
    mode: DrawMode = DrawMode.ALL
    pow: float = 2.0
    overlay_mandel: bool = False
    background: Tuple[int, int, int, int] = (0, 0, 0, 255)

    # Output
    image_name: str = "image.png"
    save_metadata: bool = True
    save_raw_data: bool = False

    def __post_init__(self):
        # Allow the mode to be given by name, e.g. from JSON or the CLI
        if not isinstance(self.mode, DrawMode):
            object.__setattr__(self, 'mode', DrawMode.parse(self.mode))
        object.__setattr__(self, 'background', tuple(int(v) for v in self.background))

    def validate(self) -> 'RenderConfig':
        """Validate configuration parameters, returning self for chaining."""
        if self.size <= 0:
            raise ValueError("size must be positive")

        if not self.bounds > 0:
            raise ValueError("bounds must be positive")

        if not self.delta > 0:
            raise ValueError("delta must be positive")

        if self.limit < 0:
            raise ValueError("limit must be non-negative")

        if not self.zoom > 0:
            raise ValueError("zoom must be positive")

        if self.chunk_len <= 0:
            raise ValueError("chunk_len must be positive")

        if not 0 <= self.opacity <= MAX_OPACITY:
            raise ValueError(f"opacity must be between 0 and {MAX_OPACITY}")

        if self.num_processes is not None and self.num_processes < 1:
            raise ValueError("num_processes must be >= 1")

        if len(self.background) != 4 or any(not 0 <= v <= 255 for v in self.background):
            raise ValueError("background must be an RGBA tuple of 8-bit values")

        if self.background[3] != 255:
            raise ValueError("background must be fully opaque")

        return self

    @property
    def half_size(self) -> float:
        """Pixel offset of the complex origin before offsets are applied."""
        return self.size / 2.0

    def with_overrides(self, **overrides) -> 'RenderConfig':
        """Return a copy with the non-None overrides applied."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        unknown = set(changes) - {f.name for f in fields(self)}
        if unknown:
            raise ValueError(f"Unknown configuration keys: {', '.join(sorted(unknown))}")
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to a JSON-friendly dictionary."""
        data = asdict(self)
        data['mode'] = self.mode.label
        data['background'] = list(self.background)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'RenderConfig':
        """Create configuration from dictionary."""
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            logger.warning(f"Ignoring unknown configuration keys: {', '.join(sorted(unknown))}")
        return cls(**{k: v for k, v in data.items() if k in known})

    @classmethod
    def from_json_file(cls, filepath) -> 'RenderConfig':
        """Load configuration from a JSON file."""
        filepath = Path(filepath)
        with open(filepath, 'r', encoding='utf-8') as f:
            data = json.load(f)

        if not isinstance(data, dict):
            raise ValueError(f"Configuration file {filepath} must contain a JSON object")

        logger.debug(f"Loaded configuration from {filepath}")
        return cls.from_dict(data)
