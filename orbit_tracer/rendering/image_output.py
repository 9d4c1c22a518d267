"""
Image export for orbit trace renders.

Final RGBA images are written in lossless formats (PNG, TIFF) with the
render metadata embedded, and the raw 16-bit canvas can be dumped next
to them for later re-compositing.
"""

import json
import logging
from dataclasses import dataclass, asdict, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import numpy as np
from PIL import Image, PngImagePlugin

logger = logging.getLogger(__name__)

METADATA_KEY = "OrbitTraceMetadata"
TIFF_DESCRIPTION_TAG = 270


@dataclass
class RenderMetadata:
    """Metadata for orbit trace renders."""

    config: Dict[str, Any]
    resolution: Tuple[int, int]
    coordinates: int
    chunks: int
    traces_drawn: int
    render_time_seconds: float
    timestamp: str = ""
    software_version: str = ""
    extra: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        """Set default timestamp and version if not provided."""
        if not self.timestamp:
            self.timestamp = datetime.now().isoformat()

        if not self.software_version:
            from .. import __version__
            self.software_version = __version__

    def to_dict(self) -> Dict[str, Any]:
        """Convert metadata to dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'RenderMetadata':
        """Create metadata from dictionary."""
        data = dict(data)
        data['resolution'] = tuple(data['resolution'])
        return cls(**data)

    def to_json(self, indent: int = 2) -> str:
        """Convert to JSON string."""
        return json.dumps(self.to_dict(), indent=indent)

    @classmethod
    def from_json(cls, json_str: str) -> 'RenderMetadata':
        """Create metadata from JSON string."""
        return cls.from_dict(json.loads(json_str))


class ImageExporter:
    """Lossless RGBA image export with metadata support."""

    def __init__(self):
        self.supported_formats = {
            '.png': self._save_png,
            '.tiff': self._save_tiff,
            '.tif': self._save_tiff,
        }

    def save_image(self, image_array: np.ndarray, filepath,
                   metadata: Optional[RenderMetadata] = None) -> Path:
        """
        Save an RGBA image array to file with metadata.

        Args:
            image_array: RGBA image array (height, width, 4) of uint8
            filepath: Output file path
            metadata: Render metadata to embed

        Returns:
            The path written
        """
        filepath = Path(filepath)
        suffix = filepath.suffix.lower()

        if suffix not in self.supported_formats:
            supported = ', '.join(self.supported_formats.keys())
            raise ValueError(f"Unsupported format '{suffix}'. Supported: {supported}")

        image_array = self._prepare_image_array(image_array)
        pil_image = Image.fromarray(image_array)

        save_method = self.supported_formats[suffix]
        save_method(pil_image, filepath, metadata)

        logger.info(f"Saved image: {filepath} ({pil_image.size[0]}x{pil_image.size[1]})")
        return filepath

    def _prepare_image_array(self, image_array: np.ndarray) -> np.ndarray:
        """Validate the image array before handing it to Pillow."""
        if image_array.ndim != 3 or image_array.shape[2] != 4:
            raise ValueError(f"Expected RGBA image array (H, W, 4), got {image_array.shape}")

        if image_array.dtype != np.uint8:
            raise ValueError(f"Expected uint8 image array, got {image_array.dtype}")

        return np.ascontiguousarray(image_array)

    def _save_png(self, pil_image: Image.Image, filepath: Path,
                  metadata: Optional[RenderMetadata]) -> None:
        """Save as PNG with metadata."""
        pnginfo = PngImagePlugin.PngInfo()

        if metadata:
            pnginfo.add_text("Software", f"orbit-tracer v{metadata.software_version}")
            pnginfo.add_text("Creation Time", metadata.timestamp)
            pnginfo.add_text(METADATA_KEY, metadata.to_json())

        pil_image.save(filepath, "PNG", pnginfo=pnginfo)

    def _save_tiff(self, pil_image: Image.Image, filepath: Path,
                   metadata: Optional[RenderMetadata]) -> None:
        """Save as LZW compressed TIFF with metadata in the description tag."""
        save_kwargs = {'format': 'TIFF', 'compression': 'tiff_lzw'}

        if metadata:
            save_kwargs['tiffinfo'] = {TIFF_DESCRIPTION_TAG: metadata.to_json()}

        pil_image.save(filepath, **save_kwargs)

    def save_raw_data(self, canvas: np.ndarray, filepath,
                      metadata: Optional[RenderMetadata] = None) -> Path:
        """
        Save the raw 16-bit canvas as a NumPy array.

        Args:
            canvas: Canvas to save
            filepath: Output file path (.npy is enforced)
            metadata: Metadata to save alongside as JSON

        Returns:
            The path written
        """
        filepath = Path(filepath)
        if filepath.suffix.lower() != '.npy':
            filepath = filepath.with_suffix('.npy')

        np.save(filepath, canvas)

        if metadata:
            metadata_path = filepath.with_suffix('.json')
            with open(metadata_path, 'w', encoding='utf-8') as f:
                f.write(metadata.to_json())

        logger.info(f"Saved raw data: {filepath}")
        return filepath

    def load_raw_data(self, filepath) -> Tuple[np.ndarray, Optional[RenderMetadata]]:
        """
        Load a raw canvas and its metadata, if present.

        Returns:
            Tuple of (canvas, metadata)
        """
        filepath = Path(filepath)
        canvas = np.load(filepath)

        metadata = None
        metadata_path = filepath.with_suffix('.json')
        if metadata_path.exists():
            with open(metadata_path, 'r', encoding='utf-8') as f:
                metadata = RenderMetadata.from_json(f.read())

        return canvas, metadata

    def extract_metadata_from_image(self, filepath) -> Optional[RenderMetadata]:
        """
        Extract render metadata from a saved image.

        Returns:
            Extracted metadata or None if the image carries none
        """
        with Image.open(filepath) as img:
            text = getattr(img, 'text', None) or {}
            if METADATA_KEY in text:
                return RenderMetadata.from_json(text[METADATA_KEY])

            tags = getattr(img, 'tag_v2', None)
            if tags is not None and TIFF_DESCRIPTION_TAG in tags:
                try:
                    return RenderMetadata.from_json(tags[TIFF_DESCRIPTION_TAG])
                except (ValueError, TypeError, KeyError) as e:
                    logger.warning(f"Could not parse metadata from {filepath}: {e}")

        return None
