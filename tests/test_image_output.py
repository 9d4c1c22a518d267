import numpy as np
import pytest
from PIL import Image

from orbit_tracer.core.config import RenderConfig
from orbit_tracer.rendering.coloring import ColorRGBA, solid_image
from orbit_tracer.rendering.image_output import ImageExporter, RenderMetadata


@pytest.fixture
def metadata():
    return RenderMetadata(
        config=RenderConfig(size=4).to_dict(),
        resolution=(4, 4),
        coordinates=1600,
        chunks=1,
        traces_drawn=1600,
        render_time_seconds=0.5,
    )


@pytest.fixture
def image():
    img = solid_image(4, 4, ColorRGBA(0, 0, 0))
    img[1, 2] = (255, 255, 255, 255)
    return img


def test_metadata_defaults():
    from orbit_tracer import __version__

    meta = RenderMetadata(config={}, resolution=(1, 1), coordinates=0, chunks=0,
                          traces_drawn=0, render_time_seconds=0.0)
    assert meta.timestamp
    assert meta.software_version == __version__


def test_metadata_json_round_trip(metadata):
    assert RenderMetadata.from_json(metadata.to_json()) == metadata


def test_png_round_trip(tmp_path, image, metadata):
    exporter = ImageExporter()
    path = exporter.save_image(image, tmp_path / "out.png", metadata)

    with Image.open(path) as img:
        assert img.mode == 'RGBA'
        np.testing.assert_array_equal(np.asarray(img), image)

    assert exporter.extract_metadata_from_image(path) == metadata


def test_png_without_metadata(tmp_path, image):
    exporter = ImageExporter()
    path = exporter.save_image(image, tmp_path / "plain.png")
    assert exporter.extract_metadata_from_image(path) is None


@pytest.mark.parametrize("name", ["out.tiff", "out.TIF"])
def test_tiff_is_lossless(tmp_path, image, metadata, name):
    path = ImageExporter().save_image(image, tmp_path / name, metadata)

    with Image.open(path) as img:
        np.testing.assert_array_equal(np.asarray(img.convert('RGBA')), image)


def test_unsupported_format(tmp_path, image):
    with pytest.raises(ValueError, match="Unsupported format"):
        ImageExporter().save_image(image, tmp_path / "out.jpg")


def test_rejects_wrong_array(tmp_path):
    exporter = ImageExporter()
    with pytest.raises(ValueError):
        exporter.save_image(np.zeros((4, 4, 3), dtype=np.uint8), tmp_path / "out.png")
    with pytest.raises(ValueError):
        exporter.save_image(np.zeros((4, 4, 4), dtype=np.uint16), tmp_path / "out.png")


def test_raw_data_round_trip(tmp_path, metadata):
    canvas = np.arange(4 * 4 * 2, dtype=np.uint16).reshape(4, 4, 2)
    exporter = ImageExporter()

    path = exporter.save_raw_data(canvas, tmp_path / "canvas.png", metadata)
    assert path.suffix == '.npy'

    loaded, loaded_meta = exporter.load_raw_data(path)
    np.testing.assert_array_equal(loaded, canvas)
    assert loaded.dtype == np.uint16
    assert loaded_meta == metadata
