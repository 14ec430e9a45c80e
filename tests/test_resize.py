"""最小损失裁剪缩放的测试。"""

from __future__ import annotations

from pathlib import Path

import pytest
from PIL import Image

from catalog_images.core.exceptions import InvalidImageError, NotFoundError, ValidationError
from catalog_images.processing.resize import compute_crop_box, resize_with_minimal_loss, round_half_up


@pytest.mark.parametrize(
    ("original", "target", "expected"),
    [
        ((400, 200), (100, 100), (100, 0, 200, 200)),
        ((200, 400), (100, 100), (0, 100, 200, 200)),
        ((1000, 1000), (750, 1000), (125, 0, 750, 1000)),
        ((1001, 500), (3, 2), (126, 0, 750, 500)),
        ((640, 480), (640, 480), (0, 0, 640, 480)),
    ],
)
def test_compute_crop_box(original: tuple[int, int], target: tuple[int, int], expected: tuple[int, ...]) -> None:
    crop = compute_crop_box(*original, *target)

    assert (crop.left, crop.top, crop.width, crop.height) == expected


@pytest.mark.parametrize(
    ("original", "target"),
    [((1200, 800), (750, 1000)), ((333, 1000), (860, 1100)), ((1000, 999), (1, 1)), ((57, 91), (91, 57))],
)
def test_crop_keeps_full_side_of_relatively_wider_axis(original: tuple[int, int], target: tuple[int, int]) -> None:
    ow, oh = original
    tw, th = target
    target_ratio = tw / th
    crop = compute_crop_box(ow, oh, tw, th)

    if ow / oh > target_ratio:
        assert crop.height == oh
        assert crop.width == round_half_up(crop.height * target_ratio)
    else:
        assert crop.width == ow
        assert crop.height == round_half_up(crop.width / target_ratio)
    assert 0 <= crop.left and crop.left + crop.width <= ow
    assert 0 <= crop.top and crop.top + crop.height <= oh


def test_round_half_up() -> None:
    assert round_half_up(0.5) == 1
    assert round_half_up(2.5) == 3
    assert round_half_up(2.4999) == 2


@pytest.mark.parametrize("size", [(1, 1), (37, 91), (300, 120), (1000, 3)])
def test_output_has_exact_target_size(tmp_path: Path, image_factory, size: tuple[int, int]) -> None:
    source = image_factory(tmp_path / "src.png", size=size, color="orange")
    destination = tmp_path / "out" / "dst.jpg"

    resize_with_minimal_loss(source, destination, 50, 80)

    with Image.open(destination) as result:
        assert result.size == (50, 80)
        assert result.format == "JPEG"


def test_crop_is_centered(tmp_path: Path) -> None:
    source = tmp_path / "bands.png"
    image = Image.new("RGB", (300, 100), "red")
    image.paste((0, 128, 0), (100, 0, 200, 100))
    image.paste((0, 0, 255), (200, 0, 300, 100))
    image.save(source)

    destination = tmp_path / "center.jpg"
    resize_with_minimal_loss(source, destination, 50, 50)

    with Image.open(destination) as result:
        for point in [(0, 0), (25, 25), (49, 49), (0, 49)]:
            r, g, b = result.getpixel(point)
            assert g > 100 and r < 40 and b < 40


def test_transparent_source_is_flattened(tmp_path: Path) -> None:
    source = tmp_path / "alpha.png"
    Image.new("RGBA", (40, 40), (255, 0, 0, 0)).save(source)

    destination = tmp_path / "alpha.jpg"
    resize_with_minimal_loss(source, destination, 20, 20)

    with Image.open(destination) as result:
        assert result.mode == "RGB"
        assert all(channel > 240 for channel in result.getpixel((10, 10)))


def test_existing_destination_is_overwritten(tmp_path: Path, image_factory) -> None:
    source = image_factory(tmp_path / "src.jpg", size=(120, 90))
    destination = tmp_path / "dst.jpg"
    destination.write_text("stale")

    resize_with_minimal_loss(source, destination, 30, 30)

    with Image.open(destination) as result:
        assert result.size == (30, 30)


def test_rerun_produces_identical_bytes(tmp_path: Path) -> None:
    source = tmp_path / "gradient.png"
    image = Image.new("RGB", (256, 128))
    image.putdata([(x, y * 2, (x + y) % 256) for y in range(128) for x in range(256)])
    image.save(source)
    destination = tmp_path / "gradient_naver.jpg"

    resize_with_minimal_loss(source, destination, 90, 120)
    first = destination.read_bytes()
    resize_with_minimal_loss(source, destination, 90, 120)

    assert destination.read_bytes() == first


def test_missing_source_raises_not_found(tmp_path: Path) -> None:
    with pytest.raises(NotFoundError):
        resize_with_minimal_loss(tmp_path / "missing.jpg", tmp_path / "out.jpg", 10, 10)


def test_corrupt_source_raises_invalid_image(tmp_path: Path) -> None:
    source = tmp_path / "broken.jpg"
    source.write_text("not an image")

    with pytest.raises(InvalidImageError):
        resize_with_minimal_loss(source, tmp_path / "out.jpg", 10, 10)
    assert not (tmp_path / "out.jpg").exists()


@pytest.mark.parametrize(("width", "height"), [(0, 10), (10, -1)])
def test_non_positive_target_raises(tmp_path: Path, image_factory, width: int, height: int) -> None:
    source = image_factory(tmp_path / "src.png")

    with pytest.raises(ValidationError):
        resize_with_minimal_loss(source, tmp_path / "out.jpg", width, height)


def test_decompression_bomb_is_invalid_image(tmp_path: Path, image_factory, monkeypatch: pytest.MonkeyPatch) -> None:
    source = image_factory(tmp_path / "huge.jpg", size=(400, 400))
    monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 40_000)

    with pytest.raises(InvalidImageError):
        resize_with_minimal_loss(source, tmp_path / "out.jpg", 10, 10)
    assert not (tmp_path / "out.jpg").exists()
