"""业务流程端到端测试。"""

from __future__ import annotations

from pathlib import Path

import pytest
from PIL import Image

from catalog_images.core.exceptions import ProcessingAborted, ValidationError
from catalog_images.core.models import Preset
from catalog_images.core.progress import ProgressUpdate
from catalog_images.core.presets import PresetCatalog
from catalog_images.processing import workflows
from catalog_images.processing.pipeline import CancelToken


@pytest.fixture
def catalog() -> PresetCatalog:
    return PresetCatalog([Preset("naver", 60, 80), Preset("musinsa", 100, 100)])


def _files(root: Path) -> set[str]:
    return {path.relative_to(root).as_posix() for path in root.rglob("*") if path.is_file()}


def test_pattern_copy_scenario(tmp_path: Path, image_factory, catalog: PresetCatalog) -> None:
    source = image_factory(tmp_path / "src" / "25FW" / "ABC123" / "25FW-ABC123_promotion_00.jpg")

    result = workflows.copy_pattern_images(
        tmp_path / "src", "25FW", "naver", ["promotion_00"], presets=catalog
    )

    copied = source.with_name("25FW-ABC123_promotion_00_naver.jpg")
    assert result.matched_count == result.succeeded_count == 1
    assert copied.read_bytes() == source.read_bytes()


def test_pattern_copy_with_no_enabled_patterns_matches_nothing(tmp_path: Path, image_factory) -> None:
    image_factory(tmp_path / "src" / "25FW" / "25FW-ABC123_promotion_00.jpg")

    result = workflows.copy_pattern_images(tmp_path / "src", "25FW", "naver", [])

    assert result.matched_count == 0
    assert result.errors == ()


def test_missing_season_path_is_validation_error(tmp_path: Path) -> None:
    (tmp_path / "src").mkdir()

    with pytest.raises(ValidationError):
        workflows.copy_pattern_images(tmp_path / "src", "25FW", "naver", ["promotion_00"])


def test_copy_by_codes_counts_skipped_codes(tmp_path: Path, image_factory) -> None:
    season = tmp_path / "src" / "25FW"
    image_factory(season / "SF177E" / "25FW-SF177E-55N-XFJ_promotion_01.jpg")
    image_factory(season / "SF177E" / "25FW-SF177E-55N-XFJ_promotion_02.jpg")
    image_factory(season / "AF550E" / "25FW-AF550E-55N-CCA_promotion_01.jpg")

    result = workflows.copy_pattern_images_by_codes(
        tmp_path / "src",
        "25FW",
        "naver",
        ["SF177E-55NXFJ", " ", "NF5105I55NR30"],
        ["promotion_01"],
    )

    assert result.succeeded_count == 1
    assert result.skipped_count == 1
    assert (season / "SF177E" / "25FW-SF177E-55N-XFJ_promotion_01_naver.jpg").exists()
    assert not (season / "AF550E" / "25FW-AF550E-55N-CCA_promotion_01_naver.jpg").exists()


def test_copy_by_codes_requires_codes(tmp_path: Path) -> None:
    (tmp_path / "src" / "25FW").mkdir(parents=True)

    with pytest.raises(ValidationError):
        workflows.copy_pattern_images_by_codes(tmp_path / "src", "25FW", "naver", ["", "  "], ["promotion_01"])


def test_sync_by_codes_resizes_next_to_source(tmp_path: Path, image_factory, catalog: PresetCatalog) -> None:
    folder = tmp_path / "src" / "25FW" / "SF177E"
    image_factory(folder / "SF177E-55N_XFJ_1.jpg", size=(300, 300))
    image_factory(folder / "SF177E-55N_XFJ_L2.png", size=(200, 500))
    image_factory(folder / "SF177E-55N_XFJ_1_musinsa.jpg")
    image_factory(folder / "25FW-SF177E-55N_XFJ_1.jpg")

    result = workflows.sync_images_by_codes(
        tmp_path / "src", "25FW", "naver", ["SF177E-55NXFJ", "ZZ9999ZZZ"], catalog
    )

    assert result.matched_count == result.succeeded_count == 2
    assert result.skipped_count == 1
    for name in ["SF177E-55N_XFJ_1_naver.jpg", "SF177E-55N_XFJ_L2_naver.png"]:
        with Image.open(folder / name) as output:
            assert output.size == (60, 80)
    assert not (folder / "25FW-SF177E-55N_XFJ_1_naver.jpg").exists()


def test_sync_requires_known_preset(tmp_path: Path, image_factory, catalog: PresetCatalog) -> None:
    image_factory(tmp_path / "src" / "25FW" / "ABC_1.jpg")

    with pytest.raises(ValidationError):
        workflows.sync_images_by_codes(tmp_path / "src", "25FW", "unknown", ["ABC"], catalog)
    assert _files(tmp_path / "src") == {"25FW/ABC_1.jpg"}


def test_sync_all_skips_pattern_images(tmp_path: Path, image_factory, catalog: PresetCatalog) -> None:
    season = tmp_path / "src" / "25FW"
    image_factory(season / "25FW-ABC_1.jpg", size=(90, 120))
    image_factory(season / "25FW-ABC_promotion_00.jpg")
    image_factory(season / "ABC_1.jpg")
    image_factory(season / "25FW-ABC_1_naver.jpg")

    result = workflows.sync_all_images(tmp_path / "src", "25FW", "musinsa", catalog)

    assert result.succeeded_count == 1
    with Image.open(season / "25FW-ABC_1_musinsa.jpg") as output:
        assert output.size == (100, 100)


def test_delete_generated_images_by_side(tmp_path: Path, image_factory) -> None:
    season = tmp_path / "src" / "25FW"
    for name in ["25FW-ABC_promotion_00_naver.jpg", "ABC_1_naver.jpg", "ABC_1.jpg", "25FW-ABC_promotion_00.jpg"]:
        image_factory(season / name)

    pattern_only = workflows.delete_generated_images(tmp_path / "src", "25FW", "naver", sync_images=False)
    assert pattern_only.succeeded_count == 1
    assert _files(season) == {"ABC_1_naver.jpg", "ABC_1.jpg", "25FW-ABC_promotion_00.jpg"}

    both = workflows.delete_generated_images(tmp_path / "src", "25FW", "naver")
    assert both.succeeded_count == 1
    assert _files(season) == {"ABC_1.jpg", "25FW-ABC_promotion_00.jpg"}


def test_delete_preset_images(tmp_path: Path, image_factory) -> None:
    season = tmp_path / "src" / "25FW"
    for name in ["A_1_musinsa.jpg", "A_1_musinsa2.jpg", "A_1.jpg", "25FW-A_promotion_00_musinsa.png"]:
        image_factory(season / name)

    result = workflows.delete_preset_images(tmp_path / "src", "25FW", "musinsa")

    assert result.succeeded_count == 2
    assert _files(season) == {"A_1_musinsa2.jpg", "A_1.jpg"}


def test_nas_transfer_builds_nested_structure(tmp_path: Path, image_factory) -> None:
    source = tmp_path / "outbox"
    image_factory(source / "ABC_XFJ_1.jpg")
    image_factory(source / "swatch_ABC.jpg")
    image_factory(source / "plain.jpg")
    nas = tmp_path / "nas"

    result = workflows.nas_transfer(source, nas, "25FW")

    assert result.matched_count == 2
    assert result.succeeded_count == 1
    assert result.errors[0].item_name == "plain.jpg"
    assert "invalid filename format" in result.errors[0].message
    assert _files(nas) == {"25FW/ABC/XFJ/ABC_XFJ_1.jpg"}


def test_resize_folder_with_label(tmp_path: Path, image_factory) -> None:
    image_factory(tmp_path / "img_in" / "look.jpg", size=(400, 300))
    image_factory(tmp_path / "img_in" / "more" / "detail.png", size=(100, 300))

    output_dir, result = workflows.resize_folder(tmp_path / "img_in", tmp_path / "img_out", 75, 100, label="naver")

    assert output_dir == tmp_path / "img_out" / "naver (75x100)"
    assert result.succeeded_count == 2
    assert _files(output_dir) == {"look_naver.jpg", "more/detail_naver.png"}
    with Image.open(output_dir / "look_naver.jpg") as output:
        assert output.size == (75, 100)


def test_resize_folder_without_label(tmp_path: Path, image_factory) -> None:
    image_factory(tmp_path / "img_in" / "look.jpg")

    output_dir, result = workflows.resize_folder(tmp_path / "img_in", tmp_path / "img_out", 10, 20)

    assert output_dir.name == "10x20"
    assert (output_dir / "look.jpg").exists()
    assert result.failed_count == 0


def _cancel_after_first_item_of_two(token: CancelToken):
    def callback(update: ProgressUpdate) -> None:
        if update.total == 2 and update.completed == 1:
            token.cancel()

    return callback


def test_copy_by_codes_counts_duplicate_rows(tmp_path: Path, image_factory) -> None:
    image_factory(tmp_path / "src" / "25FW" / "25FW-SF177E-55N-XFJ_promotion_01.jpg")

    result = workflows.copy_pattern_images_by_codes(
        tmp_path / "src",
        "25FW",
        "naver",
        ["SF177E-55NXFJ", "SF177E-55NXFJ", "NF5105I55NR30"],
        ["promotion_01"],
    )

    assert result.succeeded_count == 1
    assert result.skipped_count == 2


def test_sync_cancel_keeps_earlier_codes(tmp_path: Path, image_factory, catalog: PresetCatalog) -> None:
    folder = tmp_path / "src" / "25FW"
    image_factory(folder / "AAA-11_XFJ_1.jpg")
    image_factory(folder / "BBB-22_XFJ_1.jpg")
    image_factory(folder / "BBB-22_XFJ_2.jpg")
    token = CancelToken()

    with pytest.raises(ProcessingAborted) as excinfo:
        workflows.sync_images_by_codes(
            tmp_path / "src",
            "25FW",
            "naver",
            ["AAA-11XFJ", "BBB-22XFJ", "CCC-33XFJ"],
            catalog,
            progress_callback=_cancel_after_first_item_of_two(token),
            cancel_token=token,
        )

    partial = excinfo.value.result
    assert partial.matched_count == 3
    assert partial.succeeded_count == 2
    assert [outcome.output_path.name for outcome in partial.outcomes] == [
        "AAA-11_XFJ_1_naver.jpg",
        "BBB-22_XFJ_1_naver.jpg",
    ]
    assert not (folder / "BBB-22_XFJ_2_naver.jpg").exists()


def test_cleanup_cancel_keeps_pattern_side(tmp_path: Path, image_factory) -> None:
    season = tmp_path / "src" / "25FW"
    for name in ["25FW-A_promotion_00_naver.jpg", "A_1_naver.jpg", "B_1_naver.jpg"]:
        image_factory(season / name)
    token = CancelToken()

    with pytest.raises(ProcessingAborted) as excinfo:
        workflows.delete_generated_images(
            tmp_path / "src",
            "25FW",
            "naver",
            progress_callback=_cancel_after_first_item_of_two(token),
            cancel_token=token,
        )

    partial = excinfo.value.result
    assert partial.succeeded_count == 2
    assert _files(season) == {"B_1_naver.jpg"}
