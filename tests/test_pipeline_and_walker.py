"""环节三：测试目录遍历、缩略图流水线与运行日志。"""

from __future__ import annotations

from datetime import datetime
from pathlib import Path

import pytest
from PIL import Image

from thumb_generator.core.config import ResizeRatio, RunConfig, WatermarkConfig
from thumb_generator.core.event_log import EventLog, dump_filename
from thumb_generator.core.exceptions import DirectoryAccessError
from thumb_generator.core.models import ImageAsset, ThumbnailJob, TraversalContext
from thumb_generator.core.walker import DirectoryWalker, is_pseudo_entry, is_within
from thumb_generator.processing.pipeline import generate_thumbnails
from thumb_generator.processing.worker import RenderTask, render


def make_config(working: Path, output: Path, **kwargs) -> RunConfig:
    return RunConfig(working_dir=working, output_dir=output, **kwargs)


@pytest.fixture()
def dirs(tmp_path: Path) -> tuple[Path, Path]:
    working = tmp_path / "input"
    output = tmp_path / "output"
    working.mkdir()
    return working.resolve(), output.resolve()


def test_thumbnail_dimensions_follow_ratio(dirs: tuple[Path, Path]) -> None:
    working, output = dirs
    Image.new("RGB", (101, 61), "green").save(working / "photo.jpg")
    Image.new("RGB", (80, 40), "blue").save(working / "banner.png")

    result = generate_thumbnails(make_config(working, output, ratio=ResizeRatio(25, 50)))

    assert len(result.processed) == 2
    with Image.open(output / "photo.jpg") as photo:
        assert photo.size == (25, 30)
        assert photo.format == "JPEG"
    with Image.open(output / "banner.png") as banner:
        assert banner.size == (20, 20)
        assert banner.format == "PNG"


@pytest.mark.parametrize(("image_format", "name"), [("GIF", "anim.gif"), ("BMP", "old.bmp")])
def test_output_format_matches_input(dirs: tuple[Path, Path], image_format: str, name: str) -> None:
    working, output = dirs
    Image.new("RGB", (40, 20), "red").save(working / name, format=image_format)

    generate_thumbnails(make_config(working, output))

    with Image.open(output / name) as thumb:
        assert thumb.format == image_format
        assert thumb.size == (20, 10)


def test_non_image_is_logged_and_skipped(dirs: tuple[Path, Path]) -> None:
    working, output = dirs
    (working / "notes.txt").write_text("hello")

    result = generate_thumbnails(make_config(working, output))

    expected = f"Not an image {working / 'notes.txt'}"
    matching = [event for event in result.events if event.message == expected]
    assert len(matching) == 1
    assert len(result.skipped) == 1
    assert not result.processed
    assert list(output.iterdir()) == []


def test_exif_orientation_rotates_thumbnail(dirs: tuple[Path, Path]) -> None:
    working, output = dirs
    exif = Image.Exif()
    exif[274] = 6
    Image.new("RGB", (80, 40), "red").save(working / "rotated.jpg", exif=exif.tobytes())

    generate_thumbnails(make_config(working, output))

    with Image.open(output / "rotated.jpg") as thumb:
        assert thumb.size == (20, 40)


def test_recursion_mirrors_subdirectories(dirs: tuple[Path, Path]) -> None:
    working, output = dirs
    (working / "sub").mkdir()
    Image.new("RGB", (40, 40), "blue").save(working / "sub" / "inner.png")

    result = generate_thumbnails(make_config(working, output, recursive=True))

    assert len(result.processed) == 1
    assert [p.name for p in (output / "sub").iterdir()] == ["inner.png"]


def test_disabled_recursion_skips_subdirectories(dirs: tuple[Path, Path]) -> None:
    working, output = dirs
    (working / "sub").mkdir()
    Image.new("RGB", (40, 40), "blue").save(working / "sub" / "inner.png")

    result = generate_thumbnails(make_config(working, output, recursive=False))

    assert not result.processed
    assert not (output / "sub").exists()
    assert (working / "sub" / "inner.png").exists()


def test_repeated_runs_create_indexed_copies(dirs: tuple[Path, Path]) -> None:
    working, output = dirs
    Image.new("RGB", (40, 40), "blue").save(working / "a.png")

    for _ in range(3):
        generate_thumbnails(make_config(working, output))

    assert sorted(p.name for p in output.iterdir()) == ["a(0).png", "a(1).png", "a.png"]


def test_default_output_inside_working_dir_is_excluded(dirs: tuple[Path, Path]) -> None:
    working, _ = dirs
    Image.new("RGB", (40, 40), "blue").save(working / "a.png")

    generate_thumbnails(RunConfig(working_dir=working))
    second = generate_thumbnails(RunConfig(working_dir=working))

    thumbs = working / "thumbs"
    assert len(second.processed) == 1
    assert sorted(p.name for p in thumbs.iterdir()) == ["a(0).png", "a.png"]


def test_identical_working_and_output_dir_is_refused(dirs: tuple[Path, Path]) -> None:
    working, _ = dirs
    Image.new("RGB", (40, 40), "blue").save(working / "a.png")

    result = generate_thumbnails(make_config(working, working))

    assert result.refused
    assert not result.processed
    assert [p.name for p in working.iterdir()] == ["a.png"]


def test_unusable_working_dir_is_fatal(tmp_path: Path) -> None:
    blocker = tmp_path / "file.txt"
    blocker.write_text("x")

    with pytest.raises(DirectoryAccessError):
        generate_thumbnails(make_config(blocker, tmp_path / "out"))


def test_watermark_is_stamped_on_thumbnail(dirs: tuple[Path, Path], tmp_path: Path) -> None:
    working, output = dirs
    mark = tmp_path / "mark.png"
    Image.new("RGB", (20, 20), (255, 0, 0)).save(mark)
    Image.new("RGB", (200, 200), "white").save(working / "pic.png")

    result = generate_thumbnails(make_config(working, output, watermark=WatermarkConfig(path=mark)))

    assert len(result.processed) == 1
    with Image.open(output / "pic.png") as thumb:
        assert thumb.size == (100, 100)
        assert thumb.getpixel((40, 40)) == (255, 0, 0)
        assert thumb.getpixel((5, 5)) == (255, 255, 255)


def test_broken_watermark_does_not_block_thumbnails(dirs: tuple[Path, Path], tmp_path: Path) -> None:
    working, output = dirs
    mark = tmp_path / "mark.png"
    mark.write_text("not an image")
    Image.new("RGB", (40, 40), "white").save(working / "pic.png")

    result = generate_thumbnails(make_config(working, output, watermark=WatermarkConfig(path=mark)))

    assert len(result.processed) == 1
    with Image.open(output / "pic.png") as thumb:
        assert thumb.getpixel((10, 10)) == (255, 255, 255)


def test_log_dump_named_after_run_start(dirs: tuple[Path, Path], tmp_path: Path) -> None:
    working, output = dirs
    (working / "notes.txt").write_text("hello")
    log_dir = tmp_path / "logs"
    started = datetime(2024, 5, 6, 7, 8, 9)

    result = generate_thumbnails(
        make_config(working, output, enable_log_dump=True, log_dir=log_dir),
        clock=lambda: started,
    )

    assert result.log_dump_path == log_dir / "thumbgen_2024-05-06-0708.log"
    lines = result.log_dump_path.read_text(encoding="utf-8").splitlines()
    assert lines == [f"2024-05-06-07:08:09: Not an image {working / 'notes.txt'}"]


def test_event_log_line_format() -> None:
    log = EventLog(clock=lambda: datetime(2023, 1, 2, 3, 4, 5))
    log.append("hello")

    assert log.lines() == ["2023-01-02-03:04:05: hello"]
    assert dump_filename(datetime(2023, 1, 2, 3, 4, 5)) == "thumbgen_2023-01-02-0304.log"


def test_parallel_run_matches_serial_output(tmp_path: Path) -> None:
    names = ["a.png", "b.jpg", "c.gif"]
    outputs = []
    for workers in (1, 2):
        working = tmp_path / f"input{workers}"
        output = tmp_path / f"output{workers}"
        working.mkdir()
        for name in names:
            Image.new("RGB", (40, 40), "blue").save(working / name)
        (working / "notes.txt").write_text("hello")

        result = generate_thumbnails(make_config(working, output, max_workers=workers))

        assert len(result.processed) == 3
        assert len(result.skipped) == 1
        outputs.append(sorted(p.name for p in output.iterdir()))

    assert outputs[0] == outputs[1] == names


def test_walker_passes_scoped_contexts(dirs: tuple[Path, Path]) -> None:
    working, output = dirs
    (working / "a.txt").write_text("a")
    (working / "sub").mkdir()
    (working / "sub" / "b.txt").write_text("b")
    (working / "z.txt").write_text("z")
    seen: list[tuple[str, TraversalContext]] = []

    walker = DirectoryWalker(make_config(working, output), lambda path, name, ctx: seen.append((name, ctx)))
    output.mkdir()
    assert walker.walk()

    by_name = {name: ctx for name, ctx in seen}
    assert [name for name, _ in seen] == ["a.txt", "b.txt", "z.txt"]
    assert by_name["b.txt"].working_dir == working / "sub"
    assert by_name["b.txt"].output_dir == output / "sub"
    # 递归返回后，兄弟条目仍使用原工作目录。
    assert by_name["z.txt"].working_dir == working
    assert by_name["z.txt"].output_dir == output


def test_walker_skips_files_removed_during_scan(dirs: tuple[Path, Path]) -> None:
    working, output = dirs
    output.mkdir()
    (working / "a.txt").write_text("a")
    (working / "b.txt").write_text("b")
    seen: list[str] = []

    def handle(path: Path, name: str, context: TraversalContext) -> None:
        seen.append(name)
        (working / "b.txt").unlink(missing_ok=True)

    DirectoryWalker(make_config(working, output), handle).walk()

    assert seen == ["a.txt"]


def test_path_helpers() -> None:
    assert is_pseudo_entry(".")
    assert is_pseudo_entry("..")
    assert not is_pseudo_entry(".hidden")
    assert is_within(Path("/tmp/a/b"), Path("/tmp/a"))
    assert not is_within(Path("/tmp/ab"), Path("/tmp/a"))


def test_resize_failure_skips_without_writing(dirs: tuple[Path, Path]) -> None:
    working, output = dirs
    Image.new("RGB", (1, 1), "blue").save(working / "dot.png")

    result = generate_thumbnails(make_config(working, output))

    resize_events = [event for event in result.events if event.message.startswith("Could not resize dot.png")]
    assert len(resize_events) == 1
    assert len(result.skipped) == 1
    assert not result.processed
    assert list(output.iterdir()) == []


def test_parallel_run_stamps_watermark(dirs: tuple[Path, Path], tmp_path: Path) -> None:
    working, output = dirs
    mark = tmp_path / "mark.png"
    Image.new("RGB", (20, 20), (255, 0, 0)).save(mark)
    for name in ("a.png", "b.png"):
        Image.new("RGB", (200, 200), "white").save(working / name)

    result = generate_thumbnails(
        make_config(working, output, max_workers=2, watermark=WatermarkConfig(path=mark))
    )

    assert len(result.processed) == 2
    for name in ("a.png", "b.png"):
        with Image.open(output / name) as thumb:
            assert thumb.getpixel((40, 40)) == (255, 0, 0)
            assert thumb.getpixel((5, 5)) == (255, 255, 255)


def test_unsupported_format_message_uses_source_name(tmp_path: Path) -> None:
    source = tmp_path / "pic.webp"
    asset = ImageAsset(source_path=source, format="WEBP", raster=Image.new("RGB", (40, 40)))
    job = ThumbnailJob(source_path=source, destination_dir=tmp_path, output_file_name="pic(0).webp")

    outcome = render(asset, RenderTask(job=job, ratio=ResizeRatio()))

    assert not outcome.processed
    assert outcome.message == "Not a valid image format pic.webp"
    assert not (tmp_path / "pic(0).webp").exists()
