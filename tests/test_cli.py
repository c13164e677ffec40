from __future__ import annotations

from pathlib import Path

import pytest

from conftest import image_bytes, open_image, put
from media_transformer.cli import transform as cli


def test_cli_writes_transformed_body(storage_root: Path, tmp_path: Path) -> None:
    put(storage_root, "originals", "images/a.png", image_bytes((80, 40)))
    output = tmp_path / "out" / "a.webp"

    exit_code = cli.main(
        ["/images/a.png/width=40,format=webp", "--root", str(storage_root), "--output", str(output)]
    )

    assert exit_code == 0
    assert open_image(output.read_bytes()).size == (40, 20)
    assert (storage_root / "transformed" / "images" / "a.png" / "width=40,format=webp").is_file()


def test_cli_no_cache_and_missing_original(storage_root: Path) -> None:
    exit_code = cli.main(["/images/missing.png/width=10", "--root", str(storage_root), "--no-cache"])
    assert exit_code == 1


def test_cli_reads_cache_control_from_dotenv(
    monkeypatch: pytest.MonkeyPatch, storage_root: Path, tmp_path: Path
) -> None:
    monkeypatch.delenv("transformedImageCacheTTL", raising=False)
    monkeypatch.delenv("FFMPEG_PATH", raising=False)
    monkeypatch.chdir(tmp_path)
    (tmp_path / ".env").write_text('# local overrides\ntransformedImageCacheTTL="max-age=5"\n', encoding="utf-8")

    assert cli._load_env_value("transformedImageCacheTTL") == "max-age=5"
    assert cli._load_env_value("FFMPEG_PATH") is None
