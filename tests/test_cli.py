"""Tests for the high-level API and the command line."""

import zipfile

from click.testing import CliRunner

from conftest import encode, textured_card
from proxyprint.api.builder import export_pdf, read_card_list, slots_from_sources
from proxyprint.api.models import is_uploaded_file_token
from proxyprint.cli import main
from proxyprint.config import ExportOptions


def write_cards(directory, count):
    paths = []
    for i in range(count):
        path = directory / f"card{i}.png"
        path.write_bytes(encode(textured_card((126, 176), seed=i)))
        paths.append(path)
    return paths


def test_slots_from_sources_registers_local_files(tmp_path):
    local = tmp_path / "Lightning Bolt.png"
    slots, uploads = slots_from_sources([str(local), "https://example.com/art/counterspell.jpg"])

    assert is_uploaded_file_token(slots[0].source_ref)
    assert slots[0].is_user_upload
    assert slots[0].name == "Lightning Bolt"
    assert list(uploads.values()) == [local]

    assert slots[1].source_ref == "https://example.com/art/counterspell.jpg"
    assert slots[1].name == "counterspell"
    assert not slots[1].is_user_upload


def test_read_card_list_expands_counts(tmp_path):
    path = tmp_path / "deck.txt"
    path.write_text("# sideboard later\n4x bolt.png\n\n2X island.png\n2024 promo.png\n")
    assert read_card_list(path) == ["bolt.png"] * 4 + ["island.png"] * 2 + ["2024 promo.png"]


def test_export_pdf_writes_files(tmp_path):
    slots, uploads = slots_from_sources([str(p) for p in write_cards(tmp_path, 3)])
    files = export_pdf(slots, tmp_path / "out", options=ExportOptions(dpi=100), uploads=uploads)

    assert len(files) == 1
    assert (tmp_path / "out" / files[0].name).read_bytes().startswith(b"%PDF")


def test_cli_pdf(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    paths = write_cards(tmp_path, 4)
    runner = CliRunner()

    result = runner.invoke(
        main,
        ["pdf", *map(str, paths), "-o", "out", "--dpi", "100", "--columns", "2", "--rows", "1",
         "--pages-per-file", "1", "--corners", "rounded"],
    )

    assert result.exit_code == 0, result.output
    assert len(list((tmp_path / "out").glob("proxies_*_part-*-of-02.pdf"))) == 2


def test_cli_pdf_strict_missing_file_fails(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    runner = CliRunner()

    result = runner.invoke(main, ["pdf", str(tmp_path / "missing.png"), "-o", "out", "--dpi", "100", "--strict"])

    assert result.exit_code == 1
    assert "Error" in result.output
    assert not (tmp_path / "out").exists() or list((tmp_path / "out").iterdir()) == []


def test_cli_requires_cards(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    result = CliRunner().invoke(main, ["pdf"])
    assert result.exit_code == 1


def test_cli_zip(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    paths = write_cards(tmp_path, 2)
    card_list = tmp_path / "cards.txt"
    card_list.write_text("\n".join(str(p) for p in paths))

    result = CliRunner().invoke(main, ["zip", "--list", str(card_list), "-o", "out"])

    assert result.exit_code == 0, result.output
    archives = list((tmp_path / "out").glob("card_images_*.zip"))
    assert len(archives) == 1
    with zipfile.ZipFile(archives[0]) as archive:
        assert archive.namelist() == ["001 - card0.png", "002 - card1.png"]
