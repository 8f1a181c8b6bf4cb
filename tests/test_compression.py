"""Tests for log compression and working directory archives."""

import gzip
import tarfile
from pathlib import Path

from pygnss_ppp.utils.compression import archive_directory, compress_gzip


class TestCompressGzip:
    """Tests for single-file gzip compression."""

    def test_compress_keeps_original(self, tmp_path: Path):
        log = tmp_path / "engine.log"
        log.write_text("$ gd2e.py\n# exit 0\n")

        result = compress_gzip(log, tmp_path / "out" / "run.log.gz")

        assert result.success
        assert result.error is None
        assert result.output_path == tmp_path / "out" / "run.log.gz"
        assert log.exists()
        with gzip.open(result.output_path, "rt") as f:
            assert f.read() == "$ gd2e.py\n# exit 0\n"

    def test_default_output_and_remove_original(self, tmp_path: Path):
        log = tmp_path / "engine.log"
        log.write_text("x\n")

        result = compress_gzip(log, keep_original=False)

        assert result.output_path == tmp_path / "engine.log.gz"
        assert not log.exists()

    def test_missing_input(self, tmp_path: Path):
        result = compress_gzip(tmp_path / "missing.log")
        assert not result.success
        assert result.output_path is None
        assert "not found" in result.error


class TestArchiveDirectory:
    """Tests for tar+gzip archives of the working directory."""

    def test_archive(self, tmp_path: Path):
        work = tmp_path / "work"
        work.mkdir()
        (work / "smoothFinal.tdp").write_text("tdp\n")

        result = archive_directory(work, tmp_path / "results" / "day.fullog.tgz")

        assert result.success
        with tarfile.open(result.output_path) as tar:
            assert "work/smoothFinal.tdp" in tar.getnames()

    def test_missing_directory(self, tmp_path: Path):
        result = archive_directory(tmp_path / "nope", tmp_path / "day.fullog.tgz")
        assert not result.success
        assert "Directory not found" in result.error
        assert not (tmp_path / "day.fullog.tgz").exists()
