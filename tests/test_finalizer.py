"""Tests for run finalization and the working directory lifecycle."""

import gzip
import tarfile

import pytest

from pygnss_ppp.core.context import OrbitTier, RunOptions
from pygnss_ppp.processing.extraction import ResultArtifact
from pygnss_ppp.processing.finalizer import RunFinalizer
from pygnss_ppp.processing.orbits import AttemptStatus, ScheduleOutcome, TierAttempt

from conftest import make_context, make_settings


def success_outcome(ctx, tier=OrbitTier.FINAL) -> ScheduleOutcome:
    path = ctx.artifact_path(tier)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("result\n")
    artifact = ResultArtifact(path=path, tier=tier)
    return ScheduleOutcome(attempts=[TierAttempt(tier, AttemptStatus.SUCCESS, artifact=artifact)])


def fatal_outcome() -> ScheduleOutcome:
    return ScheduleOutcome(attempts=[TierAttempt(OrbitTier.FINAL, AttemptStatus.FATAL, "boom")])


class TestIdempotencyGate:
    """Tests for the primary artifact gate."""

    def test_not_done(self, settings):
        assert not RunFinalizer(settings, RunOptions()).is_done(make_context(settings))

    def test_done(self, settings):
        ctx = make_context(settings)
        ctx.primary_path.parent.mkdir(parents=True)
        ctx.primary_path.write_text("result\n")
        assert RunFinalizer(settings, RunOptions()).is_done(ctx)

    def test_empty_primary_not_done(self, settings):
        ctx = make_context(settings)
        ctx.primary_path.parent.mkdir(parents=True)
        ctx.primary_path.write_text("")
        assert not RunFinalizer(settings, RunOptions()).is_done(ctx)

    def test_force(self, settings):
        ctx = make_context(settings)
        ctx.primary_path.parent.mkdir(parents=True)
        ctx.primary_path.write_text("result\n")
        assert not RunFinalizer(settings, RunOptions(force=True)).is_done(ctx)

    def test_suffixed_result_does_not_gate(self, settings):
        ctx = make_context(settings)
        rapid = ctx.artifact_path(OrbitTier.RAPID)
        rapid.parent.mkdir(parents=True)
        rapid.write_text("result\n")
        assert not RunFinalizer(settings, RunOptions()).is_done(ctx)


class TestWorkDir:
    """Tests for the working directory lifecycle."""

    def test_reset_empties(self, settings):
        finalizer = RunFinalizer(settings, RunOptions())
        work = finalizer.create_workdir()
        (work / "old.tdp").write_text("x")
        (work / "sub").mkdir()
        (work / "sub" / "f").write_text("x")

        finalizer.reset_workdir()

        assert work.is_dir()
        assert list(work.iterdir()) == []

    def test_cleanup_removes(self, settings):
        finalizer = RunFinalizer(settings, RunOptions())
        finalizer.create_workdir()
        finalizer.cleanup_workdir()
        assert not finalizer.work_dir.exists()

    def test_debug_keeps(self, settings, printer, messages):
        finalizer = RunFinalizer(settings, RunOptions(debug=True), printer=printer)
        finalizer.create_workdir()
        finalizer.cleanup_workdir()
        assert finalizer.work_dir.exists()
        assert any("kept" in m for m in messages)


class TestFinalize:
    """Tests for log and archive placement."""

    def test_log_compressed_next_to_result(self, settings):
        finalizer = RunFinalizer(settings, RunOptions())
        ctx = make_context(settings)
        finalizer.log_file.write_text("$ gd2e.py\n# exit 0\n")

        report = finalizer.finalize(ctx, success_outcome(ctx, OrbitTier.RAPID))

        assert report.log.name == "2024-01-15.ABCD.ql.log.gz"
        with gzip.open(report.log, "rt") as f:
            assert "gd2e.py" in f.read()
        assert report.tree is None
        assert report.archive is None

    def test_tree_kept(self, tmp_path):
        settings = make_settings(tmp_path, keep_tree=True)
        finalizer = RunFinalizer(settings, RunOptions())
        ctx = make_context(settings)
        (ctx.work_dir / "debug.tree").write_text("tree\n")

        report = finalizer.finalize(ctx, success_outcome(ctx))

        assert report.tree.name == "2024-01-15.ABCD.tree"

    def test_errored_day_shows_log_tail(self, settings, printer, messages):
        finalizer = RunFinalizer(settings, RunOptions(), printer=printer)
        ctx = make_context(settings)
        finalizer.log_file.write_text("".join(f"line {i}\n" for i in range(10)))

        report = finalizer.finalize(ctx, fatal_outcome())

        assert report.log is None
        assert not ctx.result_dir.exists()
        assert [m for m in messages if "line" in m][0].endswith("(line 5)")
        assert sum("line" in m for m in messages) == 5

    def test_fullog_archive(self, settings):
        finalizer = RunFinalizer(settings, RunOptions(fullog=True))
        ctx = make_context(settings)
        ctx.obs_file.write_text("obs\n")
        (ctx.work_dir / "smoothFinal.tdp").write_text("tdp\n")

        report = finalizer.finalize(ctx, success_outcome(ctx))

        assert report.archive.name == "2024-01-15.ABCD.fullog.tgz"
        with tarfile.open(report.archive) as tar:
            names = tar.getnames()
        assert "work/smoothFinal.tdp" in names

    def test_fullog_skips_input_only(self, settings):
        finalizer = RunFinalizer(settings, RunOptions(fullog=True))
        ctx = make_context(settings)
        ctx.obs_file.write_text("obs\n")

        report = finalizer.finalize(ctx, fatal_outcome())

        assert report.archive is None
        assert report.notes

    def test_fullog_ignores_captured_log(self, settings):
        """The tool log is written on every day and is not content by itself."""
        finalizer = RunFinalizer(settings, RunOptions(fullog=True))
        ctx = make_context(settings)
        ctx.obs_file.write_text("obs\n")
        (ctx.work_dir / (ctx.obs_file.name + ".win")).write_text("partial\n")
        finalizer.log_file.write_text("$ fetch_orbits\n# exit 1\n")

        report = finalizer.finalize(ctx, fatal_outcome())

        assert report.archive is None
        assert not ctx.primary_path.with_name("2024-01-15.ABCD.fullog.tgz").exists()

    def test_fullog_ignores_window_inputs(self, settings):
        finalizer = RunFinalizer(settings, RunOptions(fullog=True))
        ctx = make_context(settings, realtime=True)
        ctx.obs_file.write_text("obs\n")
        (ctx.work_dir / "abcd0140.24o").write_text("obs\n")
        (ctx.work_dir / "abcd0130.24o").write_text("obs\n")
        finalizer.log_file.write_text("$ rnx_assemble\n")

        report = finalizer.finalize(ctx, fatal_outcome())

        assert report.archive is None

    def test_fullog_archive_includes_log(self, settings):
        finalizer = RunFinalizer(settings, RunOptions(fullog=True))
        ctx = make_context(settings)
        ctx.obs_file.write_text("obs\n")
        finalizer.log_file.write_text("$ gd2e.py\n")
        (ctx.work_dir / "debug.tree").write_text("tree\n")

        report = finalizer.finalize(ctx, fatal_outcome())

        with tarfile.open(report.archive) as tar:
            names = tar.getnames()
        assert {"work/engine.log", "work/debug.tree", "work/abcd0150.24o"} <= set(names)
