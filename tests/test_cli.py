"""Tests for the click entry points, run with CliRunner over the fake site."""

from __future__ import annotations

import json

import pytest
from click.testing import CliRunner

import lawtree.cli
from conftest import BASE, FakeExtractor
from lawtree.ingestion.base import Chapter, Document, Part, Section, Title
from lawtree.ingestion.walker import TreeWalker
from lawtree.normalization.snapshot import SnapshotStore
from lawtree.utils.rate_limiter import RateLimiter


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def fake_walker(monkeypatch, site, fetcher):
    """Route every command through the in-memory site instead of httpx."""

    def build(config):
        walker = TreeWalker(
            fetcher,
            FakeExtractor(site),
            SnapshotStore(config.output_path),
            config,
            rate_limiter=RateLimiter(0),
            sleep=lambda seconds: None,
        )
        return walker, fetcher

    monkeypatch.setattr(lawtree.cli, "_build_walker", build)
    return fetcher


def _crawl_args(snapshot_path, *extra):
    return [
        "crawl",
        "--base-url", BASE,
        "--output", str(snapshot_path),
        "--retry-delay", "0",
        "--pace-delay", "0",
        *extra,
    ]


class TestCrawl:
    def test_full_crawl_reports_counts(self, runner, fake_walker, snapshot_path):
        result = runner.invoke(lawtree.cli.cli, _crawl_args(snapshot_path))

        assert result.exit_code == 0, result.output
        assert "Done: 1 parts processed (0 failed), 4 titles (0 dropped)" in result.output
        assert "Chapters: 4 processed, 0 skipped" in result.output
        assert "Sections: 8 processed, 0 skipped, 0 failed" in result.output
        data = json.loads(snapshot_path.read_text(encoding="utf-8"))
        assert [t["title"] for t in data["parts"][0]["titles"]] == ["I", "II", "III", "IV"]

    def test_second_run_skips_everything(self, runner, fake_walker, snapshot_path):
        runner.invoke(lawtree.cli.cli, _crawl_args(snapshot_path))
        result = runner.invoke(lawtree.cli.cli, _crawl_args(snapshot_path))

        assert result.exit_code == 0, result.output
        assert "Chapters: 0 processed, 4 skipped" in result.output
        assert "Sections: 0 processed, 8 skipped, 0 failed" in result.output

    def test_structure_only(self, runner, fake_walker, snapshot_path):
        result = runner.invoke(lawtree.cli.cli, _crawl_args(snapshot_path, "--structure-only"))

        assert result.exit_code == 0, result.output
        data = json.loads(snapshot_path.read_text(encoding="utf-8"))
        chapter = data["parts"][0]["titles"][0]["chapters"][0]
        assert chapter["chapter"] == "1"
        assert "sections" not in chapter

    def test_unselected_part_is_not_crawled(self, runner, fake_walker, snapshot_path):
        result = runner.invoke(lawtree.cli.cli, _crawl_args(snapshot_path, "--part", "II"))

        assert result.exit_code == 0, result.output
        assert "Done: 0 parts processed" in result.output
        assert fake_walker.section_fetches() == 0

    def test_part_list_failure_exits_nonzero(self, runner, fake_walker, snapshot_path):
        fake_walker.fail(BASE)
        result = runner.invoke(lawtree.cli.cli, _crawl_args(snapshot_path, "--max-retries", "2"))

        assert result.exit_code == 1
        assert "crawl aborted" in result.output
        assert fake_walker.calls[BASE] == 2
        assert not snapshot_path.exists()

    def test_bad_config_file_is_a_usage_error(self, runner, fake_walker, snapshot_path, tmp_path):
        config_file = tmp_path / "crawl.yaml"
        config_file.write_text("crawl:\n  retries: 2\n", encoding="utf-8")

        result = runner.invoke(lawtree.cli.cli, _crawl_args(snapshot_path, "--config", str(config_file)))

        assert result.exit_code == 2
        assert "Invalid configuration" in result.output


def test_chapter_command_crawls_one_url(runner, fake_walker, snapshot_path):
    result = runner.invoke(lawtree.cli.cli, [
        "chapter", f"{BASE}/Chapter3",
        "--part", "I", "--title", "III", "--chapter", "3",
        "--chapter-title", "Chapter name 3",
        "--output", str(snapshot_path),
        "--retry-delay", "0", "--pace-delay", "0",
    ])

    assert result.exit_code == 0, result.output
    document = SnapshotStore(snapshot_path).load()
    chapter = document.find_chapter("I", "III", "3")
    assert chapter.chapter_title == "Chapter name 3"
    assert [s.full_text for s in chapter.sections] == ["Text of 3.1", "Text of 3.2"]
    assert fake_walker.section_fetches() == 2


class TestStats:
    def _write(self, path):
        document = Document(parts=[
            Part(part="I", titles=[
                Title(title="I", chapters=[
                    Chapter(chapter="1", sections=[Section("1", "Definitions", "text"), Section("2", "Powers", "")]),
                    Chapter(chapter="2"),
                ]),
            ]),
        ])
        SnapshotStore(path).persist(document)

    def test_human_readable(self, runner, snapshot_path):
        self._write(snapshot_path)
        result = runner.invoke(lawtree.cli.cli, ["stats", "--output", str(snapshot_path)])

        assert result.exit_code == 0, result.output
        assert "incomplete sections" in result.output
        assert "chapters without sections" in result.output

    def test_json(self, runner, snapshot_path):
        self._write(snapshot_path)
        result = runner.invoke(lawtree.cli.cli, ["stats", "--output", str(snapshot_path), "--json"])

        assert result.exit_code == 0, result.output
        counts = json.loads(result.output)
        assert counts["sections"] == 2
        assert counts["incomplete_sections"] == 1
        assert counts["chapters_without_sections"] == 1

    def test_missing_snapshot(self, runner, tmp_path):
        result = runner.invoke(lawtree.cli.cli, ["stats", "--output", str(tmp_path / "absent.json")])

        assert result.exit_code == 1
        assert "no snapshot" in result.output
