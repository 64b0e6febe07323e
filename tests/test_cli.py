# File: tests/test_cli.py
"""Тесты для CLI (`adaptive_crawler/cli.py`) с использованием click.testing.CliRunner.
Проверяют команды `crawl`, `config`, `--version`, а также обработку ошибок.
"""
import importlib
import json

import pytest
from click.testing import CliRunner

from adaptive_crawler.cli import cli
from adaptive_crawler.crawler.models import CrawlRunResult, CrawlTarget, DomainMetrics, RunStatus, utcnow

# пакет экспортирует группу `cli` под тем же именем, что и модуль
cli_module = importlib.import_module("adaptive_crawler.cli")


@pytest.fixture()
def cfg_file(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(
        json.dumps({"startUrl": "https://example.com", "maxDepth": 1, "userAgent": "Agent/1.0"}),
        encoding="utf-8",
    )
    return path


@pytest.fixture(autouse=True)
def patch_start_crawl(monkeypatch):
    """Патчим start_crawl: одна «страница» в хранилище, без сети."""
    calls = []

    async def fake_crawl(cfg, *, content_store=None, crawl_timeout=None, **kwargs):
        calls.append({"config": cfg, "store": content_store, "crawl_timeout": crawl_timeout})
        content_store.persist_page(CrawlTarget(url="https://example.com/", depth=0, priority=100), "<p>x</p>", None)
        return CrawlRunResult(
            status=RunStatus.COMPLETED,
            urls_processed=1,
            urls_queued=1,
            documents_processed=1,
            started_at=utcnow(),
            finished_at=utcnow(),
            domain_metrics={
                "example.com": DomainMetrics(domain="example.com", requests=1, average_latency_ms=12.0),
            },
        )

    monkeypatch.setattr(cli_module, "start_crawl", fake_crawl)
    return calls


def last_json_line(output: str):
    return json.loads(output.strip().splitlines()[-1])


def test_version_option():
    runner = CliRunner()
    result = runner.invoke(cli, ["--version"])
    assert result.exit_code == 0
    assert "AdaptiveCrawler" in result.output


def test_show_config(cfg_file):
    runner = CliRunner()
    result = runner.invoke(cli, ["--config", str(cfg_file), "config"])
    assert result.exit_code == 0
    data = json.loads(result.output)
    assert data["start_url"] == "https://example.com/"
    assert data["max_depth"] == 1


def test_limit_overrides_max_pages(cfg_file):
    runner = CliRunner()
    result = runner.invoke(cli, ["--config", str(cfg_file), "--limit", "7", "config"])
    assert result.exit_code == 0
    assert json.loads(result.output)["max_pages"] == 7


def test_invalid_config(tmp_path):
    bad = tmp_path / "bad.json"
    bad.write_text(json.dumps({"startUrl": "https://example.com", "maxDepth": 0}), encoding="utf-8")
    runner = CliRunner()
    result = runner.invoke(cli, ["--config", str(bad), "config"])
    assert result.exit_code == 1
    assert "Ошибка загрузки конфигурации" in result.output


def test_crawl_stdout(cfg_file, patch_start_crawl):
    runner = CliRunner()
    result = runner.invoke(cli, ["--config", str(cfg_file), "crawl", "--crawl-timeout", "5"])
    assert result.exit_code == 0
    report = last_json_line(result.output)
    assert report["summary"]["status"] == "completed"
    assert report["pages"][0]["url"] == "https://example.com/"
    assert patch_start_crawl[0]["crawl_timeout"] == 5.0


def test_crawl_json_file(cfg_file, tmp_path):
    out = tmp_path / "out.json"
    runner = CliRunner()
    result = runner.invoke(cli, ["--config", str(cfg_file), "crawl", "--json", str(out)])
    assert result.exit_code == 0
    data = json.loads(out.read_text(encoding="utf-8"))
    assert data["summary"]["urls_processed"] == 1


def test_crawl_html_file(cfg_file, tmp_path):
    out = tmp_path / "report.html"
    runner = CliRunner()
    result = runner.invoke(cli, ["--config", str(cfg_file), "crawl", "--html", str(out)])
    assert result.exit_code == 0
    html = out.read_text(encoding="utf-8")
    assert "https://example.com/" in html
    assert "completed" in html
    assert "example.com</td>" in html


def test_crawl_output_dir_writes_jsonl(cfg_file, tmp_path):
    out_dir = tmp_path / "data"
    runner = CliRunner()
    result = runner.invoke(cli, ["--config", str(cfg_file), "crawl", "--output", str(out_dir)])
    assert result.exit_code == 0
    lines = (out_dir / "pages.jsonl").read_text(encoding="utf-8").splitlines()
    assert json.loads(lines[0])["url"] == "https://example.com/"
    report = last_json_line(result.output)
    assert [p["url"] for p in report["pages"]] == ["https://example.com/"]
    assert report["summary"]["domain_metrics"]["example.com"]["requests"] == 1


def test_failed_run_exits_non_zero(cfg_file, monkeypatch):
    async def failing(cfg, **kwargs):
        return CrawlRunResult(status=RunStatus.FAILED, has_errors=True, last_error="seed URL unreachable")

    monkeypatch.setattr(cli_module, "start_crawl", failing)
    runner = CliRunner()
    result = runner.invoke(cli, ["--config", str(cfg_file), "crawl"])
    assert result.exit_code == 1
    assert "seed URL unreachable" in result.output


def test_crawl_uses_patched_start_crawl(cfg_file, patch_start_crawl):
    runner = CliRunner()
    result = runner.invoke(cli, ["--config", str(cfg_file), "crawl"])
    assert result.exit_code == 0
    assert len(patch_start_crawl) == 1
    assert patch_start_crawl[0]["config"].user_agent == "Agent/1.0"
