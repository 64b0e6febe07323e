#!/usr/bin/env python3
# === FILE: adaptive_crawler/cli.py ===
"""
Точка входа для запуска адаптивного краулера через командную строку.

Команды:
  crawl     Запустить обход по конфигу и вывести/сохранить отчёты
  config    Показать текущую конфигурацию

Общие опции:
  --config PATH       Путь к YAML/JSON-конфигу (default: configs/default.yaml)
  --limit INT         Макс. число страниц (override max_pages)
  --log-level LEVEL   Уровень логирования (DEBUG, INFO, ...)
  --log-file PATH     Файл для логов (stderr, если не указан)
  --log-format FORMAT Формат логирования (e.g. "%(asctime)s %(levelname)s %(message)s")

Команда crawl опции:
  --json PATH          Сохранить JSON-отчёт в файл
  --html PATH          Сохранить HTML-отчёт в файл
  --template DIR       Папка с шаблоном report.html.j2 (по умолчанию шаблон пакета)
  --pretty             Преформатировать JSON-вывод (отступ 2)
  --output DIR         Писать страницы и ошибки в JSON-lines файлы в DIR
                       (отчёт при этом тоже содержит страницы и ошибки)
  --keep-bodies        Сохранять тела страниц в pages.jsonl (вместе с --output)
  --crawl-timeout SEC  Остановить обход через SEC секунд (статус stopped)

Код возврата 1, если обход завершился со статусом failed.

Пример:
  adaptive-crawler -c configs/default.yaml crawl --json report.json --limit 100
"""
import asyncio
import sys
from pathlib import Path

import click

from adaptive_crawler import __version__
from adaptive_crawler.aggregator import aggregate_run
from adaptive_crawler.config import load_config
from adaptive_crawler.crawler.models import RunStatus
from adaptive_crawler.engine import start_crawl
from adaptive_crawler.errors import CrawlerError
from adaptive_crawler.logger import init_logging
from adaptive_crawler.report.html_report import render_html
from adaptive_crawler.report.json_report import render_json
from adaptive_crawler.store import JsonlContentStore, MemoryContentStore, TeeContentStore

CONTEXT_SETTINGS = dict(help_option_names=["--help"])


def print_error(message: str):
    click.secho(message, fg='red', err=True)
    sys.exit(1)


@click.group(context_settings=CONTEXT_SETTINGS)
@click.version_option(__version__, '--version', '-v', message='AdaptiveCrawler, version %(version)s')
@click.option(
    '--config', '-c', 'config_path',
    default='configs/default.yaml',
    show_default=True,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help='Путь к файлу конфигурации YAML/JSON.'
)
@click.option(
    '--limit', '-l', 'limit',
    type=click.IntRange(min=1),
    default=None,
    help='Макс. число страниц (override max_pages)'
)
@click.option(
    '--log-level', 'log_level',
    default='INFO', show_default=True,
    type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'], case_sensitive=False),
    help='Уровень логирования'
)
@click.option(
    '--log-file', 'log_file',
    default=None,
    type=click.Path(writable=True, dir_okay=False, path_type=Path),
    help='Путь к файлу логов (stderr, если не указан)'
)
@click.option(
    '--log-format', 'log_format',
    default='%(asctime)s %(levelname)s %(message)s',
    show_default=True,
    help='Строка формата для логов'
)
@click.pass_context
def cli(ctx, config_path, limit, log_level, log_file, log_format):
    """Группа команд AdaptiveCrawler CLI."""
    init_logging(
        level=log_level,
        log_file=str(log_file) if log_file else None,
        log_format=log_format
    )
    try:
        cfg = load_config(config_path)
        if limit is not None:
            cfg = cfg.with_overrides(max_pages=limit)
    except (OSError, ValueError, TypeError) as e:
        print_error(f'Ошибка загрузки конфигурации: {e}')
    ctx.ensure_object(dict)
    ctx.obj['config'] = cfg


@cli.command('crawl', context_settings=CONTEXT_SETTINGS)
@click.option(
    '--json', '-j', 'json_output',
    default=None,
    type=click.Path(writable=True, dir_okay=False, path_type=Path),
    help='Сохранить JSON-отчёт в файл'
)
@click.option(
    '--html', '-h', 'html_output',
    default=None,
    type=click.Path(writable=True, dir_okay=False, path_type=Path),
    help='Сохранить HTML-отчёт в файл'
)
@click.option(
    '--template', '-t', 'template_dir',
    default=None,
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    help='Папка с шаблоном report.html.j2'
)
@click.option(
    '--pretty', is_flag=True,
    help='Преформатировать JSON-вывод (отступ 2)'
)
@click.option(
    '--output', '-o', 'output_dir',
    default=None,
    type=click.Path(file_okay=False, path_type=Path),
    help='Каталог для pages.jsonl / failures.jsonl'
)
@click.option(
    '--keep-bodies', is_flag=True,
    help='Сохранять тела страниц в pages.jsonl'
)
@click.option(
    '--crawl-timeout', 'crawl_timeout',
    type=float,
    default=None,
    help='Остановить обход через указанное число секунд'
)
@click.pass_context
def crawl(ctx, json_output, html_output, template_dir, pretty, output_dir, keep_bodies, crawl_timeout):
    """Запустить обход и сгенерировать отчёты."""
    cfg = ctx.obj['config']
    click.echo(f'Starting crawl at: {cfg.start_url}', err=True)

    # отчёт строится по метаданным в памяти, тела страниц не держим
    memory = MemoryContentStore(keep_bodies=False)
    try:
        store = memory
        if output_dir:
            store = TeeContentStore(memory, JsonlContentStore(output_dir, keep_bodies=keep_bodies))
        result = asyncio.run(start_crawl(cfg, content_store=store, crawl_timeout=crawl_timeout))
    except CrawlerError as e:
        print_error(f'Ошибка при обходе: {e}')

    report = aggregate_run(result, memory)

    if not json_output and not html_output:
        click.echo(report.json(pretty=pretty))

    if json_output:
        try:
            saved_json = render_json(report, json_output, pretty=pretty)
            click.echo(f'JSON report: {saved_json}', err=True)
        except OSError as e:
            print_error(f'Ошибка при сохранении JSON: {e}')

    if html_output:
        try:
            saved_html = render_html(report, template_dir, html_output)
            click.echo(f'HTML report: {saved_html}', err=True)
        except OSError as e:
            print_error(f'Ошибка при сохранении HTML: {e}')

    if result.status is RunStatus.FAILED:
        print_error(f'Обход завершился с ошибкой: {result.last_error}')


@cli.command('config', context_settings=CONTEXT_SETTINGS)
@click.pass_context
def show_config(ctx):
    """Показать текущую конфигурацию в JSON."""
    cfg = ctx.obj['config']
    click.echo(cfg.model_dump_json(indent=2))


if __name__ == "__main__":
    cli()
