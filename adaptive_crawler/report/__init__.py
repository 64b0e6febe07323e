# File: adaptive_crawler/report/__init__.py
"""adaptive_crawler.report: Генерация отчётов (JSON и HTML) для CLI и тестов."""

from __future__ import annotations

from adaptive_crawler.report.html_report import DEFAULT_TEMPLATE_DIR, render_html
from adaptive_crawler.report.json_report import render_json

__all__ = ["render_json", "render_html", "DEFAULT_TEMPLATE_DIR"]
