# File: adaptive_crawler/engine.py
"""adaptive_crawler.engine: Orchestration layer для запуска обхода с реальными HTTP-коллабораторами."""

from __future__ import annotations

import asyncio
from typing import Mapping, Optional

from aiohttp import ClientSession, ClientTimeout, TCPConnector

from adaptive_crawler.config import CrawlerConfig, load_config
from adaptive_crawler.crawler.controller import CrawlController
from adaptive_crawler.crawler.fetcher import AiohttpPageFetcher
from adaptive_crawler.crawler.interfaces import ContentStore, NotificationSink
from adaptive_crawler.crawler.link_extractor import HtmlLinkExtractor
from adaptive_crawler.crawler.models import ContentVersion, CrawlRunResult
from adaptive_crawler.crawler.robots import AiohttpRobotsChecker
from adaptive_crawler.logger import logger

__all__ = ["Engine", "start_crawl"]


async def start_crawl(
    config: CrawlerConfig,
    *,
    content_store: Optional[ContentStore] = None,
    notifier: Optional[NotificationSink] = None,
    previous_versions: Optional[Mapping[str, ContentVersion]] = None,
    crawl_timeout: Optional[float] = None,
) -> CrawlRunResult:
    """Запускает один обход в рамках общей aiohttp-сессии.

    Если задан ``crawl_timeout`` и обход не уложился в него, контроллер
    останавливается кооперативно и возвращается результат со статусом STOPPED.
    """
    connector = TCPConnector(limit=config.max_concurrent_requests)
    timeout = ClientTimeout(total=config.request_timeout_seconds)
    async with ClientSession(connector=connector, timeout=timeout) as session:
        controller = CrawlController(
            config,
            AiohttpPageFetcher(session),
            robots=AiohttpRobotsChecker(session) if config.respect_robots_txt else None,
            link_extractor=HtmlLinkExtractor(config.key_term_filters),
            content_store=content_store,
            notifier=notifier,
            previous_versions=previous_versions,
        )
        task = asyncio.create_task(controller.run(), name="crawl-run")
        if crawl_timeout is None:
            return await task
        done, _ = await asyncio.wait({task}, timeout=crawl_timeout)
        if not done:
            logger.warning("Crawl did not finish within %s seconds, stopping", crawl_timeout)
            await controller.stop()
        return await task


class Engine:
    """Фасад для CLI и тестов: загрузка конфига и синхронный запуск обхода."""

    @staticmethod
    def load_config(path: Optional[str]) -> CrawlerConfig:
        """Загружает конфиг из YAML/JSON или использует значения по умолчанию."""
        return load_config(path)

    def __init__(
        self,
        config: CrawlerConfig,
        *,
        content_store: Optional[ContentStore] = None,
        notifier: Optional[NotificationSink] = None,
    ) -> None:
        """Инициализирует Engine с заданной конфигурацией и коллабораторами."""
        self.config = config
        self.content_store = content_store
        self.notifier = notifier

    def run(self, crawl_timeout: Optional[float] = None) -> CrawlRunResult:
        """Запускает обход в собственном event loop и возвращает итог."""
        logger.info("Starting crawl…")
        try:
            return asyncio.run(
                start_crawl(
                    self.config,
                    content_store=self.content_store,
                    notifier=self.notifier,
                    crawl_timeout=crawl_timeout,
                )
            )
        except Exception as exc:
            logger.error("Crawl failed: %s", exc)
            raise
