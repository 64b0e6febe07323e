# === FILE: adaptive_crawler/config.py ===
"""
Модуль для загрузки и валидации конфигурации краулера.
Используется Pydantic для описания схемы и проверки данных.
Ключи принимаются как в snake_case, так и в camelCase (формат исходных JSON-конфигов).
"""
from __future__ import annotations

import errno
import json
import os
import re
from pathlib import Path
from typing import Any, List, Union
from urllib.parse import urlparse

import yaml
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    HttpUrl,
    ValidationError,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from adaptive_crawler.errors import ConfigurationError

__all__ = ["CrawlerConfig", "load_config", "DEFAULT_CONFIG_PATH"]


class CrawlerConfig(BaseModel):
    """Неизменяемая конфигурация одного запуска краулера."""
    model_config = ConfigDict(
        extra="forbid",
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    start_url: HttpUrl = Field(..., description="Стартовый (seed) URL.")
    base_url: HttpUrl | None = Field(
        None, description="Граница обхода; по умолчанию origin стартового URL."
    )
    max_depth: int = Field(3, ge=1, description="Максимальная глубина обхода ссылок.")
    max_pages: int = Field(1000, ge=1, description="Жесткий лимит по числу страниц.")
    max_concurrent_requests: int = Field(5, ge=1, description="Размер пула воркеров.")

    # Темп запросов, миллисекунды
    delay_between_requests: int = Field(1000, ge=0)
    enable_adaptive_rate_limiting: bool = True
    min_delay_between_requests: int = Field(500, ge=0)
    max_delay_between_requests: int = Field(5000, ge=0)
    max_requests_per_minute: int = Field(60, ge=0, description="0 означает без ограничения.")

    respect_robots_txt: bool = True
    follow_external_links: bool = False
    allowed_domains: List[str] = Field(default_factory=list)
    exclude_url_patterns: List[str] = Field(default_factory=list)

    enable_adaptive_crawling: bool = True
    priority_queue_size: int = Field(100, ge=1)
    adjust_depth_based_on_quality: bool = True
    content_relevance_threshold: float = Field(0.5, ge=0.0, le=1.0)
    key_term_filters: List[str] = Field(default_factory=list)

    enable_change_detection: bool = True
    track_content_versions: bool = True
    max_versions_to_keep: int = Field(5, ge=1)
    min_change_significance: int = Field(10, ge=0, le=100)
    notify_on_changes: bool = False
    change_notification_threshold: int = Field(50, ge=0, le=100)

    max_retries: int = Field(3, ge=0, description="Повторы при временных ошибках.")
    continue_on_error: bool = True
    request_timeout_seconds: float = Field(30.0, gt=0, description="Таймаут на один запрос.")
    user_agent: str = Field("AdaptiveCrawler/1.0", min_length=1)

    @field_validator("allowed_domains", mode="after")
    @classmethod
    def _lower_domains(cls, v: List[str]) -> List[str]:
        return [d.strip().lower() for d in v if d.strip()]

    @field_validator("exclude_url_patterns", mode="after")
    @classmethod
    def _check_patterns(cls, v: List[str]) -> List[str]:
        for pattern in v:
            try:
                re.compile(pattern)
            except re.error as exc:
                raise ValueError(f"Неправильное регулярное выражение {pattern!r}: {exc}") from exc
        return v

    @model_validator(mode="after")
    def _check_delays(self) -> CrawlerConfig:
        if self.min_delay_between_requests >= self.max_delay_between_requests:
            raise ValueError(
                "min_delay_between_requests должен быть меньше max_delay_between_requests"
            )
        return self

    @property
    def scope_url(self) -> str:
        """Граница обхода: base_url либо origin стартового URL."""
        if self.base_url is not None:
            return str(self.base_url)
        parsed = urlparse(str(self.start_url))
        return f"{parsed.scheme}://{parsed.netloc}/"

    def with_overrides(self, **updates: Any) -> CrawlerConfig:
        """Возвращает копию с изменёнными полями (с повторной валидацией)."""
        data = self.model_dump()
        data.update(updates)
        return CrawlerConfig.model_validate(data)


DEFAULT_CONFIG_PATH = Path("configs/default.yaml")


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ValueError(f"Неправильный YAML в {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise TypeError(f"Верхний уровень YAML должен быть mapping, получено {type(data).__name__}")
    return data


def _read_json(path: Path) -> dict[str, Any]:
    try:
        data = json.loads(path.read_text(encoding="utf-8")) or {}
    except json.JSONDecodeError as exc:
        raise ValueError(f"Неправильный JSON в {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise TypeError(f"Верхний уровень JSON должен быть mapping, получено {type(data).__name__}")
    return data


def load_config(path: Union[str, Path, None]) -> CrawlerConfig:
    """
    Читает YAML или JSON и возвращает проверенный объект CrawlerConfig.
    При отсутствии файла бросает FileNotFoundError, при неверных значениях ConfigurationError.
    """
    if path is None:
        if not DEFAULT_CONFIG_PATH.exists():
            raise FileNotFoundError(errno.ENOENT, os.strerror(errno.ENOENT), str(DEFAULT_CONFIG_PATH))
        path_obj = DEFAULT_CONFIG_PATH
    else:
        path_obj = Path(path).expanduser().resolve()
        if not path_obj.is_file():
            raise FileNotFoundError(errno.ENOENT, os.strerror(errno.ENOENT), str(path_obj))

    suffix = path_obj.suffix.lower()
    if suffix in (".yaml", ".yml"):
        data = _read_yaml(path_obj)
    elif suffix == ".json":
        data = _read_json(path_obj)
    else:
        raise ValueError(f"Неподдерживаемый формат конфига: {suffix}")

    try:
        return CrawlerConfig(**data)
    except ValidationError as exc:
        raise ConfigurationError(f"Некорректная конфигурация {path_obj}: {exc}") from exc
