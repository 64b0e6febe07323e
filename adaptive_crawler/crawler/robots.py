# adaptive_crawler/crawler/robots.py
"""
robots.txt rules and an aiohttp RobotsChecker that caches them per origin.
"""
from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple
from urllib.parse import urlparse, urlunparse

from aiohttp import ClientError, ClientSession, ClientTimeout

__all__ = ("RobotsTxtRules", "AiohttpRobotsChecker")

logger = logging.getLogger("AdaptiveCrawler")


@dataclass(slots=True)
class _Group:
    agents: List[str] = field(default_factory=list)
    directives: List[Tuple[str, str]] = field(default_factory=list)
    crawl_delay: Optional[float] = None


class RobotsTxtRules:
    """
    Allow/Disallow matching with longest-match precedence (RFC 9309 subset).
    An empty Disallow allows everything; Allow wins ties.
    """
    _WILDCARD_RE = re.compile(r"[*$]")

    def __init__(self, text: str) -> None:
        self._groups: List[_Group] = []
        self._regex_cache: Dict[str, re.Pattern[str]] = {}
        self._parse(text)

    @classmethod
    def allow_all(cls) -> RobotsTxtRules:
        return cls("")

    def can_fetch(self, user_agent: str, path: str) -> bool:
        group = self._match_group(user_agent)
        if group is None:
            return True
        best_len = -1
        allowed: Optional[bool] = None
        for directive, pattern in group.directives:
            if not self._match_path(path, pattern):
                continue
            length = len(self._WILDCARD_RE.sub("", pattern))
            if length > best_len or (length == best_len and directive == "allow"):
                best_len = length
                allowed = directive == "allow"
        return True if allowed is None else allowed

    def crawl_delay(self, user_agent: str) -> Optional[float]:
        group = self._match_group(user_agent)
        return None if group is None else group.crawl_delay

    def _parse(self, text: str) -> None:
        current: Optional[_Group] = None
        for raw in text.splitlines():
            line = raw.split("#", 1)[0].strip()
            if not line or ":" not in line:
                continue
            key, _, val = line.partition(":")
            key, val = key.strip().lower(), val.strip()
            if key == "user-agent":
                # consecutive User-agent lines share one group
                if current is None or current.directives or current.crawl_delay is not None:
                    current = _Group()
                    self._groups.append(current)
                current.agents.append(val.lower())
                continue
            if key not in ("allow", "disallow", "crawl-delay"):
                continue
            if current is None:
                current = _Group(agents=["*"])
                self._groups.append(current)
            if key == "crawl-delay":
                try:
                    current.crawl_delay = float(val)
                except ValueError:
                    logger.debug("Ignoring bad Crawl-delay value %r", val)
            elif val:
                current.directives.append((key, val))

    def _match_group(self, user_agent: str) -> Optional[_Group]:
        ua = user_agent.lower()
        for group in self._groups:
            if any(agent != "*" and ua.startswith(agent) for agent in group.agents):
                return group
        for group in self._groups:
            if "*" in group.agents:
                return group
        return None

    def _match_path(self, path: str, pattern: str) -> bool:
        regex = self._regex_cache.get(pattern)
        if regex is None:
            anchored = pattern.endswith("$")
            body = re.escape(pattern.rstrip("$")).replace(r"\*", ".*")
            regex = re.compile("^" + body + ("$" if anchored else ""))
            self._regex_cache[pattern] = regex
        return regex.match(path) is not None


class AiohttpRobotsChecker:
    """RobotsChecker that downloads ``/robots.txt`` once per origin.

    A missing or unreadable robots.txt allows everything.
    """

    def __init__(self, session: ClientSession, timeout: float = 10.0) -> None:
        self.session = session
        self.timeout = timeout
        self._rules: Dict[str, RobotsTxtRules] = {}
        self._locks: Dict[str, asyncio.Lock] = {}

    async def is_allowed(self, url: str, user_agent: str) -> bool:
        parsed = urlparse(url)
        rules = await self._rules_for(parsed.scheme, parsed.netloc)
        path = parsed.path or "/"
        if parsed.query:
            path = f"{path}?{parsed.query}"
        return rules.can_fetch(user_agent, path)

    async def crawl_delay(self, url: str, user_agent: str) -> Optional[float]:
        parsed = urlparse(url)
        rules = await self._rules_for(parsed.scheme, parsed.netloc)
        return rules.crawl_delay(user_agent)

    async def _rules_for(self, scheme: str, netloc: str) -> RobotsTxtRules:
        origin = f"{scheme}://{netloc}"
        if origin in self._rules:
            return self._rules[origin]
        lock = self._locks.setdefault(origin, asyncio.Lock())
        async with lock:
            if origin not in self._rules:
                self._rules[origin] = await self._load(scheme, netloc)
        return self._rules[origin]

    async def _load(self, scheme: str, netloc: str) -> RobotsTxtRules:
        robots_url = urlunparse((scheme, netloc, "/robots.txt", "", "", ""))
        try:
            async with self.session.get(robots_url, timeout=ClientTimeout(total=self.timeout)) as resp:
                if resp.status == 200:
                    return RobotsTxtRules(await resp.text(errors="replace"))
                logger.debug("robots.txt %s -> HTTP %s", robots_url, resp.status)
        except (ClientError, asyncio.TimeoutError) as exc:
            logger.warning("Error loading robots.txt from %s: %s", robots_url, exc)
        return RobotsTxtRules.allow_all()
