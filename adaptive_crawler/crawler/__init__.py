"""Crawl runtime: frontier, rate governor, controller and HTTP collaborators."""
