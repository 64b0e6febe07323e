"""adaptive_crawler.change: Fingerprinting and version retention."""

from adaptive_crawler.change.fingerprint import Classification, FingerprintEngine
from adaptive_crawler.change.versions import VersionStorePolicy

__all__ = ["Classification", "FingerprintEngine", "VersionStorePolicy"]
