"""
App update checks against GitHub releases.

The latest release is fetched at most once per check interval. A release
the rider has already dismissed is not offered again unless the check is
forced.
"""

import logging
import re
import time
from dataclasses import dataclass, field
from typing import Any

import requests

from ..core.preferences import Preferences

logger = logging.getLogger(__name__)

LAST_CHECK_KEY = "app_update_last_check"
LAST_VERSION_KEY = "app_update_last_version"
DEFAULT_REPO = "Purukitto/apex-app"
NO_RELEASE_NOTES = "No release notes available."

_ASSET_HINTS = {
    "android": (".apk", "android"),
    "ios": (".ipa", "ios"),
}


def _version_parts(version: str) -> list[int]:
    parts = []
    for part in re.sub(r"^v", "", version.strip()).split("."):
        match = re.match(r"\d+", part)
        parts.append(int(match.group()) if match else 0)
    return parts


def compare_versions(v1: str, v2: str) -> int:
    """
    Compare dotted version strings, ignoring a leading ``v``.

    Returns:
        1 if v1 > v2, -1 if v1 < v2, 0 if equal. Missing parts count as 0.
    """
    parts1, parts2 = _version_parts(v1), _version_parts(v2)
    for i in range(max(len(parts1), len(parts2))):
        a = parts1[i] if i < len(parts1) else 0
        b = parts2[i] if i < len(parts2) else 0
        if a > b:
            return 1
        if a < b:
            return -1
    return 0


def select_asset(assets: list[dict[str, Any]], platform_type: str) -> str | None:
    """Download URL of the first release asset matching the platform."""
    hints = _ASSET_HINTS.get(platform_type)
    if not hints:
        return None
    for asset in assets:
        name = str(asset.get("name", "")).lower()
        if any(hint in name for hint in hints):
            return asset.get("browser_download_url")
    return None


@dataclass
class UpdateInfo:
    """An available update."""

    latest_version: str
    current_version: str
    release_notes: str
    release_url: str
    download_url: str | None = None
    is_available: bool = field(default=True)

    def to_dict(self) -> dict[str, Any]:
        return {
            "is_available": self.is_available,
            "latest_version": self.latest_version,
            "current_version": self.current_version,
            "release_notes": self.release_notes,
            "release_url": self.release_url,
            "download_url": self.download_url,
        }


class AppUpdateChecker:
    """
    Checks GitHub for a newer release.

    Usage:
        checker = AppUpdateChecker(prefs, "0.4.0", platform_type="android")
        info = checker.check()
        if info:
            ...
            checker.dismiss(info)
    """

    def __init__(
        self,
        preferences: Preferences,
        current_version: str,
        platform_type: str = "desktop",
        repo: str = DEFAULT_REPO,
        interval_hours: float = 24,
        timeout: float = 10.0,
        session: requests.Session | None = None,
        clock=time.time,
    ):
        self.preferences = preferences
        self.current_version = current_version
        self.platform_type = platform_type
        self.repo = repo
        self.interval_seconds = interval_hours * 3600
        self.timeout = timeout
        self.session = session or requests.Session()
        self._clock = clock
        self.last_error: str | None = None

    @property
    def api_url(self) -> str:
        return f"https://api.github.com/repos/{self.repo}/releases/latest"

    def fetch_latest_release(self) -> dict[str, Any] | None:
        try:
            response = self.session.get(
                self.api_url,
                headers={"Accept": "application/vnd.github.v3+json"},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error(f"Error fetching GitHub release: {e}")
            return None
        if not response.ok:
            logger.error(f"Failed to fetch GitHub release: {response.status_code} {response.reason}")
            return None
        try:
            return response.json()
        except ValueError as e:
            logger.error(f"GitHub release response is not JSON: {e}")
            return None

    def checked_recently(self) -> bool:
        last_check = self.preferences.get_float(LAST_CHECK_KEY, 0.0)
        if not last_check:
            return False
        return (self._clock() - last_check / 1000.0) < self.interval_seconds

    def check(self, force: bool = False) -> UpdateInfo | None:
        """
        Check for a newer release.

        Args:
            force: Ignore the check interval and previously dismissed versions

        Returns:
            UpdateInfo when a newer, not yet dismissed release exists
        """
        self.last_error = None

        if not force and self.checked_recently():
            logger.debug("Update check skipped - checked recently")
            return None

        release = self.fetch_latest_release()
        if release is None:
            self.last_error = "Failed to fetch release information"
            return None

        latest = str(release.get("tag_name", ""))
        comparison = compare_versions(latest, self.current_version)
        logger.info(
            f"Update check: current={self.current_version}, latest={latest}, comparison={comparison}"
        )

        if not force and self.preferences.get(LAST_VERSION_KEY) == latest:
            logger.debug("Update already shown for this version")
            return None

        # Milliseconds since epoch, matching the stored format on device.
        self.preferences.set(LAST_CHECK_KEY, int(self._clock() * 1000))

        if comparison <= 0:
            return None

        return UpdateInfo(
            latest_version=latest,
            current_version=self.current_version,
            release_notes=release.get("body") or NO_RELEASE_NOTES,
            release_url=release.get("html_url", ""),
            download_url=select_asset(release.get("assets") or [], self.platform_type),
        )

    def dismiss(self, info: UpdateInfo) -> None:
        """Do not offer this version again on unforced checks."""
        self.preferences.set(LAST_VERSION_KEY, info.latest_version)
