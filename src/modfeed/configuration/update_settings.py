from typing import Any, Dict


class _SettingsSection:
    """Typed accessors over one mapping section of the YAML configuration."""

    def __init__(self, data: Dict[str, Any] | None = None) -> None:
        self.data: Dict[str, Any] = data if isinstance(data, dict) else {}

    def get(self, key: str, default: Any = None) -> Any:
        """Return the value for `key` or `default` if missing."""
        return self.data.get(key, default)

    def as_dict(self) -> Dict[str, Any]:
        return self.data

    def _float(self, key: str, default: float, minimum: float = 0.0) -> float:
        try:
            value = float(self.data.get(key, default))
        except (TypeError, ValueError):
            return default
        return max(value, minimum)

    def _int(self, key: str, default: int, minimum: int = 0) -> int:
        try:
            value = int(self.data.get(key, default))
        except (TypeError, ValueError):
            return default
        return max(value, minimum)


class PortalSettings(_SettingsSection):
    """Where and how the mod portal is read (``portal:`` section)."""

    @property
    def base_url(self) -> str:
        return str(self.data.get("base_url") or "https://mods.factorio.com").rstrip("/")

    @property
    def assets_url(self) -> str:
        return str(self.data.get("assets_url") or "https://assets-mod.factorio.com").rstrip("/")

    @property
    def page_size(self) -> str:
        """Either ``"max"`` (whole catalog in one page) or a positive integer."""
        value = self.data.get("page_size", "max")
        if isinstance(value, int) and value > 0:
            return str(value)
        return "max"

    @property
    def fetch_timeout_seconds(self) -> float:
        return self._float("fetch_timeout_seconds", 30.0, minimum=1.0)

    @property
    def max_pages(self) -> int:
        return self._int("max_pages", 500, minimum=1)

    @property
    def details_concurrency(self) -> int:
        return self._int("details_concurrency", 4, minimum=1)


class NotificationSettings(_SettingsSection):
    """Poll cycle and delivery tuning (``update_notifications:`` section)."""

    @property
    def poll_interval_seconds(self) -> float:
        return self._float("poll_interval_seconds", 60.0, minimum=1.0)

    @property
    def cycle_timeout_seconds(self) -> float:
        return self._float("cycle_timeout_seconds", 300.0, minimum=1.0)

    @property
    def send_concurrency(self) -> int:
        return self._int("send_concurrency", 5, minimum=1)

    @property
    def send_timeout_seconds(self) -> float:
        return self._float("send_timeout_seconds", 15.0, minimum=0.1)

    @property
    def max_retries(self) -> int:
        return self._int("max_retries", 3)

    @property
    def backoff_base_seconds(self) -> float:
        return self._float("backoff_base_seconds", 1.0)

    @property
    def rate_limit_messages(self) -> int:
        return self._int("rate_limit_messages", 5, minimum=1)

    @property
    def rate_limit_period_seconds(self) -> float:
        return self._float("rate_limit_period_seconds", 1.0, minimum=0.001)

    @property
    def channel_rate_limit_messages(self) -> int:
        return self._int("channel_rate_limit_messages", 5, minimum=1)

    @property
    def channel_rate_limit_period_seconds(self) -> float:
        return self._float("channel_rate_limit_period_seconds", 5.0, minimum=0.001)

    @property
    def persist_margin_seconds(self) -> float:
        """Part of the cycle timeout kept free for the final store commit (at most half of it)."""
        return min(self._float("persist_margin_seconds", 30.0), self.cycle_timeout_seconds / 2)

    @property
    def diff_workers(self) -> int:
        return self._int("diff_workers", 4, minimum=1)

    @property
    def changelog_max_lines(self) -> int:
        return self._int("changelog_max_lines", 15, minimum=1)

    @property
    def notify_on_initial_sync(self) -> bool:
        return bool(self.data.get("notify_on_initial_sync", False))

    @property
    def shutdown_grace_seconds(self) -> float:
        return self._float("shutdown_grace_seconds", 10.0)
