from __future__ import annotations

from collections import OrderedDict
from datetime import datetime, timezone, tzinfo
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

# ----------------------------
# Observations
# ----------------------------
class AccessLog(BaseModel):
    """One parsed access-log line. ``raw`` is always the verbatim input."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    timestamp: int = 0            # time embedded in the line (epoch seconds)
    unix: int = 0                 # when the collector received it
    ip: str = ""
    path: str = ""
    method: str = ""
    http: str = ""
    remote_ip: str = Field(default="", alias="remoteIp")
    status: str = ""
    raw: str = ""


class HealthCheck(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: str = ""
    timestamp: int = 0


UNHEALTHY = HealthCheck(status="DOWN", timestamp=0)
HEALTHY = HealthCheck(status="UP", timestamp=1)
NOT_REPORTED = HealthCheck()


# ----------------------------
# Registry
# ----------------------------
class IpStat(BaseModel):
    ip: str
    count: int
    paths: Dict[str, str] = Field(default_factory=dict)


class App(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(alias="app")
    health: HealthCheck = Field(default_factory=HealthCheck)
    logs: List[AccessLog] = Field(default_factory=list)

    def logs_sorted(self) -> List[AccessLog]:
        return sorted(self.logs, key=lambda l: l.unix, reverse=True)

    def log_count_per_day(self, tz: Optional[tzinfo] = None) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for log in self.logs:
            day = datetime.fromtimestamp(log.unix, tz or timezone.utc).strftime("%Y-%m-%d")
            counts[day] = counts.get(day, 0) + 1
        return dict(sorted(counts.items()))

    def ip_stats(self) -> List[IpStat]:
        stats: "OrderedDict[str, IpStat]" = OrderedDict()
        for log in self.logs:
            key = log.path[:20]
            stat = stats.get(log.remote_ip)
            if stat is None:
                stats[log.remote_ip] = IpStat(ip=log.remote_ip, count=1, paths={key: log.path})
            else:
                stat.count += 1
                stat.paths[key] = log.path
        return sorted(stats.values(), key=lambda s: s.count, reverse=True)


class Apps(list):
    """All application records, in first-seen order. Lookups are linear."""

    def find(self, name: str) -> Optional[App]:
        for app in self:
            if app.name == name:
                return app
        return None

    def names(self) -> List[str]:
        return [app.name for app in self]


class LoadError(Exception):
    """Persisted bytes could not be decoded into a registry."""


_APPS_ADAPTER = TypeAdapter(List[App])


def load_apps(data: str | bytes) -> Apps:
    try:
        return Apps(_APPS_ADAPTER.validate_json(data))
    except ValidationError as e:
        raise LoadError(f"problem parsing apps, {e}") from e


def dump_apps(apps: List[App]) -> str:
    return _APPS_ADAPTER.dump_json(list(apps), by_alias=True).decode("utf-8")
