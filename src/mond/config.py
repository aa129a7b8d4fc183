from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

# ----------------------------
# Env names
# ----------------------------
DB_FILE_ENV = "MOND_DB_FILE"
HOST_ENV = "MOND_HOST"
PORT_ENV = "MOND_PORT"
USERNAME_ENV = "MOND_USERNAME"
PASSWORD_ENV = "MOND_PW"
TZ_ENV = "MOND_TZ"
LOG_LEVEL_ENV = "MOND_LOG_LEVEL"
RELOAD_ENV = "MOND_RELOAD"

REPORT_URL_ENV = "MOND_REPORT_URL"
APP_NAME_ENV = "MOND_APP_NAME"
WEBSITES_ENV = "MOND_WEBSITES"
START_CMD_ENV = "MOND_START_CMD"
INTERVAL_ENV = "MOND_INTERVAL_S"
PROBE_TIMEOUT_ENV = "MOND_PROBE_TIMEOUT_S"


def split_list(spec: str) -> List[str]:
    """
    Supports:
      "" -> []
      "http://a,http://b" -> ["http://a", "http://b"]
    """
    return [p.strip() for p in spec.split(",") if p.strip()]


@dataclass
class CollectorSettings:
    db_file: str = "apps.db.json"
    host: str = "127.0.0.1"
    port: int = 5000
    username: Optional[str] = None
    password: Optional[str] = None
    timezone: Optional[str] = None
    log_level: str = "info"
    reload: bool = False

    @property
    def credentials(self) -> Optional[Tuple[str, str]]:
        if self.username and self.password:
            return self.username, self.password
        return None

    @classmethod
    def from_env(cls) -> "CollectorSettings":
        return cls(
            db_file=os.getenv(DB_FILE_ENV, "apps.db.json"),
            host=os.getenv(HOST_ENV, "127.0.0.1"),
            port=int(os.getenv(PORT_ENV, "5000")),
            username=os.getenv(USERNAME_ENV) or None,
            password=os.getenv(PASSWORD_ENV) or None,
            timezone=os.getenv(TZ_ENV) or os.getenv("TZ") or None,
            log_level=os.getenv(LOG_LEVEL_ENV, "info"),
            reload=os.getenv(RELOAD_ENV, "0") == "1",
        )


@dataclass
class AgentSettings:
    report_url: str = ""
    app_name: str = "test"
    websites: List[str] = field(default_factory=list)
    start_cmd: str = ""
    interval_s: float = 5.0
    probe_timeout_s: float = 10.0
    log_level: str = "info"

    @classmethod
    def from_env(cls, argv: Optional[List[str]] = None) -> "AgentSettings":
        """Env first; positional ``REPORT_URL [WEBSITE...]`` args override it."""
        settings = cls(
            report_url=os.getenv(REPORT_URL_ENV, ""),
            app_name=os.getenv(APP_NAME_ENV, "test"),
            websites=split_list(os.getenv(WEBSITES_ENV, "")),
            start_cmd=os.getenv(START_CMD_ENV, "").strip(),
            interval_s=float(os.getenv(INTERVAL_ENV, "5")),
            probe_timeout_s=float(os.getenv(PROBE_TIMEOUT_ENV, "10")),
            log_level=os.getenv(LOG_LEVEL_ENV, "info"),
        )
        args = list(argv or [])
        if args:
            settings.report_url = args[0]
        if len(args) > 1:
            settings.websites = args[1:]
        return settings
