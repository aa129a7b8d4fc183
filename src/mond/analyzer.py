from __future__ import annotations

import logging
import os
import re
import time
from datetime import datetime, tzinfo
from typing import Optional, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from mond.models import AccessLog

logger = logging.getLogger(__name__)

# ----------------------------
# Patterns
# ----------------------------
_IP_RE = re.compile(r"^\d{1,3}\.\d{1,3}\.\d{1,3}\.\d{1,3}")
_TIME_RE = re.compile(
    r"""
    \[
    (?P<clock>\d{2}/\w{3}/\d{4}:\d{2}:\d{2}:\d{2})
    (?:\s(?P<offset>[^\]]*))?
    \]
    """,
    re.VERBOSE,
)
_STATUS_RE = re.compile(r"\s(\d{3})(?=\s)")
_REQUEST_RE = re.compile(r'"([^"]*?\sHTTP/\d\.\d)"')
_QUOTED_IP_RE = re.compile(r'"(\d{1,3}\.\d{1,3}\.\d{1,3}\.\d{1,3})"')

_CLOCK_FMT = "%d/%b/%Y:%H:%M:%S"


def resolve_timezone(name: Optional[str]) -> Optional[tzinfo]:
    """
    Look up an IANA zone name. Empty -> None.
    Unknown names are logged and treated as absent.
    """
    if not name:
        return None
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("unknown time zone %r, ignoring", name)
        return None


def _find_ip(raw: str) -> str:
    m = _IP_RE.search(raw)
    return m.group(0) if m else ""


def _find_time(raw: str, tz: Optional[tzinfo]) -> int:
    m = _TIME_RE.search(raw)
    if not m:
        return 0
    clock = m.group("clock")
    offset = (m.group("offset") or "").strip()

    if offset:
        try:
            return int(datetime.strptime(f"{clock} {offset}", f"{_CLOCK_FMT} %z").timestamp())
        except ValueError:
            pass

    zone = tz or resolve_timezone(os.getenv("TZ"))
    if zone is None:
        logger.warning("cannot parse time %r: no usable offset and no time zone configured", m.group(0))
        return 0
    try:
        naive = datetime.strptime(clock, _CLOCK_FMT)
    except ValueError as e:
        logger.warning("cannot parse time %r caused by %s", clock, e)
        return 0
    return int(naive.replace(tzinfo=zone).timestamp())


def _find_status(raw: str) -> str:
    m = _STATUS_RE.search(raw)
    return m.group(1) if m else ""


def _find_request(raw: str) -> Tuple[str, str, str]:
    m = _REQUEST_RE.search(raw)
    if not m:
        return "", "", ""
    parts = m.group(1).split(" ", 2)
    method = parts[0] if len(parts) > 0 else ""
    path = parts[1] if len(parts) > 1 else ""
    http = parts[2] if len(parts) > 2 else ""
    return method, path, http


def _find_forwarded_for(raw: str) -> str:
    found = _QUOTED_IP_RE.findall(raw)
    return found[-1] if found else ""


def parse_raw_log(raw: str, tz: Optional[tzinfo] = None, received_at: Optional[int] = None) -> AccessLog:
    """
    Best-effort parse of one access-log line (Apache/nginx combined style):

      10.0.0.1 - - [02/Jul/2021:22:50:59 +0200] "GET /x HTTP/1.1" 200 7280 "-" "UA" "1.2.3.4"

    Never raises: fields that don't match are left empty (or 0 for the
    timestamp), and ``raw`` always carries the original line.
    """
    method, path, http = _find_request(raw)
    entry = AccessLog(
        timestamp=_find_time(raw, tz),
        unix=int(time.time()) if received_at is None else received_at,
        ip=_find_ip(raw),
        path=path,
        method=method,
        http=http,
        remote_ip=_find_forwarded_for(raw),
        status=_find_status(raw),
        raw=raw,
    )
    if not (entry.ip or entry.path or entry.status or entry.remote_ip or entry.timestamp):
        logger.debug("nothing recognised in log line %r, keeping raw text only", raw[:200])
    return entry
