from __future__ import annotations

import logging
import queue
import threading
import time
from typing import Callable, Dict, Iterable, Optional, Tuple

import requests

from mond.models import HealthCheck

logger = logging.getLogger(__name__)

DEFAULT_PROBE_TIMEOUT = 10.0
DEFAULT_REPORT_TIMEOUT = 5.0
JSON_CONTENT_TYPE = "application/json"
TEXT_CONTENT_TYPE = "text/plain; charset=utf-8"

LOGS_PATH = "/logs/"
HEALTH_PATH = "/health/"

WebsiteChecker = Callable[[str], HealthCheck]
Reporter = Callable[[str, str], requests.Response]


class ReportingError(Exception):
    """A result could not be delivered to the collector."""


def _down_now() -> HealthCheck:
    return HealthCheck(status="DOWN", timestamp=int(time.time()))


# ----------------------------
# Probing
# ----------------------------
def check_website(url: str, timeout: float = DEFAULT_PROBE_TIMEOUT) -> HealthCheck:
    try:
        resp = requests.head(url, timeout=timeout, allow_redirects=True)
    except requests.RequestException as e:
        logger.info("probe %s failed: %s", url, e)
        return _down_now()

    now = int(time.time())
    if not 200 <= resp.status_code < 300:
        return HealthCheck(status=f"{resp.status_code} {resp.reason or ''}".strip(), timestamp=now)
    return HealthCheck(status="UP", timestamp=now)


def check_websites(
    checker: WebsiteChecker,
    urls: Iterable[str],
    timeout: Optional[float] = None,
) -> Dict[str, HealthCheck]:
    """
    Run ``checker`` for every url concurrently and return {url: result}.

    Each probe runs in its own daemon thread and pushes exactly one result
    onto a queue sized to the number of targets. With ``timeout`` set, any
    probe still running at the deadline is reported DOWN and left behind.
    """
    targets = list(dict.fromkeys(urls))
    if not targets:
        return {}

    results_q: "queue.Queue[Tuple[str, HealthCheck]]" = queue.Queue(maxsize=len(targets))

    def worker(url: str):
        try:
            check = checker(url)
        except Exception:
            logger.exception("probe for %s raised", url)
            check = _down_now()
        results_q.put((url, check))

    for url in targets:
        threading.Thread(target=worker, args=(url,), name=f"probe:{url}", daemon=True).start()

    deadline = None if timeout is None else time.monotonic() + timeout
    results: Dict[str, HealthCheck] = {}
    while len(results) < len(targets):
        remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
        try:
            url, check = results_q.get(timeout=remaining)
        except queue.Empty:
            break
        results[url] = check

    for url in targets:
        if url not in results:
            logger.warning("probe for %s did not finish within %ss", url, timeout)
            results[url] = _down_now()
    return results


# ----------------------------
# Reporting
# ----------------------------
def report(url: str, content: str, content_type: str = JSON_CONTENT_TYPE) -> requests.Response:
    try:
        return requests.post(
            url,
            data=content.encode("utf-8"),
            headers={"Content-Type": content_type},
            timeout=DEFAULT_REPORT_TIMEOUT,
        )
    except requests.RequestException as e:
        raise ReportingError(f"could not report to {url}: {e}") from e


def _expect_accepted(url: str, resp: requests.Response) -> int:
    if resp.status_code != 202:
        raise ReportingError(f"got wrong response code from {url}, got {resp.status_code} want 202")
    return resp.status_code


def report_health_check(reporter: Reporter, url: str, check: HealthCheck) -> int:
    return _expect_accepted(url, reporter(url, check.model_dump_json()))


def report_raw_log(url: str, line: str, reporter: Optional[Reporter] = None) -> int:
    if reporter is None:
        resp = report(url, line, content_type=TEXT_CONTENT_TYPE)
    else:
        resp = reporter(url, line)
    return _expect_accepted(url, resp)
