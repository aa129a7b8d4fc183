from __future__ import annotations

import functools
import logging
import queue
import shlex
import subprocess
import threading
from typing import Dict, Iterable, List, Optional

from mond.health_check import (
    HEALTH_PATH,
    LOGS_PATH,
    Reporter,
    ReportingError,
    WebsiteChecker,
    check_website,
    check_websites,
    report,
    report_health_check,
    report_raw_log,
)
from mond.models import HealthCheck

logger = logging.getLogger(__name__)


class MondAgent:
    """
    Runs next to one application and reports to a collector:
    stdout lines of the application's command go to POST /logs/<app>, and
    every ``interval`` seconds the configured websites are probed and each
    result is sent to POST /health/<app>.
    """

    def __init__(
        self,
        report_url: str,
        app_name: str,
        websites: List[str],
        *,
        interval: float = 5.0,
        probe_timeout: Optional[float] = 10.0,
        checker: Optional[WebsiteChecker] = None,
        reporter: Optional[Reporter] = None,
        max_q: int = 8000,
    ):
        base = report_url.rstrip("/")
        self.logs_url = f"{base}{LOGS_PATH}{app_name}"
        self.health_url = f"{base}{HEALTH_PATH}{app_name}"
        self.websites = list(websites)
        self.interval = interval
        self.probe_timeout = probe_timeout
        if checker is None:
            checker = check_website if probe_timeout is None else functools.partial(check_website, timeout=probe_timeout)
        self.checker = checker
        self.reporter = reporter
        self.q: "queue.Queue[str]" = queue.Queue(maxsize=max_q)
        self.stopped = threading.Event()
        threading.Thread(target=self._worker, name="mond-log-shipper", daemon=True).start()

    # ----------------------------
    # Logs
    # ----------------------------
    def emit(self, line: str) -> None:
        try:
            self.q.put_nowait(line)
        except queue.Full:
            # drop under pressure
            logger.warning("log queue full, dropping line")

    def _worker(self):
        while True:
            line = self.q.get()
            try:
                report_raw_log(self.logs_url, line, reporter=self.reporter)
            except ReportingError as e:
                logger.warning("problem reporting log line: %s", e)
            finally:
                self.q.task_done()

    def watch_output(self, stream: Iterable[str]) -> None:
        for line in stream:
            line = line.rstrip("\r\n")
            if not line:
                continue
            self.emit(line)

    def start_command(self, command: str) -> subprocess.Popen:
        proc = subprocess.Popen(
            shlex.split(command),
            stdout=subprocess.PIPE,
            text=True,
            encoding="utf-8",
            errors="replace",
            bufsize=1,
        )
        logger.info("started %r (pid %s), shipping stdout to %s", command, proc.pid, self.logs_url)
        threading.Thread(target=self.watch_output, args=(proc.stdout,), name="mond-stdout", daemon=True).start()
        return proc

    # ----------------------------
    # Health
    # ----------------------------
    def run_health_round(self) -> Dict[str, HealthCheck]:
        results = check_websites(self.checker, self.websites, timeout=self.probe_timeout)
        for url, check in results.items():
            try:
                report_health_check(self.reporter or report, self.health_url, check)
            except ReportingError as e:
                logger.warning("problem reporting health of %s: %s", url, e)
                continue
            logger.info("reported %s=%s", url, check.status)
        return results

    def run(self) -> None:
        """Tick until stop() is called. A round already in flight is finished, not cancelled."""
        logger.info("reporting health of %s to %s every %ss", self.websites, self.health_url, self.interval)
        while not self.stopped.wait(self.interval):
            self.run_health_round()

    def stop(self) -> None:
        self.stopped.set()
