import logging
import signal
import sys

import uvicorn

from mond.agent import MondAgent
from mond.config import AgentSettings, CollectorSettings

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _setup_logging(level: str):
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)


def main():
    settings = CollectorSettings.from_env()
    _setup_logging(settings.log_level)

    uvicorn.run(
        "mond.server:create_app_from_env",
        factory=True,
        host=settings.host,
        port=settings.port,
        reload=settings.reload,
        log_level=settings.log_level,
    )


def agent_main(argv=None):
    settings = AgentSettings.from_env(sys.argv[1:] if argv is None else argv)
    _setup_logging(settings.log_level)
    log = logging.getLogger("mond.agent")

    if not settings.report_url:
        log.error("no collector url given: pass REPORT_URL [WEBSITE...] or set MOND_REPORT_URL")
        return 2

    agent = MondAgent(
        settings.report_url,
        settings.app_name,
        settings.websites,
        interval=settings.interval_s,
        probe_timeout=settings.probe_timeout_s,
    )
    signal.signal(signal.SIGTERM, lambda *_: agent.stop())

    proc = agent.start_command(settings.start_cmd) if settings.start_cmd else None
    try:
        agent.run()
    except KeyboardInterrupt:
        agent.stop()
    finally:
        log.info("quit")
        if proc is not None and proc.poll() is None:
            proc.terminate()
    return 0
