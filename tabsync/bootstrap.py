"""Assemble the sync engine around one ``BrowserApi`` binding."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from tabsync.config import AppConfig, load_config
from tabsync.core.logging_utils import configure_logging
from tabsync.infrastructure.messaging import EventBus
from tabsync.sync import SyncOrchestrator
from tabsync.workspaces import WindowWorkspaceLinks, WorkspacesService

if TYPE_CHECKING:
    from tabsync.adapters.browser.protocols import BrowserApi

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Engine:
    config: AppConfig
    bus: EventBus
    links: WindowWorkspaceLinks
    orchestrator: SyncOrchestrator
    service: WorkspacesService


def create_engine(
    browser: BrowserApi, config: AppConfig | None = None, *, setup_logging: bool = True
) -> Engine:
    """Build the engine; the binding publishes browser events on ``engine.bus``.

    Configuration comes from the environment unless ``config`` is given, and
    logging is set up from its ``runtime`` section unless ``setup_logging`` is
    False.
    """
    cfg = config or load_config()
    if setup_logging:
        configure_logging(cfg.runtime)

    bus = EventBus()
    links = WindowWorkspaceLinks(browser)
    orchestrator = SyncOrchestrator(browser, links, cfg.sync, bus)
    service = WorkspacesService(browser, orchestrator, links)
    logger.info(
        "engine_created",
        extra={
            "debounce_ms": cfg.sync.debounce_ms,
            "batch_size": cfg.sync.batch_size,
            "log_level": cfg.runtime.log_level,
        },
    )
    return Engine(
        config=cfg, bus=bus, links=links, orchestrator=orchestrator, service=service
    )
