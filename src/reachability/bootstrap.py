"""Bootstrap and dependency wiring for the reachability component.

This module is the composition root: it loads configuration, configures
logging, and resolves the ledger, registry client, reporter and scheduler
from the dependency injection container. The ledger is a container singleton
injected into everything that needs it, never a module-level global.

Usage:
    context = bootstrap(prober=my_prober)
    context.scheduler.start()

    # From the inbound ping handlers
    context.ledger.record_incoming_ping(Channel.HTTP)

    # From the regular probe loop
    context.reporter.process_test_result(peer, Channel.HTTP, ok)

    context.close()
"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

from reachability.config import Config, load_config
from reachability.container import create_container, create_registry_client
from reachability.ledger import ReachabilityLedger
from reachability.logging import get_logger, setup_logging
from reachability.registry_client import HttpRegistryClient, RegistryClient
from reachability.reporter import ReachabilityReporter
from reachability.scheduler import PeerProber, RetestScheduler

logger = get_logger(__name__)


class ReachabilityContext:
    """Container for the wired reachability components."""

    def __init__(
        self,
        config: Config,
        ledger: ReachabilityLedger,
        registry: RegistryClient,
        reporter: ReachabilityReporter,
        scheduler: RetestScheduler,
    ) -> None:
        self.config = config
        self.ledger = ledger
        self.registry = registry
        self.reporter = reporter
        self.scheduler = scheduler

    def close(self) -> None:
        """Stop the scheduler and release the registry client."""
        self.scheduler.stop()
        if isinstance(self.registry, HttpRegistryClient):
            self.registry.close()


def bootstrap(
    prober: PeerProber,
    config: Config | None = None,
    registry: RegistryClient | None = None,
    env_file: Path | None = None,
    time_func: Callable[[], float] | None = None,
) -> ReachabilityContext:
    """Load configuration and wire all components together.

    Args:
        prober: Probe implementation used for retests.
        config: Configuration. If not provided, loaded from the environment.
        registry: Registry client. If not provided, an ``HttpRegistryClient``
            is created from the configuration.
        env_file: Optional .env file passed to ``load_config``.
        time_func: Optional clock shared by the ledger.

    Returns:
        The assembled ``ReachabilityContext``.
    """
    if config is None:
        config = load_config(env_file)

    setup_logging(
        config.log_level,
        json_format=config.log_json,
        diagnostic_tags=config.diagnostic_tags,
    )

    container = create_container(prober, config=config, registry=registry, time_func=time_func)
    scheduler = container.scheduler()

    logger.info(
        "Reachability tracking ready: grace period %.0f min, self-health threshold %.0fs",
        config.grace_period / 60,
        config.max_time_without_ping,
    )

    return ReachabilityContext(
        config=config,
        ledger=container.ledger(),
        registry=container.registry(),
        reporter=container.reporter(),
        scheduler=scheduler,
    )


__all__ = [
    "ReachabilityContext",
    "bootstrap",
    "create_registry_client",
]
