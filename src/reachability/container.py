"""Dependency injection container for the reachability component.

The container holds one provider per component. The ledger, registry client,
reporter and scheduler are singletons within a container, so every consumer
shares the same ledger.

Usage:
    container = create_container(prober=my_prober)
    reporter = container.reporter()

    # Tests swap collaborators before anything is resolved
    container.registry.override(providers.Object(MockRegistryClient()))
"""

from __future__ import annotations

from collections.abc import Callable

from dependency_injector import containers, providers

from reachability.config import Config, load_config
from reachability.ledger import ReachabilityLedger
from reachability.registry_client import HttpRegistryClient, RegistryClient
from reachability.reporter import ReachabilityReporter
from reachability.scheduler import PeerProber, RetestScheduler


class ReachabilityContainer(containers.DeclarativeContainer):
    """Root container for the reachability component.

    ReachabilityContainer
    ├── config (Config)
    ├── prober (PeerProber)
    ├── registry (RegistryClient)
    ├── ledger (ReachabilityLedger)
    ├── reporter (ReachabilityReporter)
    └── scheduler (RetestScheduler)

    Every provider is a ``Dependency()`` that ``create_container()`` overrides.
    """

    config: providers.Dependency[Config] = providers.Dependency()
    prober: providers.Dependency[PeerProber] = providers.Dependency()
    registry: providers.Dependency[RegistryClient] = providers.Dependency()
    ledger: providers.Dependency[ReachabilityLedger] = providers.Dependency()
    reporter: providers.Dependency[ReachabilityReporter] = providers.Dependency()
    scheduler: providers.Dependency[RetestScheduler] = providers.Dependency()


def create_registry_client(config: Config) -> HttpRegistryClient:
    """Create the HTTP registry client from configuration.

    Raises:
        ValueError: If ``REACHABILITY_REGISTRY_URL`` is not configured.
    """
    if not config.registry_configured:
        raise ValueError("REACHABILITY_REGISTRY_URL must be set to report to the registry")
    return HttpRegistryClient(config.registry_url, timeout=config.registry_timeout)


def create_ledger(
    config: Config, time_func: Callable[[], float] | None = None
) -> ReachabilityLedger:
    return ReachabilityLedger(config=config, time_func=time_func)


def create_reporter(
    ledger: ReachabilityLedger, registry: RegistryClient
) -> ReachabilityReporter:
    return ReachabilityReporter(ledger, registry)


def create_scheduler(
    ledger: ReachabilityLedger,
    reporter: ReachabilityReporter,
    prober: PeerProber,
) -> RetestScheduler:
    return RetestScheduler(ledger, reporter, prober)


def create_container(
    prober: PeerProber,
    config: Config | None = None,
    registry: RegistryClient | None = None,
    time_func: Callable[[], float] | None = None,
) -> containers.DynamicContainer:
    """Create and configure the container.

    Args:
        prober: Probe implementation used by the scheduler.
        config: Optional configuration. If not provided, loads from environment.
        registry: Optional registry client. If not provided, an
            ``HttpRegistryClient`` is created lazily from the configuration.
        time_func: Optional clock for the ledger.

    Returns:
        A ``DynamicContainer`` instance of ``ReachabilityContainer``; instantiating a
        declarative container returns a dynamic copy of its providers.
    """
    if config is None:
        config = load_config()

    container = ReachabilityContainer()
    container.config.override(providers.Object(config))
    container.prober.override(providers.Object(prober))

    if registry is None:
        container.registry.override(providers.Singleton(create_registry_client, config))
    else:
        container.registry.override(providers.Object(registry))

    container.ledger.override(providers.Singleton(create_ledger, config, time_func))
    container.reporter.override(
        providers.Singleton(create_reporter, container.ledger, container.registry)
    )
    container.scheduler.override(
        providers.Singleton(
            create_scheduler,
            container.ledger,
            container.reporter,
            container.prober,
        )
    )

    return container
