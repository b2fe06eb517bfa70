"""Bootstrap and dependency wiring for the ping monitor.

This module provides the startup and initialization logic, including:
- Configuration loading with CLI overrides
- Logging setup
- Target store and drop-file ingestor creation
- Probe executor and cycle scheduler assembly

The bootstrap module acts as the composition root, wiring together all
dependencies before the application starts running.
"""

from __future__ import annotations

import argparse
from dataclasses import replace
from typing import Any

from pingmonitor.config import Config, load_config
from pingmonitor.ingestion import DropFileIngestor
from pingmonitor.logging import get_logger, setup_logging
from pingmonitor.probe import ProbeExecutor
from pingmonitor.scheduler import CycleScheduler
from pingmonitor.store import TargetStore

logger = get_logger(__name__)


class BootstrapContext:
    """Container for all bootstrapped dependencies.

    Holds the components needed to create a scheduler and the HTTP API.
    """

    def __init__(
        self,
        config: Config,
        store: TargetStore,
        ingestor: DropFileIngestor | None = None,
    ) -> None:
        """Initialize the bootstrap context.

        Args:
            config: Application configuration.
            store: The shared target store.
            ingestor: Optional drop-file ingestor.
        """
        self.config = config
        self.store = store
        self.ingestor = ingestor


def apply_cli_overrides(config: Config, parsed: argparse.Namespace) -> Config:
    """Apply CLI argument overrides to the configuration.

    Args:
        config: Base configuration loaded from environment.
        parsed: Parsed command-line arguments.

    Returns:
        New Config instance with CLI overrides applied.
    """
    scheduler_overrides: dict[str, Any] = {}
    storage_overrides: dict[str, Any] = {}
    overrides: dict[str, Any] = {}

    if parsed.bypass:
        scheduler_overrides["bypass"] = True
    if parsed.no_autostart:
        scheduler_overrides["autostart"] = False
    if parsed.data_file:
        storage_overrides["data_file"] = parsed.data_file
    if parsed.drop_file:
        storage_overrides["drop_file"] = parsed.drop_file

    if scheduler_overrides:
        overrides["scheduler"] = replace(config.scheduler, **scheduler_overrides)
    if storage_overrides:
        overrides["storage"] = replace(config.storage, **storage_overrides)
    if parsed.port:
        overrides["dashboard"] = replace(config.dashboard, port=parsed.port)
    if parsed.log_level:
        overrides["logging_config"] = replace(config.logging_config, level=parsed.log_level)

    if overrides:
        return replace(config, **overrides)
    return config


def bootstrap(parsed: argparse.Namespace) -> BootstrapContext:
    """Bootstrap the application with all dependencies.

    This is the main entry point for application initialization. It:
    1. Loads and configures settings
    2. Sets up logging
    3. Loads the target store
    4. Imports any URLs waiting in the drop file

    Args:
        parsed: Parsed command-line arguments.

    Returns:
        BootstrapContext with all initialized dependencies.
    """
    config = load_config(parsed.env_file)
    config = apply_cli_overrides(config, parsed)

    setup_logging(
        config.logging_config.level,
        json_format=config.logging_config.json,
        diagnostic_tags=config.logging_config.diagnostic_tags,
    )

    store = TargetStore(config.storage.data_file)

    ingestor = None
    if config.storage.drop_file is not None:
        ingestor = DropFileIngestor(store, config.storage.drop_file)
        try:
            ingestor.pull_newly_discovered()
        except OSError as e:
            logger.error(
                "Failed to import URLs from %s: %s",
                config.storage.drop_file,
                e,
                extra={"drop_file": str(config.storage.drop_file)},
            )

    logger.info("Monitoring %d target(s)", len(store))

    return BootstrapContext(config=config, store=store, ingestor=ingestor)


def create_scheduler_from_context(
    context: BootstrapContext,
) -> tuple[CycleScheduler, ProbeExecutor]:
    """Create the probe executor and cycle scheduler from a bootstrap context.

    The probe executor owns an HTTP client that must be closed with
    ``ProbeExecutor.aclose()`` when the application exits.

    Args:
        context: Bootstrap context with all initialized dependencies.

    Returns:
        Tuple of (scheduler, probe_executor).
    """
    probe_executor = ProbeExecutor.from_config(context.config.probe, context.store)
    scheduler = CycleScheduler.from_config(
        context.config.scheduler,
        context.store,
        probe_executor,
        ingestor=context.ingestor,
    )
    if context.config.scheduler.bypass:
        logger.info("Bypass mode enabled: passes run back to back")
    return scheduler, probe_executor


# NOTE: Update this list when adding new exports to this module.
__all__ = [
    "BootstrapContext",
    "apply_cli_overrides",
    "bootstrap",
    "create_scheduler_from_context",
]
