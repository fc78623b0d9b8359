"""
Service Factory
Centralizes wiring of the catalog, progress store, scheduler and trigger engine.
"""

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass

from learnloop.application.algorithms import IntervalAlgorithm, get_algorithm
from learnloop.application.catalog import DeckCatalog
from learnloop.application.config import AppConfig
from learnloop.application.progress_store import ProgressStore
from learnloop.application.review_service import ReviewService
from learnloop.application.scheduler import ReviewScheduler
from learnloop.application.trigger_engine import TriggerEngine
from learnloop.domain.ports import SnapshotStore
from learnloop.infrastructure.catalog_files import YamlCategoryStore, YamlDeckStore
from learnloop.infrastructure.snapshot_store import JsonSnapshotStore

logger = logging.getLogger(__name__)


@dataclass
class Services:
    config: AppConfig
    catalog: DeckCatalog
    progress: ProgressStore
    algorithm: IntervalAlgorithm
    scheduler: ReviewScheduler
    engine: TriggerEngine
    reviews: ReviewService


def get_catalog(config: AppConfig) -> DeckCatalog:
    """Returns a DeckCatalog backed by the configured deck and category files, already loaded."""
    catalog = DeckCatalog(
        deck_store=YamlDeckStore(
            user_dir=config.decks_dir,
            builtin_dir=config.builtin_decks_dir,
            tombstones_file=config.tombstones_file,
        ),
        category_store=YamlCategoryStore(config.categories_file),
    )
    catalog.load()
    return catalog


def build_services(
    config: AppConfig,
    snapshots: SnapshotStore | None = None,
    clock: Callable[[], float] = time.time,
) -> Services:
    """
    Returns every service wired together for one process.

    `snapshots` defaults to JSON files under config.progress_dir.
    """
    catalog = get_catalog(config)
    progress = ProgressStore(snapshots or JsonSnapshotStore(config.progress_dir), clock=clock)
    algorithm = get_algorithm(config.algorithm)
    scheduler = ReviewScheduler(catalog, progress, clock=clock)
    engine = TriggerEngine(config.triggers, scheduler, progress, clock=clock)
    reviews = ReviewService(progress, algorithm, catalog=catalog, clock=clock)

    logger.debug(f"Services ready: algorithm={algorithm.name}, data_dir={config.data_dir}")
    return Services(
        config=config,
        catalog=catalog,
        progress=progress,
        algorithm=algorithm,
        scheduler=scheduler,
        engine=engine,
        reviews=reviews,
    )
