"""Service for giving every card in the user's deck files a stable id."""

import json
import logging
from pathlib import Path

import yaml  # type: ignore
from ulid import ULID

from learnloop.infrastructure.catalog_files import iter_deck_files
from learnloop.infrastructure.utils.yaml_io import dump_yaml, load_yaml

logger = logging.getLogger(__name__)


def generate_card_id() -> str:
    """Generate a stable card ID using ULID."""
    return f"card_{ULID()}"


def assign_card_ids(decks_dir: Path, dry_run: bool = False) -> int:
    """
    Scans the deck files and ensures every card has an id.
    Returns the number of IDs assigned.
    """
    ids_assigned = 0

    for file_path in iter_deck_files(decks_dir):
        try:
            data = load_yaml(file_path)
        except (OSError, UnicodeDecodeError, yaml.YAMLError) as e:
            logger.error(f"Skipping unreadable deck file {file_path}: {e}")
            continue

        if not isinstance(data, dict):
            continue

        cards = data.get("cards", [])
        if not isinstance(cards, list):
            continue

        modified = False
        for card in cards:
            if not isinstance(card, dict):
                continue

            if not card.get("id"):
                card["id"] = generate_card_id()
                modified = True
                ids_assigned += 1

        if modified:
            if not dry_run:
                if file_path.suffix.lower() == ".json":
                    file_path.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")
                else:
                    dump_yaml(data, file_path)
                logger.info(f"Assigned IDs in {file_path}")
            else:
                logger.info(f"[DRY RUN] Would assign IDs in {file_path}")

    return ids_assigned
