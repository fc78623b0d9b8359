"""Helpers shared by the CLI and the HTTP server."""

from dataclasses import asdict
from typing import Any

from learnloop.application.config import AppConfig, resolve_config
from learnloop.domain.models import Card, ReviewState
from learnloop.domain.triggers import Fired, TriggerResult


def _resolve_with_overrides(**kwargs: Any) -> AppConfig:
    """Build config from CLI/request values, ignoring the ones left unset."""
    return resolve_config({k: v for k, v in kwargs.items() if v is not None})


def card_to_dict(card: Card) -> dict[str, Any]:
    return {"id": card.id, "front": card.front, "back": card.back, "tags": list(card.tags)}


def state_to_dict(state: ReviewState) -> dict[str, Any]:
    return {
        "card_id": state.card_id,
        "interval_days": state.interval_days,
        "ease_factor": round(state.ease_factor, 4),
        "repetitions": state.repetitions,
        "last_reviewed_at": state.last_reviewed_at,
        "next_due_at": state.next_due_at,
    }


def result_to_dict(result: TriggerResult) -> dict[str, Any]:
    if isinstance(result, Fired):
        return {
            "fired": True,
            "kind": result.kind.value,
            "card": card_to_dict(result.card),
            "review_state": state_to_dict(result.review_state),
        }
    return {
        "fired": False,
        "kind": result.kind.value,
        "reason": result.reason.value,
        "stats": asdict(result.stats) if result.stats is not None else None,
    }
