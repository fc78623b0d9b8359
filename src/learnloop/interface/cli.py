"""learnloop CLI — root commands and subgroup registration."""

import json
import logging
import sys
from dataclasses import asdict
from pathlib import Path
from typing import Annotated

import typer

from learnloop.application.factory import Services, build_services, get_catalog
from learnloop.application.id_service import assign_card_ids
from learnloop.domain.errors import LearnloopError
from learnloop.domain.triggers import TriggerKind
from learnloop.interface._common import (
    _resolve_with_overrides,
    card_to_dict,
    result_to_dict,
    state_to_dict,
)

# ---------------------------------------------------------------------------
# Root app
# ---------------------------------------------------------------------------

app = typer.Typer(
    help="learnloop: event-triggered spaced repetition.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(levelname)s:%(name)s:%(message)s",
    stream=sys.stderr,
)
logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Register subgroups
# ---------------------------------------------------------------------------

config_app = typer.Typer(help="Inspect learnloop configuration.")
app.add_typer(config_app, name="config")

decks_app = typer.Typer(help="Manage decks.", no_args_is_help=True)
app.add_typer(decks_app, name="decks")


# ---------------------------------------------------------------------------
# Global callback
# ---------------------------------------------------------------------------


@app.callback()
def main_callback(
    ctx: typer.Context,
    verbose: Annotated[
        int,
        typer.Option(
            "--verbose", "-v", count=True, help="Increase verbosity. Repeat for more detail."
        ),
    ] = 1,
    data_dir: Annotated[
        Path | None, typer.Option(help="Directory holding decks, categories and progress.")
    ] = None,
    algorithm: Annotated[
        str | None, typer.Option(help="Interval algorithm: sm2 or ladder.")
    ] = None,
):
    """Global settings for learnloop."""
    ctx.ensure_object(dict)
    ctx.obj["overrides"] = {"data_dir": data_dir, "algorithm": algorithm, "verbose": verbose}
    if verbose >= 2:
        logging.getLogger().setLevel(logging.DEBUG)


def _config(ctx: typer.Context):
    overrides = (ctx.obj or {}).get("overrides", {})
    try:
        return _resolve_with_overrides(**overrides)
    except ValueError as e:
        typer.secho(f"Invalid configuration: {e}", fg="red")
        raise typer.Exit(2) from None


def _services(ctx: typer.Context) -> Services:
    return build_services(_config(ctx))


def _fail(e: LearnloopError) -> None:
    typer.secho(f"Error: {e}", fg="red")
    raise typer.Exit(1)


# ---------------------------------------------------------------------------
# Root commands
# ---------------------------------------------------------------------------


@app.command("next")
def next_card(
    ctx: typer.Context,
    user: Annotated[str, typer.Argument(help="User id.")],
):
    """Show the card the user would be asked next (creates no progress)."""
    services = _services(ctx)
    try:
        card = services.scheduler.pick_next(user)
    except LearnloopError as e:
        _fail(e)

    if card is None:
        stats = services.scheduler.stats(user)
        if stats.total == 0:
            typer.secho("No cards available. Enable a deck first.", fg="yellow")
        else:
            typer.secho("Nothing due right now.", fg="green")
        return

    typer.echo(json.dumps(card_to_dict(card), indent=2, ensure_ascii=False))


@app.command("queue")
def queue(
    ctx: typer.Context,
    user: Annotated[str, typer.Argument(help="User id.")],
    limit: Annotated[
        int | None, typer.Option(help="Max due cards (default: max_cards_per_session).")
    ] = None,
    new_limit: Annotated[
        int | None, typer.Option(help="Max new cards (default: max_new_cards_per_session).")
    ] = None,
):
    """List the due and new cards a session would go through."""
    services = _services(ctx)
    total_cap = limit if limit is not None else services.config.max_cards_per_session
    new_cap = new_limit if new_limit is not None else services.config.max_new_cards_per_session
    try:
        due = services.scheduler.due_cards(user, total_cap)
        # new cards only fill what due cards leave of the session
        new = services.scheduler.new_cards(user, min(new_cap, total_cap - len(due)))
    except LearnloopError as e:
        _fail(e)

    if not due and not new:
        typer.secho("Nothing to review.", fg="green")
        return

    for item in due:
        typer.echo(f"due  {item.card.id:<24} {item.card.front}")
    for card in new:
        typer.echo(f"new  {card.id:<24} {card.front}")


@app.command()
def stats(
    ctx: typer.Context,
    user: Annotated[str, typer.Argument(help="User id.")],
):
    """Show review and progress counters for a user."""
    services = _services(ctx)
    try:
        review = services.scheduler.stats(user)
        progress = services.progress.stats(user)
    except LearnloopError as e:
        _fail(e)

    typer.echo(json.dumps({"review": asdict(review), "progress": asdict(progress)}, indent=2))


@app.command()
def event(
    ctx: typer.Context,
    user: Annotated[str, typer.Argument(help="User id.")],
    kind: Annotated[str, typer.Argument(help="Trigger kind, e.g. death, block_break, chat.")],
    subject: Annotated[
        str | None, typer.Option(help="Block or entity id, checked against the whitelist.")
    ] = None,
    text: Annotated[str | None, typer.Option(help="Chat message text.")] = None,
    repeat: Annotated[
        int, typer.Option(min=1, help="Send the event this many times; prints the last result.")
    ] = 1,
):
    """
    Report a behavioral event and print the trigger decision.

    Counters and cooldowns live only as long as the process; use [bold]serve[/bold]
    for long-running sessions.
    """
    services = _services(ctx)
    try:
        trigger_kind = TriggerKind.from_value(kind)
        for _ in range(repeat):
            result = services.engine.record_event(user, trigger_kind, subject=subject, text=text)
    except LearnloopError as e:
        _fail(e)

    typer.echo(json.dumps(result_to_dict(result), indent=2, ensure_ascii=False))


@app.command()
def review(
    ctx: typer.Context,
    user: Annotated[str, typer.Argument(help="User id.")],
    card: Annotated[str, typer.Argument(help="Card id.")],
    outcome: Annotated[
        str, typer.Argument(help="again/hard/good/easy (sm2) or forgot/remembered (ladder).")
    ],
):
    """Record the answer to a review."""
    services = _services(ctx)
    try:
        state = services.reviews.submit(user, card, outcome)
    except LearnloopError as e:
        _fail(e)

    typer.secho(
        f"Next review of {card} in {services.algorithm.describe(state)}.", fg="green"
    )
    typer.echo(json.dumps(state_to_dict(state), indent=2))


@app.command()
def preview(
    ctx: typer.Context,
    user: Annotated[str, typer.Argument(help="User id.")],
    card: Annotated[str, typer.Argument(help="Card id.")],
):
    """Show the next interval for each possible answer."""
    services = _services(ctx)
    try:
        intervals = services.reviews.preview(user, card)
    except LearnloopError as e:
        _fail(e)

    for label, interval in intervals.items():
        typer.echo(f"{label:<10} {interval}")


@app.command()
def reset(
    ctx: typer.Context,
    user: Annotated[str, typer.Argument(help="User id.")],
    card: Annotated[str, typer.Argument(help="Card id.")],
):
    """Forget a user's progress on one card."""
    services = _services(ctx)
    try:
        services.progress.reset(user, card)
    except LearnloopError as e:
        _fail(e)
    typer.secho(f"Reset {card} for {user}.", fg="green")


@app.command()
def serve(
    host: Annotated[str, typer.Option(help="Interface to bind.")] = "127.0.0.1",
    port: Annotated[int, typer.Option(help="Port to listen on.")] = 8777,
):
    """Run the HTTP server (keeps trigger sessions alive between events)."""
    import uvicorn

    uvicorn.run("learnloop.server:app", host=host, port=port)


# ---------------------------------------------------------------------------
# Config subgroup
# ---------------------------------------------------------------------------


@config_app.command("show")
def config_show(ctx: typer.Context):
    """Display final resolved configuration."""
    config = _config(ctx)
    d = config.model_dump(mode="json")
    d.update(
        progress_dir=str(config.progress_dir),
        decks_dir=str(config.decks_dir),
        categories_file=str(config.categories_file),
        tombstones_file=str(config.tombstones_file),
    )
    typer.echo(json.dumps(d, indent=2))


# ---------------------------------------------------------------------------
# Decks subgroup
# ---------------------------------------------------------------------------


@decks_app.command("list")
def decks_list(ctx: typer.Context):
    """List every deck with its state and card count."""
    catalog = get_catalog(_config(ctx))
    decks = catalog.all_decks()
    if not decks:
        typer.secho("No decks found.", fg="yellow")
        return

    for deck in decks:
        mark = "x" if deck.enabled else " "
        origin = "built-in" if catalog.is_builtin(deck.id) else "user"
        category = f" [{deck.category_id}]" if deck.category_id else ""
        typer.echo(f"[{mark}] {deck.id:<24} {deck.card_count:>5} cards  {origin}{category}  {deck.name}")

    deleted = catalog.deleted_builtin_ids()
    if deleted:
        typer.secho(f"Deleted built-in decks: {', '.join(deleted)}", fg="yellow")


def _set_enabled(ctx: typer.Context, deck_id: str, enabled: bool) -> None:
    catalog = get_catalog(_config(ctx))
    try:
        catalog.set_enabled(deck_id, enabled)
    except LearnloopError as e:
        _fail(e)
    typer.secho(f"Deck {deck_id} {'enabled' if enabled else 'disabled'}.", fg="green")


@decks_app.command("enable")
def decks_enable(ctx: typer.Context, deck: Annotated[str, typer.Argument(help="Deck id.")]):
    """Include a deck in reviews."""
    _set_enabled(ctx, deck, True)


@decks_app.command("disable")
def decks_disable(ctx: typer.Context, deck: Annotated[str, typer.Argument(help="Deck id.")]):
    """Exclude a deck from reviews."""
    _set_enabled(ctx, deck, False)


@decks_app.command("delete")
def decks_delete(
    ctx: typer.Context,
    deck: Annotated[str, typer.Argument(help="Deck id.")],
    force: Annotated[
        bool, typer.Option("--force", "-f", help="Bypass confirmation.")
    ] = False,
):
    """Delete a deck. Built-in decks can be restored later."""
    if not force:
        typer.confirm(f"Delete deck {deck}?", abort=True)
    catalog = get_catalog(_config(ctx))
    try:
        deleted = catalog.delete_deck(deck)
    except LearnloopError as e:
        _fail(e)
    if not deleted:
        typer.secho(f"Deck not found: {deck}", fg="red")
        raise typer.Exit(1)
    typer.secho(f"Deleted deck {deck}.", fg="green")


@decks_app.command("restore")
def decks_restore(ctx: typer.Context, deck: Annotated[str, typer.Argument(help="Deck id.")]):
    """Bring back a deleted built-in deck."""
    catalog = get_catalog(_config(ctx))
    try:
        restored = catalog.restore_deck(deck)
    except LearnloopError as e:
        _fail(e)
    if not restored:
        typer.secho(f"Deck {deck} is not a deleted built-in deck.", fg="red")
        raise typer.Exit(1)
    typer.secho(f"Restored deck {deck}.", fg="green")


@decks_app.command("assign-ids")
def decks_assign_ids(
    ctx: typer.Context,
    dry_run: Annotated[
        bool, typer.Option("--dry-run", help="Report without writing.")
    ] = False,
):
    """Give every card in the user deck files a stable id."""
    config = _config(ctx)
    count = assign_card_ids(config.decks_dir, dry_run=dry_run)
    verb = "Would assign" if dry_run else "Assigned"
    typer.secho(f"{verb} {count} card IDs.", fg="green")


if __name__ == "__main__":
    app()
