#!/usr/bin/env python3
"""Reskin CLI - themed deck reskins with generated art."""

import asyncio
import json
import logging
from pathlib import Path

import click

from reskin import __version__
from reskin.errors import ReskinError

logger = logging.getLogger(__name__)


def _make_app(ctx: click.Context):
    from reskin.app import ReskinApp
    from reskin.config import load_config

    if "app" not in ctx.obj:
        ctx.obj["app"] = ReskinApp(load_config(ctx.obj.get("config_path")))
    return ctx.obj["app"]


def _run(ctx: click.Context, call):
    """Run one entry point, wait for its background jobs and return the result."""
    app = _make_app(ctx)

    async def runner():
        result = await call(app)
        await app.drain()
        return result

    try:
        return asyncio.run(runner())
    except ReskinError as e:
        raise click.ClickException(f"{e.code}: {e.reason}")


def _echo_json(data: dict) -> None:
    click.echo(json.dumps(data, indent=2, default=str, ensure_ascii=False))


@click.group()
@click.version_option(version=__version__)
@click.option("--config", "config_path", type=click.Path(dir_okay=False), help="Path to reskin.yml")
@click.option("-v", "--verbose", is_flag=True, help="Debug logging")
@click.pass_context
def cli(ctx, config_path, verbose):
    """Reskin - re-theme a Magic deck into another universe.

    Create a deck from a decklist, theme its cards, generate art and
    composite themed card images.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path


@cli.command()
@click.option("--title", required=True, help="Deck title")
@click.argument("decklist", type=click.File("r", encoding="utf-8"))
@click.pass_context
def create(ctx, title, decklist):
    """Create a deck from a decklist file ("-" for stdin)."""
    text = decklist.read()
    _echo_json(_run(ctx, lambda app: app.create_deck(title, text)))


@cli.command()
@click.argument("deck_id")
@click.pass_context
def delete(ctx, deck_id):
    """Delete a deck and its themed cards."""
    app = _make_app(ctx)
    try:
        _echo_json(app.delete_deck(deck_id))
    except ReskinError as e:
        raise click.ClickException(f"{e.code}: {e.reason}")


@cli.command()
@click.argument("deck_id")
@click.option("--universe", required=True, help="Theme universe, e.g. 'Studio Ghibli'")
@click.option("--style", "art_style", required=True, help="Art style brief")
@click.option("--confirm", is_flag=True, help="Discard previously themed cards")
@click.pass_context
def theme(ctx, deck_id, universe, art_style, confirm):
    """Run a theming pass over a deck."""
    _echo_json(_run(ctx, lambda app: app.start_theming(deck_id, universe, art_style, confirm)))


@cli.command()
@click.argument("deck_id")
@click.option("--force", is_flag=True, help="Regenerate art that already exists")
@click.pass_context
def images(ctx, deck_id, force):
    """Generate themed art for every eligible card."""
    _echo_json(_run(ctx, lambda app: app.generate_images(deck_id, force)))


@cli.command()
@click.argument("deck_id")
@click.argument("card_name")
@click.option("--title", required=True, help="Themed card title")
@click.option("--prompt", required=True, help="Image prompt")
@click.option("--force", is_flag=True, help="Regenerate art that already exists")
@click.pass_context
def image(ctx, deck_id, card_name, title, prompt, force):
    """Generate themed art for one card, saving title/prompt edits."""
    _echo_json(_run(ctx, lambda app: app.generate_image_for_card(deck_id, card_name, title, prompt, force)))


@cli.command()
@click.argument("deck_id")
@click.argument("card_name")
@click.option("--title", required=True, help="Themed card title")
@click.option("--force", is_flag=True, help="Recomposite even if unchanged")
@click.option("--out", "out_path", type=click.Path(dir_okay=False), help="Write the composed PNG here")
@click.pass_context
def composite(ctx, deck_id, card_name, title, force, out_path):
    """Composite the themed card image for one card."""
    from reskin.cards.sources import decode_data_url

    result = _run(ctx, lambda app: app.generate_composite(deck_id, card_name, title, force))
    _echo_json(result)

    card = _make_app(ctx).store.get_themed_card(deck_id.strip(), card_name.strip())
    if card is None:
        return
    if card.composite_status == "failed":
        raise click.ClickException(f"Composite failed: {card.composite_error}")
    if out_path and card.composite_url:
        png = decode_data_url(card.composite_url)
        if png is None:
            raise click.ClickException("Composite is not an inline image.")
        Path(out_path).parent.mkdir(parents=True, exist_ok=True)
        Path(out_path).write_bytes(png)
        click.echo(f"Generated: {out_path}")


@cli.command()
@click.argument("deck_id", required=False)
@click.pass_context
def show(ctx, deck_id):
    """List decks, or show one deck's themed cards."""
    store = _make_app(ctx).store

    if not deck_id:
        for deck in store.list_decks():
            click.echo(f"{deck.id}  {deck.theming_status:<10} {deck.title}")
        return

    deck = store.get_deck(deck_id)
    if deck is None:
        raise click.ClickException("deck-not-found: Deck not found.")

    click.echo(f"{deck.title} [{deck.theming_status}]")
    if deck.theme_universe:
        click.echo(f"Universe: {deck.theme_universe}")
    if deck.theming_error:
        click.echo(f"Error: {deck.theming_error}")
    click.echo("")

    for card in store.list_themed_cards(deck_id):
        themed = card.themed_name or "-"
        click.echo(
            f"{card.quantity}x {card.original_name} -> {themed}  "
            f"[{card.status}] art={card.image_status} composite={card.composite_status}"
        )
        error = card.error_message or card.image_error or card.composite_error
        if error:
            click.echo(f"    {error}")


@cli.command()
@click.option("--frame", required=True, type=click.Path(exists=True, dir_okay=False), help="Base card image")
@click.option("--art", required=True, type=click.Path(exists=True, dir_okay=False), help="Themed art image")
@click.option("--title", required=True, help="Themed card title")
@click.option("--out", "out_path", required=True, type=click.Path(dir_okay=False), help="Output PNG path")
@click.option("--font", type=click.Path(exists=True, dir_okay=False), help="Title font file")
def compose(frame, art, title, out_path, font):
    """Composite local frame and art files without a deck."""
    from reskin.cards.composite import CardCompositor

    try:
        png = CardCompositor(font_path=font).compose(Path(frame).read_bytes(), Path(art).read_bytes(), title)
    except ReskinError as e:
        raise click.ClickException(str(e))

    Path(out_path).parent.mkdir(parents=True, exist_ok=True)
    Path(out_path).write_bytes(png)
    click.echo(f"Generated: {out_path}")


@cli.group()
def settings():
    """Stored Gemini API key."""
    pass


@settings.command("set-key")
@click.option("--key", prompt=True, hide_input=True, help="Gemini API key")
@click.pass_context
def settings_set_key(ctx, key):
    """Store a Gemini API key."""
    try:
        _echo_json(_make_app(ctx).set_api_key(key))
    except ReskinError as e:
        raise click.ClickException(f"{e.code}: {e.reason}")


@settings.command("clear-key")
@click.pass_context
def settings_clear_key(ctx):
    """Remove the stored Gemini API key."""
    _echo_json(_make_app(ctx).clear_api_key())


@settings.command("show")
@click.pass_context
def settings_show(ctx):
    """Show whether a key is stored (masked)."""
    _echo_json(_make_app(ctx).public_settings())


if __name__ == "__main__":
    cli()
