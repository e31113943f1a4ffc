"""
dutchbid CLI - Command Line Interface for the sealed-bid Dutch auction client

Main entry point for all CLI commands.
"""

import asyncio
import logging
from decimal import Decimal
from typing import Optional

import click
from pydantic import ValidationError

from dutchbid.core.config import load_config
from dutchbid.core.phase import Phase
from dutchbid.core.session import ActionResult, AuctionSession
from dutchbid.utils.logger import setup_logging


def _fmt(value: Optional[Decimal], places: int = 2) -> str:
    if value is None:
        return "-"
    return f"{value:,.{places}f}"


def _wallet_prompt(assume_yes: bool):
    """Confirm callback standing in for the wallet's signing prompt."""

    def confirm(label: str, tx: dict) -> bool:
        if assume_yes:
            return True
        click.echo(f"  Wallet request: {label}")
        click.echo(f"    to:  {tx.get('to')}")
        click.echo(f"    gas: {tx.get('gas')}")
        return click.confirm("  Sign and send?", default=False)

    return confirm


def _session(ctx) -> AuctionSession:
    return AuctionSession.from_config(ctx.obj["config"], confirm=_wallet_prompt(ctx.obj["yes"]))


def _report(session: AuctionSession, result: Optional[ActionResult] = None) -> None:
    for note in session.drain_notifications():
        icon = {"success": "✅", "error": "❌", "warning": "⚠️ ", "info": "ℹ️ "}.get(note.level, "-")
        click.echo(f"{icon} {note.message}")
    if result is not None and not result.ok and not result.declined:
        raise click.exceptions.Exit(1)


def _echo_view(session: AuctionSession) -> None:
    view = session.view
    snapshot = view.snapshot

    click.echo("Auction Status")
    click.echo("-" * 40)
    click.echo(f"  Phase:           {view.phase.value if view.phase else '-'}")
    click.echo(f"  Time remaining:  {view.time_remaining or '-'}")
    if view.clearing_price is not None:
        label = "final" if view.clearing_price.final else "indicative"
        click.echo(f"  Clearing price:  ${_fmt(view.clearing_price.price)} ({label})")
    if snapshot is not None:
        click.echo(f"  Token supply:    {_fmt(snapshot.token_supply, 0)}")
        click.echo(f"  Floor price:     ${_fmt(snapshot.floor_price)}")
    if session.wallet.is_connected:
        click.echo(f"  Bidder:          {session.wallet.address}")
        click.echo(f"  Balance:         ${_fmt(view.balance)}")
        click.echo(f"  Bids:            {len(view.bids)}")
    if view.phase == Phase.CLAIMING and view.allocation is not None:
        click.echo(f"  Allocation:      {_fmt(view.allocation.allocated_tokens)} tokens")
        click.echo(f"  Refund:          ${_fmt(view.allocation.refund_due)}")
        click.echo(f"  Claimed:         {'yes' if view.allocation.claimed else 'no'}")


def _echo_bids(session: AuctionSession) -> None:
    if not session.view.bids:
        click.echo("No bids.")
        return
    click.echo(f"Your Bids ({len(session.view.bids)})")
    click.echo("-" * 40)
    for bid in session.view.bids:
        click.echo(f"  #{bid.index}  ${_fmt(bid.price)}  amount: {bid.quantity} tokens")


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.option("--env-file", default=None, help="Load DUTCHBID_* settings from this .env file")
@click.option("--yes", "-y", is_flag=True, help="Sign transactions without prompting")
@click.option("--log-dir", default=None, help="Also write logs to dutchbid.log in this directory")
@click.version_option(version="0.1.0")
@click.pass_context
def cli(ctx, debug, env_file, yes, log_dir):
    """Sealed-bid Dutch auction client with encrypted bid quantities"""
    level = logging.DEBUG if debug else logging.WARNING
    setup_logging(level=level, log_dir=log_dir, log_to_file=log_dir is not None)

    ctx.ensure_object(dict)
    try:
        ctx.obj["config"] = load_config(env_file)
    except ValidationError as e:
        raise click.ClickException(f"Invalid configuration:\n{e}")
    ctx.obj["yes"] = yes


# =============================================================================
# Read Commands
# =============================================================================


@cli.command("status")
@click.pass_context
def status(ctx):
    """Show auction phase, countdown, clearing price and your position"""

    async def run():
        session = _session(ctx)
        try:
            await session.refresh_all()
            _echo_view(session)
        finally:
            await session.stop()

    asyncio.run(run())


@cli.command("bids")
@click.pass_context
def bids(ctx):
    """List your bids (quantities from other sessions show as unknown)"""

    async def run():
        session = _session(ctx)
        try:
            if not session.wallet.is_connected:
                raise click.ClickException("No signer configured (DUTCHBID_PRIVATE_KEY)")
            await session.scheduler.run_cycle("bids")
            _echo_bids(session)
        finally:
            await session.stop()

    asyncio.run(run())


@cli.command("watch")
@click.option("--every", default=5.0, help="Seconds between status prints")
@click.pass_context
def watch(ctx, every):
    """Poll the auction continuously until interrupted"""

    async def run():
        session = _session(ctx)
        session.start()
        try:
            while True:
                await asyncio.sleep(every)
                click.echo()
                _echo_view(session)
                _report(session)
        finally:
            await session.stop()

    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        click.echo("\nStopped.")


# =============================================================================
# Bidder Commands
# =============================================================================


@cli.command("bid")
@click.option("--price", required=True, help="Bid price per token")
@click.option("--quantity", required=True, help="Number of tokens (whole number)")
@click.pass_context
def bid(ctx, price, quantity):
    """Place an encrypted bid"""

    async def run():
        session = _session(ctx)
        try:
            await session.initialize_provider()
            try:
                pending = session.set_pending(price, quantity)
            except ValueError as e:
                raise click.BadParameter(str(e))

            click.echo(f"🔐 Bid: {pending.quantity} tokens @ ${pending.price}")
            click.echo(f"   Total to transfer: ${_fmt(pending.total_cost)}")
            result = await session.place_bid()
            await session.scheduler.drain()
            _report(session, result)
        finally:
            await session.stop()

    asyncio.run(run())


@cli.command("cancel")
@click.argument("index", type=int)
@click.pass_context
def cancel(ctx, index):
    """Cancel your bid at INDEX"""

    async def run():
        session = _session(ctx)
        try:
            result = await session.cancel_bid(index)
            _report(session, result)
        finally:
            await session.stop()

    asyncio.run(run())


@cli.command("claim")
@click.pass_context
def claim(ctx):
    """Claim allocated tokens and refund"""

    async def run():
        session = _session(ctx)
        try:
            await session.refresh_all()
            if session.view.allocation is not None:
                click.echo(f"  Allocation: {_fmt(session.view.allocation.allocated_tokens)} tokens")
                click.echo(f"  Refund:     ${_fmt(session.view.allocation.refund_due)}")
            result = await session.claim()
            await session.scheduler.run_cycle("allocation")
            _report(session, result)
        finally:
            await session.stop()

    asyncio.run(run())


# =============================================================================
# Admin Commands
# =============================================================================


@cli.group()
def admin():
    """Administrative commands"""
    pass


@admin.command("finalize")
@click.pass_context
def admin_finalize(ctx):
    """Finalize the clearing price"""

    async def run():
        session = _session(ctx)
        try:
            result = await session.finalize_prices()
            _report(session, result)
        finally:
            await session.stop()

    asyncio.run(run())


if __name__ == "__main__":
    cli()
