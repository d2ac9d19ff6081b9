#!/usr/bin/env python3
"""
Gallery Commands for NFTMint CLI

Commands for rebuilding and inspecting the records of the configured contract.
"""

from typing import Optional

import click

from ..context import CLIContext, handle_cli_error, pass_context
from ..output import summarize_records
from ..services import build_scanner


@click.group()
@pass_context
def gallery(ctx: CLIContext):
    """
    Gallery commands.

    Discover the records of the contract with their owners, metadata and
    transfer history.
    """
    ctx.logger.debug("Gallery command group invoked")


@gallery.command('scan')
@click.option('--max-attempts', type=click.IntRange(min=1),
              help='Identifiers to probe at most (probe strategy only)')
@click.option('--max-consecutive-failures', type=click.IntRange(min=1),
              help='Misses in a row that end a probe scan')
@click.option('--strategy', type=click.Choice(['auto', 'countable', 'probe']), default='auto',
              help='Force the enumeration or probe strategy instead of inspecting the ABI')
@click.option('--no-history', is_flag=True, help='Skip transfer history lookups')
@pass_context
@handle_cli_error
def scan(ctx: CLIContext, max_attempts: Optional[int], max_consecutive_failures: Optional[int],
         strategy: str, no_history: bool):
    """
    Rebuild the gallery of the configured contract.

    Examples:
        nftmint gallery scan
        nftmint -o json gallery scan --strategy probe --max-consecutive-failures 20
    """
    scanner = build_scanner(
        ctx.config,
        capability=None if strategy == 'auto' else strategy,
        with_history=not no_history,
        max_attempts=max_attempts,
        max_consecutive_failures=max_consecutive_failures
    )
    with scanner:
        try:
            records = scanner.scan()
        except KeyboardInterrupt:
            scanner.cancel()
            raise

    data = [record.to_dict() for record in records]
    if ctx.output_format == 'table':
        ctx.output(summarize_records(data))
        click.echo(f"{len(records)} records found ({scanner.state.strategy}, "
                   f"{scanner.state.total_attempts} lookups)", err=True)
    else:
        ctx.output(data)


@gallery.command('show')
@click.argument('record_id', type=click.IntRange(min=0))
@click.option('--no-history', is_flag=True, help='Skip transfer history lookup')
@pass_context
@handle_cli_error
def show(ctx: CLIContext, record_id: int, no_history: bool):
    """Show one record with its metadata and transfer history."""
    with build_scanner(ctx.config, with_history=not no_history) as scanner:
        record = scanner.fetch_single(record_id)

    if record is None:
        raise click.ClickException(f"Record {record_id} does not exist")

    data = record.to_dict()
    if ctx.output_format == 'table':
        metadata = data.pop('metadata') or {}
        history = data.pop('history')
        data['name'] = metadata.get('name')
        data['description'] = metadata.get('description')
        data['image'] = metadata.get('image')
        ctx.output(data)
        if history:
            click.echo("")
            ctx.output(history)
    else:
        ctx.output(data)
