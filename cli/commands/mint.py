#!/usr/bin/env python3
"""
Minting Commands for NFTMint CLI

Commands for minting a batch of assets as ledger records.
"""

import json
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import click

from minting.jobs import MintRequest

from ..context import CLIContext, handle_cli_error, pass_context
from ..output import summarize_batch
from ..services import build_mint_queue


def default_description(name: str) -> str:
    return f"Description for {name}"


def load_manifest(manifest_file: str) -> List[Dict[str, Any]]:
    """
    Load a batch manifest.

    The manifest is a JSON list of {"file", "name", "description"} objects;
    relative file paths are resolved against the manifest's directory.
    """
    path = Path(manifest_file)
    try:
        with open(path, 'r') as f:
            entries = json.load(f)
    except json.JSONDecodeError as e:
        raise click.FileError(manifest_file, hint=f"Invalid JSON: {e}")

    if not isinstance(entries, list):
        raise click.BadParameter("Manifest must be a JSON list", param_hint='--manifest')

    items = []
    for i, entry in enumerate(entries):
        if not isinstance(entry, dict) or 'file' not in entry:
            raise click.BadParameter(f"Manifest entry {i} needs a 'file' key", param_hint='--manifest')
        file_path = Path(entry['file'])
        if not file_path.is_absolute():
            file_path = path.parent / file_path
        items.append({
            'file': file_path,
            'name': entry.get('name'),
            'description': entry.get('description')
        })
    return items


def build_requests(files: Tuple[str, ...], names: Tuple[str, ...], descriptions: Tuple[str, ...],
                   manifest: Optional[str]) -> List[MintRequest]:
    """Turn command-line files (or a manifest) into mint requests."""
    if manifest:
        if files:
            raise click.UsageError("Pass either FILES or --manifest, not both")
        items = load_manifest(manifest)
    else:
        if names and len(names) != len(files):
            raise click.BadParameter(f"Got {len(names)} names for {len(files)} files",
                                     param_hint='--name')
        if descriptions and len(descriptions) != len(files):
            raise click.BadParameter(f"Got {len(descriptions)} descriptions for {len(files)} files",
                                     param_hint='--description')
        items = [
            {
                'file': Path(f),
                'name': names[i] if names else None,
                'description': descriptions[i] if descriptions else None
            }
            for i, f in enumerate(files)
        ]

    if not items:
        raise click.UsageError("Nothing to mint: pass one or more FILES or --manifest")

    requests = []
    for item in items:
        file_path = item['file']
        if not file_path.is_file():
            raise click.FileError(str(file_path), hint="File not found")
        name = item['name'] or file_path.name
        requests.append(MintRequest(
            asset=file_path.read_bytes(),
            display_name=name,
            description=item['description'] if item['description'] is not None else default_description(name),
            filename=file_path.name
        ))
    return requests


@click.group()
@pass_context
def mint(ctx: CLIContext):
    """
    Minting commands.

    Upload assets and metadata to IPFS and mint them as records on the
    configured contract.
    """
    ctx.logger.debug("Mint command group invoked")


@mint.command('batch')
@click.argument('files', nargs=-1, type=click.Path(exists=True, dir_okay=False))
@click.option('--name', 'names', multiple=True,
              help='Display name per file, in file order (default: file name)')
@click.option('--description', 'descriptions', multiple=True,
              help='Description per file, in file order')
@click.option('--manifest', type=click.Path(exists=True, dir_okay=False),
              help='JSON list of {"file", "name", "description"} entries')
@click.option('--dry-run', is_flag=True, help='Validate the batch without uploading or minting')
@pass_context
@handle_cli_error
def batch(ctx: CLIContext, files: Tuple[str, ...], names: Tuple[str, ...],
          descriptions: Tuple[str, ...], manifest: Optional[str], dry_run: bool):
    """
    Mint a batch of files.

    Every file is uploaded, wrapped in a metadata document and minted in
    order. A failed item does not stop the batch; the command exits with
    status 1 if any item failed.

    Examples:
        nftmint mint batch art1.png art2.png --name "Dawn" --name "Dusk"
        nftmint mint batch --manifest batch.json
    """
    requests = build_requests(files, names, descriptions, manifest)
    ctx.logger.info(f"Prepared {len(requests)} mint requests")

    if dry_run:
        plan = [
            {
                'index': i,
                'name': r.display_name,
                'file': r.filename,
                'bytes': len(r.asset),
                'description': r.description
            }
            for i, r in enumerate(requests)
        ]
        ctx.output(plan)
        click.echo(f"Dry run: {len(requests)} items validated, nothing minted", err=True)
        return

    queue = build_mint_queue(ctx.config)
    try:
        report = queue.submit_batch(requests)
    except KeyboardInterrupt:
        queue.cancel()
        raise
    finally:
        queue.close()

    data = report.to_dict()
    if ctx.output_format == 'table':
        ctx.output(summarize_batch(data))
        click.echo(f"{data['succeeded']} confirmed, {data['failed']} failed", err=True)
    else:
        ctx.output(data)

    if not report.all_succeeded:
        sys.exit(1)
