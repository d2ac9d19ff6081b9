#!/usr/bin/env python3
"""
NFTMint - Command Line Interface

Mint batches of assets as ERC-721 records and rebuild the gallery of a
record contract.
"""

from typing import Optional

import click

from . import __version__

from .commands.config import config
from .commands.gallery import gallery
from .commands.mint import mint
from .config import PROFILES
from .context import CLIContext, pass_context


@click.group(context_settings={'help_option_names': ['-h', '--help']})
@click.option('--config-file', '-c', type=click.Path(dir_okay=False),
              help='Path to configuration file')
@click.option('--profile', '-p', type=click.Choice(sorted(PROFILES)),
              help='Configuration profile (mainnet, testnet, development)')
@click.option('--output-format', '-o',
              type=click.Choice(['table', 'json', 'yaml']),
              default='table',
              help='Output format')
@click.option('--verbose', '-v',
              count=True,
              help='Increase verbosity (-v for INFO, -vv for DEBUG)')
@click.version_option(__version__, '--version', prog_name='nftmint')
@pass_context
def cli(ctx: CLIContext, config_file: Optional[str], profile: Optional[str],
        output_format: str, verbose: int):
    """
    NFTMint Command Line Interface

    Publish assets to IPFS, mint them as records on an EVM contract and
    rebuild the contract's gallery.

    Examples:
        nftmint mint batch art1.png art2.png
        nftmint gallery scan
        nftmint -o json gallery show 3
        nftmint config validate
    """
    ctx.config_file = config_file
    ctx.profile = profile
    ctx.output_format = output_format
    ctx.verbose = verbose

    ctx.setup_logging()
    ctx.logger.debug("CLI initialized with context")


cli.add_command(mint)
cli.add_command(gallery)
cli.add_command(config)


def main():
    cli()


if __name__ == '__main__':
    main()
