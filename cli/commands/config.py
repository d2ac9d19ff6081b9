#!/usr/bin/env python3
"""
Configuration Management Commands for NFTMint CLI

Commands for generating, inspecting and validating CLI configuration.
"""

import json
import sys
from pathlib import Path
from typing import Optional

import click
import yaml

from ..config import ENV_PREFIX, PROFILES, default_config
from ..context import CLIContext, handle_cli_error, pass_context


@click.group()
@pass_context
def config(ctx: CLIContext):
    """
    Configuration management commands.

    Secrets (wallet key, Pinata JWT, explorer API key) are read from
    NFTMINT_* environment variables and never written to files.
    """
    ctx.logger.debug("Config command group invoked")


@config.command('init')
@click.option('--profile', type=click.Choice(sorted(PROFILES)),
              help='Configuration profile to use as base')
@click.option('--output', type=click.Path(), help='Output file path')
@click.option('--format', 'file_format', type=click.Choice(['yaml', 'json']),
              default='yaml', help='Configuration file format')
@click.option('--force', is_flag=True, help='Overwrite existing configuration')
@pass_context
@handle_cli_error
def init_config(ctx: CLIContext, profile: Optional[str], output: Optional[str],
                file_format: str, force: bool):
    """
    Generate a default configuration file.

    Examples:
        nftmint config init
        nftmint config init --profile development --output dev.yml
    """
    output_path = Path(output or ('.nftmint.yml' if file_format == 'yaml' else '.nftmint.json'))
    if output_path.exists() and not force:
        raise click.ClickException(f"Configuration file already exists: {output_path}. "
                                   f"Use --force to overwrite.")

    config_data = default_config(profile)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, 'w') as f:
        if file_format == 'yaml':
            yaml.safe_dump(config_data, f, default_flow_style=False, sort_keys=False)
        else:
            json.dump(config_data, f, indent=2)

    click.echo(f"Configuration file created: {output_path}")
    click.echo(f"Set {ENV_PREFIX}WALLET_PRIVATE_KEY and {ENV_PREFIX}STORAGE_PINATA_JWT "
               f"in the environment before minting.")


@config.command('show')
@click.option('--key', help='Specific configuration key to show (dot notation)')
@click.option('--sources', is_flag=True, help='Show configuration sources')
@pass_context
@handle_cli_error
def show_config(ctx: CLIContext, key: Optional[str], sources: bool):
    """
    Display the merged configuration, secrets masked.

    Examples:
        nftmint config show
        nftmint config show --key ledger.rpc_url
        nftmint config show --sources
    """
    manager = ctx.config

    if sources:
        for i, source in enumerate(manager.get_sources(), 1):
            click.echo(f"{i}. {source}")
        return

    data = manager.redacted()
    if key:
        value = data
        for part in key.split('.'):
            if not isinstance(value, dict) or part not in value:
                raise click.ClickException(f"Configuration key not found: {key}")
            value = value[part]
        if isinstance(value, dict):
            ctx.output(value)
        else:
            click.echo(f"{key}: {value}")
        return

    ctx.output(data, 'json' if ctx.output_format == 'json' else 'yaml')


@config.command('validate')
@pass_context
@handle_cli_error
def validate_config(ctx: CLIContext):
    """Validate configuration; exits with status 1 on errors."""
    errors = ctx.config.validate()
    if errors:
        click.echo("Configuration errors:", err=True)
        for error in errors:
            click.echo(f"  - {error}", err=True)
        sys.exit(1)

    click.echo("Configuration is valid")
