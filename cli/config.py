#!/usr/bin/env python3
"""
Configuration Management Module for NFTMint CLI

Handles hierarchical configuration loading, environment variable mapping,
validation, and management of settings across different networks.
"""

import copy
import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml


# Environment variable prefix
ENV_PREFIX = 'NFTMINT_'

# Keys that are only ever read from the environment and never written out
SECRET_KEYS = {('wallet', 'private_key'), ('storage', 'pinata_jwt'), ('history', 'api_key')}

# Keys kept as raw strings when read from the environment
STRING_KEYS = {('wallet', 'private_key'), ('storage', 'pinata_jwt'), ('history', 'api_key'),
               ('ledger', 'contract_address')}

# Default configuration values
DEFAULT_CONFIG = {
    'ledger': {
        'rpc_url': 'https://rpc.sepolia.org',
        'contract_address': None,
        'chain_id': 11155111,
        'abi_path': None,
        'confirmation_timeout': 180,
        'request_timeout': 30
    },

    'wallet': {
        'private_key': None
    },

    'storage': {
        'backend': 'pinata',  # pinata, local
        'pinata_jwt': None,
        'pinata_api_url': 'https://api.pinata.cloud',
        'gateways': [],
        'local_path': '~/.nftmint/content',
        'timeout': 120,
        'max_retries': 3
    },

    'history': {
        'api_url': 'https://api-sepolia.etherscan.io/api',
        'api_key': None,
        'timeout': 30
    },

    'minting': {
        'gas_multiplier': 1.2,
        'pacing_interval': 1.0,
        'upload_workers': 4,
        'mapping_file': '~/.nftmint/mappings.json'
    },

    'gallery': {
        'max_attempts': 1000,
        'max_consecutive_failures': 100,
        'fetch_workers': 4,
        'start_id': 1
    }
}

# Configuration profiles
PROFILES = {
    'mainnet': {
        'ledger': {'rpc_url': 'https://ethereum-rpc.publicnode.com', 'chain_id': 1},
        'history': {'api_url': 'https://api.etherscan.io/api'}
    },
    'testnet': {
        'ledger': {'rpc_url': 'https://rpc.sepolia.org', 'chain_id': 11155111},
        'history': {'api_url': 'https://api-sepolia.etherscan.io/api'}
    },
    'development': {
        'ledger': {'rpc_url': 'http://127.0.0.1:8545', 'chain_id': 31337},
        'storage': {'backend': 'local'},
        'minting': {'pacing_interval': 0.0}
    }
}


def config_search_paths() -> List[Path]:
    """Configuration file locations in order of precedence (highest to lowest)."""
    return [
        Path.cwd() / '.nftmint.yml',
        Path.cwd() / '.nftmint.json',
        Path.cwd() / 'nftmint.config.yml',
        Path.cwd() / 'nftmint.config.json',
        Path.home() / '.nftmint' / 'config.yml',
        Path.home() / '.nftmint' / 'config.json',
    ]


class ConfigurationManager:
    """Manages hierarchical configuration with environment variable support."""

    def __init__(self, config_file: Optional[str] = None, profile: Optional[str] = None,
                 environ: Optional[Dict[str, str]] = None):
        """
        Initialize configuration manager.

        Args:
            config_file: Explicit configuration file path
            profile: Configuration profile to load (mainnet, testnet, development)
            environ: Environment mapping (defaults to os.environ)
        """
        self.logger = logging.getLogger(__name__)
        self.config_file = config_file
        self.profile = profile
        self.environ = os.environ if environ is None else environ
        self._config_cache = None
        self._config_sources = []

    def load(self) -> Dict[str, Any]:
        """
        Load configuration from all sources in hierarchical order.

        Returns:
            Merged configuration dictionary
        """
        if self._config_cache is not None:
            return self._config_cache

        configs = [copy.deepcopy(DEFAULT_CONFIG)]
        self._config_sources = ["defaults"]

        if self.profile:
            if self.profile not in PROFILES:
                raise ValueError(f"Unknown profile: {self.profile}")
            configs.append(PROFILES[self.profile])
            self._config_sources.append(f"profile:{self.profile}")
            self.logger.debug(f"Applied profile: {self.profile}")

        if self.config_file:
            path = Path(self.config_file)
            if not path.exists():
                raise FileNotFoundError(f"Config file not found: {path}")
            configs.append(self._load_config_file(path))
            self._config_sources.append(f"file:{path}")
        else:
            # Use first found config file
            for config_path in config_search_paths():
                if config_path.exists():
                    configs.append(self._load_config_file(config_path))
                    self._config_sources.append(f"file:{config_path}")
                    self.logger.debug(f"Loaded config from {config_path}")
                    break

        env_config = self._load_environment_variables()
        if env_config:
            configs.append(env_config)
            self._config_sources.append("environment")

        self._config_cache = self._deep_merge(*configs)
        self._expand_paths(self._config_cache)
        return self._config_cache

    def _load_config_file(self, path: Path) -> Dict[str, Any]:
        """Load configuration from a YAML or JSON file."""
        try:
            with open(path, 'r') as f:
                if path.suffix in ['.yml', '.yaml']:
                    data = yaml.safe_load(f)
                elif path.suffix == '.json':
                    data = json.load(f)
                else:
                    raise ValueError(f"Unknown config file format: {path}")
        except (OSError, yaml.YAMLError, json.JSONDecodeError) as e:
            raise ValueError(f"Failed to load config from {path}: {e}")

        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ValueError(f"Config file {path} must contain a mapping")

        wallet = data.get('wallet')
        if isinstance(wallet, dict) and wallet.pop('private_key', None):
            self.logger.warning(f"Ignoring wallet.private_key in {path}; set {ENV_PREFIX}WALLET_PRIVATE_KEY instead")
        return data

    def _load_environment_variables(self) -> Dict[str, Any]:
        """
        Load configuration from environment variables.

        NFTMINT_<SECTION>_<KEY> maps to config[section][key], e.g.
        NFTMINT_LEDGER_RPC_URL -> {'ledger': {'rpc_url': value}}.
        """
        env_config: Dict[str, Any] = {}

        for name, value in self.environ.items():
            if not name.startswith(ENV_PREFIX):
                continue
            config_key = name[len(ENV_PREFIX):].lower()
            section, _, key = config_key.partition('_')
            if section not in DEFAULT_CONFIG or not key:
                self.logger.debug(f"Ignoring unknown environment setting {name}")
                continue

            if (section, key) in STRING_KEYS:
                parsed = value
            else:
                parsed = self._parse_env_value(value)
            env_config.setdefault(section, {})[key] = parsed

        return env_config

    def _parse_env_value(self, value: str) -> Union[str, int, float, bool, list]:
        """Parse environment variable value to appropriate type."""
        # JSON first, for lists and numbers
        try:
            return json.loads(value)
        except ValueError:
            pass

        if value.lower() in ['true', 'yes']:
            return True
        elif value.lower() in ['false', 'no']:
            return False

        return value

    def _deep_merge(self, *dicts: Dict[str, Any]) -> Dict[str, Any]:
        """Deep merge multiple dictionaries."""
        result = {}

        for dictionary in dicts:
            for key, value in dictionary.items():
                if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                    result[key] = self._deep_merge(result[key], value)
                else:
                    result[key] = value

        return result

    def _expand_paths(self, config: Dict[str, Any]):
        """Expand ~ and environment variables in path values."""
        for key, value in config.items():
            if isinstance(value, dict):
                self._expand_paths(value)
            elif isinstance(value, str) and key.endswith(('_path', '_file')):
                config[key] = os.path.expanduser(os.path.expandvars(value))

    def get(self, key_path: str, default: Any = None) -> Any:
        """
        Get configuration value by dot-notation path.

        Args:
            key_path: Dot-separated path (e.g., 'ledger.rpc_url')
            default: Default value if key not found or None
        """
        current = self.load()
        for key in key_path.split('.'):
            if isinstance(current, dict) and key in current:
                current = current[key]
            else:
                return default
        return default if current is None else current

    def set(self, key_path: str, value: Any):
        """Set configuration value by dot-notation path."""
        config = self.load()

        keys = key_path.split('.')
        current = config
        for key in keys[:-1]:
            current = current.setdefault(key, {})
        current[keys[-1]] = value

    def redacted(self) -> Dict[str, Any]:
        """Configuration with secrets removed, safe to display or save."""
        config = copy.deepcopy(self.load())
        for section, key in SECRET_KEYS:
            if config.get(section, {}).get(key):
                config[section][key] = '***'
        return config

    def save(self, path: Optional[str] = None, format: str = 'yaml') -> Path:
        """
        Save current configuration to file, without secrets.

        Args:
            path: File path to save to (default: project config file)
            format: Output format ('yaml' or 'json')
        """
        config = self.redacted()
        for section, key in SECRET_KEYS:
            config.get(section, {}).pop(key, None)

        if not path:
            path = Path.cwd() / ('.nftmint.yml' if format == 'yaml' else '.nftmint.json')
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, 'w') as f:
            if format == 'yaml':
                yaml.dump(config, f, default_flow_style=False, sort_keys=False)
            else:
                json.dump(config, f, indent=2)

        self.logger.info(f"Configuration saved to {path}")
        return path

    def validate(self) -> List[str]:
        """
        Validate current configuration.

        Returns:
            List of validation errors (empty if valid)
        """
        config = self.load()
        errors = []

        ledger = config.get('ledger', {})
        if not ledger.get('rpc_url'):
            errors.append("Ledger RPC URL is required")
        if not isinstance(ledger.get('chain_id'), int) or ledger['chain_id'] <= 0:
            errors.append("Ledger chain_id must be a positive integer")
        address = ledger.get('contract_address')
        if address and not (isinstance(address, str) and address.startswith('0x') and len(address) == 42):
            errors.append(f"Invalid contract address: {address}")

        storage = config.get('storage', {})
        backend = storage.get('backend')
        if backend not in ['pinata', 'local']:
            errors.append(f"Invalid storage backend: {backend}")
        if backend == 'local' and not storage.get('local_path'):
            errors.append("storage.local_path is required for the local backend")

        minting = config.get('minting', {})
        multiplier = minting.get('gas_multiplier')
        if not isinstance(multiplier, (int, float)) or multiplier < 1:
            errors.append(f"minting.gas_multiplier must be a number >= 1, got {multiplier}")
        interval = minting.get('pacing_interval')
        if not isinstance(interval, (int, float)) or interval < 0:
            errors.append(f"minting.pacing_interval must be >= 0, got {interval}")

        for section, key in [('minting', 'upload_workers'), ('gallery', 'max_attempts'),
                             ('gallery', 'max_consecutive_failures'), ('gallery', 'fetch_workers'),
                             ('gallery', 'start_id')]:
            value = config.get(section, {}).get(key)
            if not isinstance(value, int) or isinstance(value, bool) or value < 1:
                errors.append(f"{section}.{key} must be a positive integer, got {value}")

        return errors

    def require(self, *key_paths: str) -> None:
        """Raise ValueError naming every missing setting."""
        missing = [path for path in key_paths if self.get(path) in (None, '')]
        if missing:
            env_names = ", ".join(ENV_PREFIX + path.replace('.', '_').upper() for path in missing)
            raise ValueError(f"Missing configuration: {', '.join(missing)} (set {env_names})")

    def get_sources(self) -> List[str]:
        """Get list of configuration sources that were loaded."""
        self.load()
        return self._config_sources

    def reset(self):
        """Reset configuration cache."""
        self._config_cache = None
        self._config_sources = []


def default_config(profile: Optional[str] = None) -> Dict[str, Any]:
    """Defaults merged with a profile, without secrets; the content of `config init`."""
    if profile and profile not in PROFILES:
        raise ValueError(f"Unknown profile: {profile}")

    config = copy.deepcopy(DEFAULT_CONFIG)
    for section, values in PROFILES.get(profile, {}).items():
        config[section].update(values)
    for section, key in SECRET_KEYS:
        config[section].pop(key, None)
    return config
