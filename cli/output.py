#!/usr/bin/env python3
"""
Output Formatting Module for NFTMint CLI

Formats command results as tables, JSON or YAML.
"""

import json
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from tabulate import tabulate


class OutputFormatter:
    """Output formatter for CLI results."""

    def __init__(self, format_type: str = 'table', color_output: bool = True):
        """
        Initialize output formatter.

        Args:
            format_type: Output format (table, json, yaml)
            color_output: Enable colored output on terminals
        """
        self.format_type = format_type
        self.color_output = color_output and sys.stdout.isatty()

    def format(self, data: Any, headers: Optional[List[str]] = None) -> str:
        """Format data according to the configured format type."""
        if self.format_type == 'json':
            return self.format_json(data)
        elif self.format_type == 'yaml':
            return self.format_yaml(data)
        return self.format_table(data, headers)

    def format_json(self, data: Any) -> str:
        return json.dumps(data, indent=2, default=self._json_encoder)

    def format_yaml(self, data: Any) -> str:
        # Round-trip through JSON so datetimes and paths become plain strings
        plain = json.loads(self.format_json(data))
        return yaml.safe_dump(plain, default_flow_style=False, sort_keys=False)

    def format_table(self, data: Any, headers: Optional[List[str]] = None) -> str:
        """Format data as a table."""
        if isinstance(data, dict):
            table_data = [[self._colorize(str(k), 'key'), self._format_value(v)]
                          for k, v in data.items()]
            return tabulate(table_data, tablefmt='plain')

        if isinstance(data, list):
            if not data:
                return "No data available"
            if isinstance(data[0], dict):
                headers = headers or list(data[0].keys())
                rows = [[self._format_value(item.get(h, '')) for h in headers] for item in data]
                colored = [self._colorize(h, 'header') for h in headers]
                return tabulate(rows, headers=colored, tablefmt='simple')
            return '\n'.join(str(item) for item in data)

        return str(data)

    def _format_value(self, value: Any) -> str:
        """Format individual value for display."""
        if value is None:
            return self._colorize('-', 'null')
        elif isinstance(value, bool):
            return 'yes' if value else 'no'
        elif isinstance(value, datetime):
            return value.strftime('%Y-%m-%d %H:%M:%S')
        elif isinstance(value, dict):
            return f"<{len(value)} items>"
        elif isinstance(value, list):
            return f"[{len(value)} items]"

        text = str(value)
        if len(text) > 66:
            text = text[:30] + '...' + text[-30:]
        return text

    def _colorize(self, text: str, color_type: str) -> str:
        if not self.color_output:
            return text

        colors = {
            'header': '\033[1;34m',
            'key': '\033[1;36m',
            'null': '\033[90m',
            'error': '\033[1;31m',
            'success': '\033[1;32m',
        }
        color = colors.get(color_type)
        return f"{color}{text}\033[0m" if color else text

    def _json_encoder(self, obj):
        if isinstance(obj, datetime):
            return obj.isoformat()
        elif isinstance(obj, Path):
            return str(obj)
        elif hasattr(obj, 'to_dict'):
            return obj.to_dict()
        return str(obj)


class StatusIndicator:
    """Status symbols for job and record states."""

    SYMBOLS = {
        'confirmed': '✓',
        'failed': '✗',
        'submitted': '→',
        'gas_estimated': '→',
        'metadata_ready': '…',
        'uploading': '…',
        'queued': '•',
    }

    @classmethod
    def get_symbol(cls, status: str) -> str:
        return cls.SYMBOLS.get(status, '•')

    @classmethod
    def format_status(cls, status: str) -> str:
        return f"{cls.get_symbol(status)} {status}"


def summarize_batch(report: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Flatten a batch report dictionary into table rows."""
    rows = []
    for job in report.get('jobs', []):
        error = job.get('error') or {}
        rows.append({
            'index': job['index'],
            'name': job['name'],
            'status': StatusIndicator.format_status(job['state']),
            'record_id': job.get('record_id'),
            'tx_ref': job.get('tx_ref'),
            'error': error.get('revert_reason') or error.get('message')
        })
    return rows


def summarize_records(records: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Flatten gallery record dictionaries into table rows."""
    rows = []
    for record in records:
        metadata = record.get('metadata') or {}
        rows.append({
            'record_id': record['record_id'],
            'name': metadata.get('name'),
            'owner': record['owner'],
            'transfers': len(record.get('history', [])),
            'content_ref': record.get('content_ref')
        })
    return rows
