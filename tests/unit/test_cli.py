"""
Unit tests for the command line interface.
"""

import json
import logging
import os

import pytest
import yaml
from click.testing import CliRunner

from cli.context import CLIContext
from cli.main import cli
from gallery.scanner import GalleryScanner
from minting.job_queue import MintJobQueue
from minting.submitter import TransactionSubmitter
from registry.mapping import InMemoryMappingRecorder

from tests.conftest import CHAIN_ID


@pytest.fixture(autouse=True)
def restore_logging():
    root = logging.getLogger()
    level = root.level
    yield
    if CLIContext._handler is not None:
        root.removeHandler(CLIContext._handler)
        CLIContext._handler = None
    root.setLevel(level)


@pytest.fixture
def runner(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    for name in list(os.environ):
        if name.startswith("NFTMINT_"):
            monkeypatch.delenv(name)
    return CliRunner()


@pytest.fixture
def asset_files(tmp_path):
    paths = []
    for name in ("dawn.png", "dusk.png", "night.png"):
        path = tmp_path / name
        path.write_bytes(f"pixels of {name}".encode())
        paths.append(str(path))
    return paths


class TestMainGroup:

    def test_help(self, runner):
        result = runner.invoke(cli, ['--help'])
        assert result.exit_code == 0
        for command in ('mint', 'gallery', 'config'):
            assert command in result.output

    def test_version(self, runner):
        result = runner.invoke(cli, ['--version'])
        assert result.exit_code == 0
        assert "0.1.0" in result.output


class TestConfigCommands:

    def test_init_and_force(self, runner, tmp_path):
        result = runner.invoke(cli, ['config', 'init', '--profile', 'development'])
        assert result.exit_code == 0
        data = yaml.safe_load((tmp_path / ".nftmint.yml").read_text())
        assert data['ledger']['chain_id'] == 31337
        assert 'private_key' not in data['wallet']

        again = runner.invoke(cli, ['config', 'init'])
        assert again.exit_code == 1
        assert "already exists" in again.output

        forced = runner.invoke(cli, ['config', 'init', '--force'])
        assert forced.exit_code == 0

    def test_show_key(self, runner):
        result = runner.invoke(cli, ['config', 'show', '--key', 'ledger.chain_id'])
        assert result.exit_code == 0
        assert "ledger.chain_id: 11155111" in result.output

    def test_show_masks_secrets(self, runner):
        result = runner.invoke(cli, ['-o', 'json', 'config', 'show'],
                               env={'NFTMINT_WALLET_PRIVATE_KEY': '0xsecret'})
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data['wallet']['private_key'] == '***'
        assert '0xsecret' not in result.output

    def test_show_unknown_key(self, runner):
        result = runner.invoke(cli, ['config', 'show', '--key', 'ledger.nope'])
        assert result.exit_code == 1
        assert "not found" in result.output

    def test_show_sources(self, runner):
        result = runner.invoke(cli, ['-p', 'testnet', 'config', 'show', '--sources'])
        assert result.exit_code == 0
        assert "1. defaults" in result.output
        assert "2. profile:testnet" in result.output

    def test_validate(self, runner):
        assert runner.invoke(cli, ['config', 'validate']).exit_code == 0

        result = runner.invoke(cli, ['config', 'validate'], env={'NFTMINT_STORAGE_BACKEND': 's3'})
        assert result.exit_code == 1
        assert "Invalid storage backend" in result.output


class TestMintCommands:
    """Test mint batch with collaborators replaced by fakes."""

    @pytest.fixture
    def fake_queue(self, monkeypatch, publisher, countable_ledger, wallet, pacing):
        queue = MintJobQueue(publisher, TransactionSubmitter(countable_ledger, wallet),
                             pacing=pacing, mapping=InMemoryMappingRecorder(),
                             expected_chain_id=CHAIN_ID)
        monkeypatch.setattr('cli.commands.mint.build_mint_queue', lambda config: queue)
        return queue

    def test_dry_run(self, runner, asset_files):
        result = runner.invoke(cli, ['-o', 'json', 'mint', 'batch', '--dry-run',
                                     '--name', 'Dawn', '--name', 'Dusk', '--name', 'Night',
                                     *asset_files])

        assert result.exit_code == 0
        plan = json.loads(result.stdout)
        assert [item['name'] for item in plan] == ['Dawn', 'Dusk', 'Night']
        assert plan[0]['file'] == 'dawn.png'
        assert plan[0]['description'] == 'Description for Dawn'

    def test_name_count_mismatch(self, runner, asset_files):
        result = runner.invoke(cli, ['mint', 'batch', '--dry-run', '--name', 'Only', *asset_files])
        assert result.exit_code == 2
        assert "names" in result.output

    def test_nothing_to_mint(self, runner):
        result = runner.invoke(cli, ['mint', 'batch'])
        assert result.exit_code == 2

    def test_manifest(self, runner, tmp_path):
        (tmp_path / "a.bin").write_bytes(b"a")
        manifest = tmp_path / "batch.json"
        manifest.write_text(json.dumps([{"file": "a.bin", "name": "Alpha", "description": "first"}]))

        result = runner.invoke(cli, ['-o', 'json', 'mint', 'batch', '--dry-run', '--manifest', str(manifest)])

        assert result.exit_code == 0
        plan = json.loads(result.stdout)
        assert plan == [{"index": 0, "name": "Alpha", "file": "a.bin", "bytes": 1, "description": "first"}]

    def test_batch_success(self, runner, asset_files, fake_queue, countable_ledger):
        result = runner.invoke(cli, ['-o', 'json', 'mint', 'batch', *asset_files])

        assert result.exit_code == 0
        report = json.loads(result.stdout)
        assert report['succeeded'] == 3
        assert [job['record_id'] for job in report['jobs']] == ['1', '2', '3']
        assert len(countable_ledger.submissions) == 3

    def test_batch_partial_failure_exits_1(self, runner, asset_files, fake_queue, countable_ledger):
        countable_ledger.fail_estimate_calls = {2: "mint paused"}

        result = runner.invoke(cli, ['mint', 'batch', *asset_files])

        assert result.exit_code == 1
        assert "2 confirmed, 1 failed" in result.output
        assert "mint paused" in result.output

    def test_missing_signing_identity(self, runner, asset_files):
        result = runner.invoke(cli, ['mint', 'batch', *asset_files],
                               env={'NFTMINT_LEDGER_CONTRACT_ADDRESS': '0x' + 'cd' * 20})

        assert result.exit_code == 1
        assert "Error:" in result.output
        assert "private key" in result.output


class TestGalleryCommands:

    @pytest.fixture
    def fake_scanner(self, monkeypatch, probe_ledger, storage, publisher):
        owner = "0x" + "11" * 20
        for record_id in (1, 2, 4):
            probe_ledger.records[record_id] = (owner, storage.put_metadata(f"Token {record_id}"))
        calls = []

        def build(config, **kwargs):
            calls.append(kwargs)
            return GalleryScanner(probe_ledger, publisher,
                                  max_consecutive_failures=kwargs.get('max_consecutive_failures') or 100)

        monkeypatch.setattr('cli.commands.gallery.build_scanner', build)
        return calls

    def test_scan_json(self, runner, fake_scanner):
        result = runner.invoke(cli, ['-o', 'json', 'gallery', 'scan', '--strategy', 'probe',
                                     '--max-consecutive-failures', '2', '--no-history'])

        assert result.exit_code == 0
        records = json.loads(result.stdout)
        assert [r['record_id'] for r in records] == ['1', '2', '4']
        assert records[2]['metadata']['name'] == 'Token 4'
        assert fake_scanner[0]['capability'] == 'probe'
        assert fake_scanner[0]['with_history'] is False
        assert fake_scanner[0]['max_consecutive_failures'] == 2

    def test_scan_table(self, runner, fake_scanner):
        result = runner.invoke(cli, ['gallery', 'scan'])

        assert result.exit_code == 0
        assert "Token 2" in result.output
        assert "3 records found (probe" in result.output
        assert fake_scanner[0]['capability'] is None

    def test_show(self, runner, fake_scanner):
        result = runner.invoke(cli, ['-o', 'json', 'gallery', 'show', '2'])

        assert result.exit_code == 0
        assert json.loads(result.stdout)['metadata']['name'] == 'Token 2'

    def test_show_missing(self, runner, fake_scanner):
        result = runner.invoke(cli, ['gallery', 'show', '3'])

        assert result.exit_code == 1
        assert "Record 3 does not exist" in result.output
