"""Tests for CLI configuration module."""

import json

from cli.config import Config


def test_config_creates_default_file(tmp_path):
    """Test that config file is created with defaults if missing."""
    config_path = tmp_path / '.claystore' / 'config.json'
    config = Config(config_path)

    assert config_path.exists()

    assert config.data['timeout'] == 30
    assert config.data['max_retries'] == 3
    assert config.data['retry_backoff_multiplier'] == 2
    assert config.data['confirm_uploads'] is True
    assert config.data['wallet_address'] is None


def test_config_loads_existing_file(tmp_path):
    """Test loading existing config file."""
    config_path = tmp_path / '.claystore' / 'config.json'
    config_path.parent.mkdir(parents=True)

    existing_data = {
        'ledger_url': 'http://ledger.example.com:9000',
        'wallet_address': '0xABC',
        'chunk_size': 40960,
    }
    with open(config_path, 'w') as f:
        json.dump(existing_data, f)

    config = Config(config_path)

    assert config.get_ledger_url() == 'http://ledger.example.com:9000'
    assert config.get_wallet_address() == '0xabc'
    assert config.data['timeout'] == 30


def test_config_save_and_get_wallet(temp_config):
    """Test saving and retrieving the wallet address."""
    assert temp_config.get_wallet_address() is None

    temp_config.set_wallet_address('0xDeadBeef')

    assert temp_config.get_wallet_address() == '0xdeadbeef'
    with open(temp_config.config_path, 'r') as f:
        data = json.load(f)
    assert data['wallet_address'] == '0xdeadbeef'


def test_config_handles_corrupted_file(tmp_path):
    """Test recovery from corrupted config file."""
    config_path = tmp_path / '.claystore' / 'config.json'
    config_path.parent.mkdir(parents=True)

    with open(config_path, 'w') as f:
        f.write('{ invalid json content')

    config = Config(config_path)
    assert config.data['max_retries'] == 3

    backup_path = config_path.with_suffix('.json.bak')
    assert backup_path.exists()


def test_references_live_next_to_config(temp_config, temp_config_dir):
    assert temp_config.get_references_path() == temp_config_dir / 'references.json'


def test_store_config_takes_file_values(temp_config, monkeypatch):
    monkeypatch.delenv('CLAYSTORE_CHUNK_SIZE', raising=False)
    temp_config.data.update({
        'ledger_url': 'http://ledger:8080',
        'chunk_size': 4096,
        'confirmation_max_attempts': 5,
        'confirmation_delay': 0.5,
        'max_retries': 1,
        'signer_key': 'ab' * 32,
    })

    store_config = temp_config.to_store_config()

    assert store_config.ledger_url == 'http://ledger:8080'
    assert store_config.chunk_size == 4096
    assert store_config.confirmation_max_attempts == 5
    assert store_config.confirmation_delay == 0.5
    assert store_config.max_retries == 1
    assert store_config.signer_key == 'ab' * 32


def test_store_config_from_environment(temp_config, monkeypatch):
    monkeypatch.setenv('CLAYSTORE_DOWNLOAD_CONCURRENCY', '8')
    monkeypatch.setenv('CLAYSTORE_CONFIRM_CHUNKS', 'yes')

    store_config = temp_config.to_store_config()

    assert store_config.download_concurrency == 8
    assert store_config.confirm_chunks is True
