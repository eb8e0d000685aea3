"""
Tests for configuration management system.
"""

import pytest

from hmmkit.config import (
    get_config, set_config, update_config,
    load_config_file, save_config_file,
    get_all_config, reset_config
)
from hmmkit.learn import BaumWelchLearner
from hmmkit.opdf import GaussianOpdf


def test_default_config():
    """Test that default configuration is loaded correctly."""
    # Learning config
    assert get_config('learning', 'max_iterations') == 100
    assert get_config('learning', 'tolerance') == 1e-6
    assert get_config('learning', 'regularization_alpha') == 0.0

    # K-means and emission config
    assert get_config('kmeans', 'max_iterations') == 100
    assert get_config('gaussian', 'min_variance') == 0.0


def test_get_config_section():
    """Test getting entire configuration sections."""
    learning_config = get_config('learning')
    assert isinstance(learning_config, dict)
    assert 'tolerance' in learning_config
    assert 'probability_floor' in learning_config


def test_set_config():
    """Test setting individual configuration values."""
    set_config('learning', 'tolerance', 1e-3)
    assert get_config('learning', 'tolerance') == 1e-3

    # Set value in new section
    set_config('test_section', 'test_key', 'test_value')
    assert get_config('test_section', 'test_key') == 'test_value'


def test_update_config():
    """Test updating configuration with dictionary."""
    update_config({
        'learning': {
            'max_iterations': 20,
            'new_setting': True
        },
        'new_section': {
            'key1': 'value1'
        }
    })

    assert get_config('learning', 'max_iterations') == 20
    assert get_config('learning', 'new_setting') is True
    assert get_config('new_section', 'key1') == 'value1'

    # Check that other values are preserved
    assert get_config('learning', 'tolerance') == 1e-6


def test_config_file_operations(temp_dir):
    """Test saving and loading configuration files."""
    config_file = temp_dir / "test_config.json"

    set_config('learning', 'max_iterations', 7)
    set_config('test', 'value', 123)

    save_config_file(str(config_file))
    assert config_file.exists()

    reset_config()
    assert get_config('learning', 'max_iterations') == 100
    assert get_config('test', 'value') is None

    load_config_file(str(config_file))
    assert get_config('learning', 'max_iterations') == 7
    assert get_config('test', 'value') == 123


def test_get_all_config():
    """Test getting complete configuration dictionary."""
    all_config = get_all_config()

    assert isinstance(all_config, dict)
    assert 'learning' in all_config
    assert 'hmm' in all_config
    assert 'logging' in all_config

    # Verify it's a copy (modifications don't affect original)
    all_config['learning']['max_iterations'] = 99999
    assert get_config('learning', 'max_iterations') != 99999


def test_reset_config():
    """Test resetting configuration to defaults."""
    set_config('gaussian', 'min_variance', 0.5)
    set_config('custom', 'key', 'value')

    reset_config()

    assert get_config('gaussian', 'min_variance') == 0.0
    assert get_config('custom', 'key') is None


def test_invalid_config_file(temp_dir):
    """Test handling of invalid configuration files."""
    with pytest.raises(ValueError):
        load_config_file(str(temp_dir / "nonexistent.json"))

    invalid_file = temp_dir / "invalid.json"
    invalid_file.write_text("{ invalid json }")

    with pytest.raises(ValueError):
        load_config_file(str(invalid_file))


def test_environment_override(monkeypatch):
    """Test that environment variables override defaults on reset."""
    monkeypatch.setenv('HMMKIT_MAX_ITERATIONS', '42')
    monkeypatch.setenv('HMMKIT_TOLERANCE', 'not-a-number')
    reset_config()

    assert get_config('learning', 'max_iterations') == 42
    assert get_config('learning', 'tolerance') == 1e-6


class TestConfiguredDefaults:
    """Test that components pick up unset options from the configuration."""

    def test_learner_defaults(self):
        set_config('learning', 'max_iterations', 12)
        set_config('learning', 'probability_floor', 1e-4)
        learner = BaumWelchLearner()

        assert learner.max_iterations == 12
        assert learner.probability_floor == 1e-4
        assert BaumWelchLearner(max_iterations=3).max_iterations == 3

    def test_gaussian_min_variance(self):
        set_config('gaussian', 'min_variance', 0.25)
        opdf = GaussianOpdf()
        opdf.fit([1.0, 1.0])

        assert opdf.variance == pytest.approx(0.25)
