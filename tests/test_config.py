"""Tests for config parsing."""

import pytest

from keyrando.config import Config, KeyItemsConfig, load_config


def test_config_defaults():
    """Config.from_dict with empty dict uses all defaults."""
    config = Config.from_dict({})
    assert config.seed == 0
    assert config.keyitems.chain_weight == 3.0
    assert config.keyitems.late_factor == 0.1
    assert config.keyitems.quest_late_factor == 0.01
    assert config.options == {}
    assert config.logic == {}
    assert config.paths.annotations_file == "./data/annotations.yaml"
    assert config.paths.preset_file is None
    assert config.paths.output_dir == "./output"


def test_config_from_toml(tmp_path):
    """Config.from_toml parses TOML file correctly."""
    config_file = tmp_path / "config.toml"
    config_file.write_text("""
[run]
seed = 42

[keyitems]
chain_weight = 5.5
""")
    config = Config.from_toml(config_file)
    assert config.seed == 42
    assert config.keyitems.chain_weight == 5.5
    # Defaults for unspecified values
    assert config.keyitems.late_factor == 0.1


def test_config_full_toml(tmp_path):
    """Config.from_toml parses all sections correctly."""
    config_file = tmp_path / "config.toml"
    config_file.write_text("""
[run]
seed = 12345

[keyitems]
chain_weight = 2.0
late_factor = 0.2
quest_late_factor = 0.05

[options]
norandom = true
racemode = false

[logic]
dlc = false

[paths]
annotations_file = "./custom.yaml"
preset_file = "./preset.yaml"
output_dir = "./custom_output"
""")
    config = load_config(config_file)
    assert config.seed == 12345
    assert config.keyitems.late_factor == 0.2
    assert config.keyitems.quest_late_factor == 0.05
    assert config.options == {"norandom": True, "racemode": False}
    assert config.logic == {"dlc": False}
    assert config.paths.annotations_file == "./custom.yaml"
    assert config.paths.preset_file == "./preset.yaml"
    assert config.paths.output_dir == "./custom_output"


def test_empty_preset_file_is_none():
    config = Config.from_dict({"paths": {"preset_file": ""}})
    assert config.paths.preset_file is None


def test_option_lookup():
    config = Config(options={"norandom": True})
    assert config.option("norandom")
    assert not config.option("racemode")


def test_logic_options_override_options():
    config = Config(options={"dlc": True, "norandom": True}, logic={"dlc": False})
    assert config.logic_options() == {"dlc": False, "norandom": True}


def test_chain_weight_validation():
    """chain_weight must be greater than 1."""
    with pytest.raises(ValueError, match="chain_weight must be > 1"):
        KeyItemsConfig(chain_weight=1.0)
    with pytest.raises(ValueError, match="chain_weight must be > 1"):
        Config.from_dict({"keyitems": {"chain_weight": 0.5}})


def test_late_factor_validation():
    with pytest.raises(ValueError, match="late_factor must be >= 0"):
        KeyItemsConfig(late_factor=-0.1)
    with pytest.raises(ValueError, match="quest_late_factor must be >= 0"):
        KeyItemsConfig(quest_late_factor=-1)
