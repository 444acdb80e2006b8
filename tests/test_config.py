from pathlib import Path

import pytest
from pydantic import ValidationError

from mchitmatch.config.load import load_config
from mchitmatch.config.schemas import Config

TOML = """
[run]
diagnostics_level = 2
resolver = "table"

[io]
input_path = "data/events.h5"
output_path = "out/matches.h5"
hit_label = "hitfd"
particle_label = "largeant"

[io.adapter]
type = "hdf5"
"""


def test_load_config_resolves_relative_paths(tmp_path: Path):
    p = tmp_path / "cfg.toml"
    p.write_text(TOML)
    cfg = load_config(p)
    assert cfg.run.resolver == "table"
    assert cfg.run.diagnostics_level == 2
    assert cfg.io.hit_label == "hitfd"
    assert Path(cfg.io.input_path) == (tmp_path / "data" / "events.h5").resolve()
    assert Path(cfg.io.output_path).is_absolute()
    assert cfg.vis.export_png_on_write is False


def test_defaults():
    cfg = Config(io={"output_path": "m.h5"})
    assert cfg.run.resolver == "linear"
    assert cfg.run.max_events is None
    assert cfg.io.hit_label == "gaushit"
    assert cfg.io.particle_label == "largeant"
    assert cfg.io.adapter == {"type": "hdf5"}


def test_bad_values_rejected():
    with pytest.raises(ValidationError):
        Config(run={"diagnostics_level": 3}, io={"output_path": "m.h5"})
    with pytest.raises(ValidationError):
        Config(run={"resolver": "hash"}, io={"output_path": "m.h5"})
    with pytest.raises(ValidationError):
        Config(io={})
