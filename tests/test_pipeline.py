import os
import subprocess
import sys
from pathlib import Path

import h5py
import numpy as np
from typer.testing import CliRunner

from mchitmatch.io.adapters import write_event_hdf5
from mchitmatch.io.match_store import read_matches
from mchitmatch.pipelines.core import app, match_event, run_pipeline
from mchitmatch.physics.events import SimEvent
from mchitmatch.physics.hits import Hit
from mchitmatch.pipelines import core
from mchitmatch.sim.synth import synth_events


def _config(tmp_path: Path, *, adapter: str = 'type = "hdf5"', extra: str = "") -> Path:
    p = tmp_path / "cfg.toml"
    p.write_text(f"""
[run]
diagnostics_level = 0
{extra}

[io]
input_path = "events.h5"
output_path = "out/matches.h5"

[io.adapter]
{adapter}
""")
    return p


def test_run_pipeline_matches_per_event(tmp_path: Path):
    events = synth_events(n_events=4, n_hits=30, n_particles=6, unsaved_fraction=0.2,
                          real_data_fraction=0.0, seed=5)
    events[2].is_real_data = True
    write_event_hdf5(tmp_path / "events.h5", events)

    out = run_pipeline(str(_config(tmp_path)), resolver="table")
    assert out == (tmp_path / "out" / "matches.h5").resolve()

    cols = read_matches(str(out))
    ptr = cols["event_ptr"]
    assert ptr.shape == (5,)
    assert ptr[3] == ptr[2]  # real-data event wrote no relations
    for i, ev in enumerate(events):
        expect = match_event(ev)
        lo, hi = ptr[i], ptr[i + 1]
        assert hi - lo == len(expect)
        np.testing.assert_array_equal(cols["hit_index"][lo:hi], [m.hit_index for m in expect])
        np.testing.assert_allclose(cols["energy_fraction"][lo:hi],
                                   [m.data.energy_fraction for m in expect])


def test_run_pipeline_synth_with_cap_and_png(tmp_path: Path):
    cfg = _config(
        tmp_path,
        adapter='type = "synth"\nn_events = 6\nn_hits = 40\nseed = 2',
        extra="max_events = 3",
    )
    text = cfg.read_text() + "\n[vis]\nexport_png_on_write = true\n"
    cfg.write_text(text)

    out = run_pipeline(str(cfg))
    cols = read_matches(str(out))
    assert cols["events/event"].tolist() == [1, 2, 3]
    assert out.with_suffix(".png").exists()


def test_cli_fatal_on_absent_hits(tmp_path: Path):
    write_event_hdf5(tmp_path / "events.h5", [SimEvent(event=1, hits=None, particles=[])])
    runner = CliRunner()
    result = runner.invoke(app, [str(_config(tmp_path))])
    assert result.exit_code == 1


def test_cli_writes_output(tmp_path: Path):
    write_event_hdf5(tmp_path / "events.h5", synth_events(n_events=2, n_hits=5, seed=9))
    runner = CliRunner()
    result = runner.invoke(app, [str(_config(tmp_path)), "--resolver", "linear", "-d", "0"])
    assert result.exit_code == 0
    assert result.output.strip().endswith("matches.h5")


def test_cli_fatal_on_deposit_table_mismatch(tmp_path: Path, monkeypatch):
    (ev,) = synth_events(n_events=1, n_hits=3, seed=6)
    ev.hits.append(Hit())
    monkeypatch.setattr(core, "_iter_source_events", lambda cfg: iter([ev]))

    result = CliRunner().invoke(app, [str(_config(tmp_path))])
    assert result.exit_code == 1
    assert isinstance(result.exception, SystemExit)


def test_resolver_override_is_case_insensitive(tmp_path: Path):
    write_event_hdf5(tmp_path / "events.h5", synth_events(n_events=1, n_hits=5, seed=3))
    out = run_pipeline(str(_config(tmp_path)), resolver="TABLE")
    with h5py.File(out, "r") as f:
        assert f["meta"].attrs["resolver"] == "table"


def test_importing_pipeline_leaves_matplotlib_alone():
    src = Path(__file__).resolve().parents[1] / "src"
    code = (
        "import sys\n"
        "import mchitmatch.pipelines.core\n"
        "assert 'matplotlib' not in sys.modules, 'matplotlib imported'\n"
    )
    env = dict(os.environ, PYTHONPATH=str(src) + os.pathsep + os.environ.get("PYTHONPATH", ""))
    proc = subprocess.run([sys.executable, "-c", code], env=env, capture_output=True, text=True)
    assert proc.returncode == 0, proc.stderr
