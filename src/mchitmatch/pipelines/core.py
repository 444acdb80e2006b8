from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Iterable, Optional
import typer

from mchitmatch.config.load import load_config
from mchitmatch.config.schemas import Config
from mchitmatch.io.adapters import make_adapter
from mchitmatch.io.match_store import write_init, write_event_matches, write_run_summary
from mchitmatch.matching.aggregate import aggregate_deposits
from mchitmatch.matching.relations import HitParticleAssns, emit_matches
from mchitmatch.matching.resolver import make_resolver
from mchitmatch.physics.events import SimEvent
from mchitmatch.vis.hdf import save_fraction_png


class MatchingError(RuntimeError):
    """Unrecoverable problem with an event's inputs; the event produces no output."""

class InvalidHitCollectionError(MatchingError):
    pass

class MissingParticleCollectionError(MatchingError):
    pass

class DepositTableMismatchError(MatchingError):
    pass


def match_event(
    event: SimEvent,
    *,
    resolver: str = "linear",
    diagnostics_level: int = 0,
) -> HitParticleAssns:
    """
    Relate every hit of one event to the truth particles that deposited
    energy in it.

    Real-data events are skipped (empty result). A simulated event without
    its hit or truth particle collection raises; nothing is returned for it.

    Parameters
    ----------
    event : SimEvent
    resolver : "linear" | "table"
        track id -> particle lookup strategy; both give identical output.

    Returns
    -------
    HitParticleAssns with one relation per (hit, saved contributing particle).
    """
    assns = HitParticleAssns()
    if event.is_real_data:
        return assns

    tag = f"{event.run}:{event.subrun}:{event.event}"
    if event.hits is None:
        raise InvalidHitCollectionError(f"Hit collection is not valid for event {tag}")
    if event.particles is None:
        raise MissingParticleCollectionError(f"Truth particle collection is missing for event {tag}")
    try:
        event.validate()
    except ValueError as exc:
        raise DepositTableMismatchError(str(exc)) from exc

    # per-event lookup state; never shared between events
    lookup = make_resolver(resolver, event.particles)

    n_empty = 0
    for i_h in range(len(event.hits)):
        agg = aggregate_deposits(event.deposits_for(i_h))
        if not agg.per_track:
            n_empty += 1
            continue
        emit_matches(i_h, agg, lookup, assns)

    if diagnostics_level >= 2:
        print(f"[match] event {tag}: hits={len(event.hits)} (no deposits: {n_empty}) "
              f"particles={len(event.particles)} relations={len(assns)} "
              f"lookups={lookup.n_lookups} unresolved_ids={lookup.n_unresolved}")
    return assns


def _iter_source_events(cfg: Config) -> Iterable[SimEvent]:
    """
    Unified event source: [io.adapter].type selects the reader and
    [io] hit_label/particle_label select the collections it returns.
    """
    adapter = make_adapter(
        cfg.io.adapter,
        hit_label=cfg.io.hit_label,
        particle_label=cfg.io.particle_label,
    )
    return adapter.iter_events(str(cfg.io.input_path))


def run_pipeline(
    cfg_path: str,
    *,
    resolver: Optional[str] = None,
    diagnostics_level: Optional[int] = None,
    max_events: Optional[int] = None,
) -> Path:
    """
    Orchestrate the matching over every event of the configured input.

    CLI flags (--resolver/--diagnostics/--max-events) override the
    corresponding [run] fields when not None.

    Parameters
    ----------
    cfg_path : str
        Path to TOML configuration file.

    Returns
    -------
    Path to written HDF5 file.
    """
    cfg = load_config(cfg_path)

    # ---- apply CLI overrides on top of TOML ----
    if resolver is not None:
        cfg.run.resolver = resolver.lower()
    if diagnostics_level is not None:
        cfg.run.diagnostics_level = diagnostics_level
    if max_events is not None:
        cfg.run.max_events = max_events
    cfg = Config.model_validate(cfg.model_dump())

    diag_level = cfg.run.diagnostics_level

    if diag_level >= 1:
        print(f"[run] config = {cfg_path}")
        print(f"[run] hits='{cfg.io.hit_label}' particles='{cfg.io.particle_label}' "
              f"resolver={cfg.run.resolver}")
        print(f"[run] input={cfg.io.input_path} -> output={cfg.io.output_path}")

    out_path = Path(cfg.io.output_path)
    out_path.parent.mkdir(parents=True, exist_ok=True)

    summary: Dict[str, Any] = {"events": 0, "skipped_real_data": 0, "hits": 0, "relations": 0}
    f = write_init(str(out_path), cfg_path, cfg)
    try:
        for ev in _iter_source_events(cfg):
            if cfg.run.max_events is not None and summary["events"] >= cfg.run.max_events:
                if diag_level >= 1:
                    print(f"[pipeline] Reached max_events={cfg.run.max_events}, stopping.")
                break
            assns = match_event(ev, resolver=cfg.run.resolver, diagnostics_level=diag_level)
            write_event_matches(f, ev, assns)
            summary["events"] += 1
            summary["skipped_real_data"] += int(ev.is_real_data)
            summary["hits"] += ev.n_hits
            summary["relations"] += len(assns)
        write_run_summary(f, summary)
    finally:
        f.close()

    if diag_level >= 1:
        print(f"[pipeline] Matched {summary['events']} events "
              f"({summary['skipped_real_data']} real data skipped): "
              f"{summary['relations']} relations over {summary['hits']} hits")

    # Optional PNG export
    if cfg.vis.export_png_on_write:
        try:
            out_png = save_fraction_png(str(out_path), bins=cfg.vis.bins)
            if diag_level >= 1:
                print(f"[pipeline] Wrote PNG {out_png}")
        except (KeyError, ValueError, OSError) as e:
            if diag_level >= 1:
                print(f"[pipeline] PNG export failed: {e!r}")

    return out_path


# ---------------------------------------------------------------------------
# Unified CLI entry point
# ---------------------------------------------------------------------------

app = typer.Typer(help="Hit to truth-particle matching (mchitmatch.pipelines.core)")


@app.command()
def main(
    cfg_path: str = typer.Argument(
        ...,
        help="Path to TOML config file",
    ),
    resolver: Optional[str] = typer.Option(
        None,
        "--resolver",
        help="Override [run].resolver ('linear' or 'table')",
    ),
    diagnostics: Optional[int] = typer.Option(
        None,
        "--diagnostics",
        "-d",
        help="Override [run].diagnostics_level (0, 1 or 2)",
    ),
    max_events: Optional[int] = typer.Option(
        None,
        "--max-events",
        "-n",
        help="Override [run].max_events",
    ),
):
    """
    Match hits to truth particles for every event in the configured input.
    """
    try:
        out_path = run_pipeline(
            cfg_path,
            resolver=resolver,
            diagnostics_level=diagnostics,
            max_events=max_events,
        )
    except MatchingError as exc:
        typer.echo(f"[run] fatal: {exc}", err=True)
        raise typer.Exit(code=1)
    typer.echo(str(out_path))


if __name__ == "__main__":
    app()
