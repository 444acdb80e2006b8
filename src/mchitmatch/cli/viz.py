from __future__ import annotations

import typer
from typing import Optional

from mchitmatch.vis.hdf import save_fraction_png

app = typer.Typer(help="Hit matching visualization tools")

@app.command("h5-to-png")
def h5_to_png(
    h5_path: str = typer.Argument(..., help="Path to HDF5 file containing /matches"),
    bins: int = typer.Option(50, "--bins", "-b", help="Histogram bins over [0, 1]"),
    out: Optional[str] = typer.Option(None, "--out", "-o", help="Output PNG path (defaults to file.png)"),
):
    """Plot dominant-particle energy/electron fractions from a match file."""
    out_png = save_fraction_png(h5_path, out_png=out, bins=bins)
    typer.echo(f"Wrote {out_png}")

if __name__ == "__main__":
    app()
