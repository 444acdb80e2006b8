import numpy as np
from pathlib import Path

from mchitmatch.io.match_store import read_matches

def save_fraction_png(h5_path: str, out_png: str | None = None, bins: int = 50):
    """
    Histogram the energy and electron fractions of the dominant contributor
    of each hit. Hits with zero deposited totals (non-finite fractions) are
    left out of the plot and counted in the title.
    """
    import matplotlib.pyplot as plt

    h5_path = str(h5_path)
    cols = read_matches(h5_path)

    e_frac = cols["energy_fraction"][cols["is_max_energy"]]
    n_frac = cols["electron_fraction"][cols["is_max_electrons"]]
    n_bad = int(np.count_nonzero(~np.isfinite(e_frac)))
    e_frac = e_frac[np.isfinite(e_frac)]
    n_frac = n_frac[np.isfinite(n_frac)]

    if out_png is None:
        out_png = str(Path(h5_path).with_suffix(".png"))

    edges = np.linspace(0.0, 1.0, bins + 1)
    fig = plt.figure()
    plt.hist(e_frac, bins=edges, histtype="step", label="energy")
    plt.hist(n_frac, bins=edges, histtype="step", label="electrons")
    plt.xlabel("fraction from dominant particle")
    plt.ylabel("hits")
    plt.legend()
    plt.title(Path(h5_path).name + f" : {e_frac.size} hits, {n_bad} non-finite")
    plt.tight_layout()
    plt.savefig(out_png, dpi=150)
    plt.close(fig)
    return out_png
