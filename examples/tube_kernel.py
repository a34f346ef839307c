"""Example mesh kernel: a plain threadless tube sized like the adapter body.

Use it to try the export pipeline without a real thread kernel::

    pipefit export examples/adapter.json --kernel examples/tube_kernel.py:build
"""

from __future__ import annotations

import numpy as np

_MAJOR_DIAMETER_MM = {"1/4": 13.157, "3/8": 16.662, "1/2": 20.955, "3/4": 26.441, "1": 33.249}


def build(record: dict) -> dict:
    majors = [_MAJOR_DIAMETER_MM[record[end]["size"]] for end in ("endA", "endB")]
    outer_r = max(majors) / 2.0 + record["wall_thickness_mm"]
    inner_r = max(min(majors) / 2.0 - 0.7 - record["tolerance_mm"], 0.8)
    half = record["body"]["length_mm"] / 2.0
    seg = int(record["resolution"]["radial_segments"])

    theta = np.linspace(0.0, 2.0 * np.pi, seg, endpoint=False)
    cos, sin = np.cos(theta), np.sin(theta)
    rings = [
        np.column_stack([r * cos, r * sin, np.full(seg, z)])
        for r, z in ((outer_r, -half), (outer_r, half), (inner_r, -half), (inner_r, half))
    ]
    vertices = np.vstack(rings)

    s = np.arange(seg)
    n = (s + 1) % seg
    ob, ot, ib, it = 0, seg, 2 * seg, 3 * seg
    faces = np.vstack(
        [
            np.column_stack([ob + s, ob + n, ot + n]),
            np.column_stack([ob + s, ot + n, ot + s]),
            np.column_stack([ib + s, it + s, it + n]),
            np.column_stack([ib + s, it + n, ib + n]),
            np.column_stack([ib + s, ib + n, ob + n]),
            np.column_stack([ib + s, ob + n, ob + s]),
            np.column_stack([it + s, ot + s, ot + n]),
            np.column_stack([it + s, ot + n, it + n]),
        ]
    )
    return {"vertices": vertices.ravel().tolist(), "indices": faces.ravel().tolist()}
