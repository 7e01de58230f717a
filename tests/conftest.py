"""Shared test fixtures and configuration."""

import os
from pathlib import Path

import pytest

from cranfield_search.search.indexer import build_index
from cranfield_search.search.models import Document


CRAN_DOCS = """\
.I 1
.T
experimental investigation of the aerodynamics of a
wing in a slipstream .
.A
brenckman,m.
.B
j. ae. scs. 25, 1958, 324.
.W
experimental investigation of the aerodynamics of a
wing in a slipstream .
  an experimental study of a wing in a propeller slipstream was
made in order to determine the spanwise distribution of the lift
increase due to slipstream at different angles of attack of the wing .
.I 2
.T
simple shear flow past a flat plate in an incompressible fluid of small
viscosity .
.A
ting-yili
.B
department of aeronautical engineering, rensselaer polytechnic
institute troy, n.y.
.W
simple shear flow past a flat plate in an incompressible fluid of small
viscosity .
in the study of high-speed viscous flow past a two-dimensional body it
is usually necessary to consider a curved shock wave emitting from the
nose or leading edge of the body .
.I 3
.T
the boundary layer in simple shear flow past a flat plate .
.A
m. b. glauert
.B
zamp, 1956, 7, 301.
.W
the boundary-layer equations are presented for steady
incompressible flow with pressure gradient .
.I 4
.T
approximate solutions of the incompressible laminar
boundary layer equations for a plate in shear flow .
.A
yen,k.t.
.B
j. ae. scs. 22, 1955, 728.
.W
the two-dimensional steady boundary-layer problem for a flat plate in a
shear flow of incompressible fluid is considered .
.I 5
.T
one-dimensional transient heat conduction into a double-layer
slab subjected to a linear heat input for a small time
internal .
.A
wasserman,b.
.B
j. ae. scs. 24, 1957, 924.
.W
analytic solutions are presented for the transient heat conduction
in composite slabs exposed at one surface to a
triangular heat rate .  the jet engine exhaust heats the slab .
"""

CRAN_QUERIES = """\
.I 001
.W
what similarity laws must be obeyed when constructing aeroelastic models
of heated high speed aircraft .
.I 002
.W
what are the structural and aeroelastic problems associated with flight
of high speed aircraft .
.I 004
.W
???
.I 008
.W
can a criterion be developed to show empirically the validity of flow
solutions for chemically reacting gas mixtures based on the simplifying
assumption of instantaneous local chemical equilibrium .
.I 009
.W
wing slipstream lift
"""

CRAN_QRELS = """\
1 184 2
1 29 2
2 12 3
5 1 4
5 3 -1
"""


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Keep CRAN_* variables from the developer shell out of every test."""
    for key in list(os.environ):
        if key.upper().startswith("CRAN_"):
            monkeypatch.delenv(key, raising=False)


@pytest.fixture
def two_documents():
    """The smallest collection where BM25 ranking is observable."""
    return [
        Document(id="1", fields={"title": "wing design", "content": "the wing generates lift"}),
        Document(id="2", fields={"title": "engine test", "content": "the engine provides thrust"}),
    ]


@pytest.fixture
def small_collection():
    return [
        Document(
            id="1",
            fields={
                "title": "wing design for supersonic aircraft",
                "author": "smith",
                "content": "the wing generates lift at supersonic speeds and the wing shape matters",
            },
        ),
        Document(
            id="2",
            fields={
                "title": "engine test results",
                "author": "jones",
                "content": "the engine provides thrust for the aircraft during the test",
            },
        ),
        Document(
            id="3",
            fields={
                "title": "boundary layer flow",
                "author": "smith",
                "content": "laminar boundary layer flow over a flat plate with pressure gradient",
            },
        ),
        Document(
            id="4",
            fields={
                "title": "airplane wing loads",
                "content": "measured loads on an airplane wing in turbulent flow",
            },
        ),
        Document(
            id="5",
            fields={
                "title": "heat transfer in slabs",
                "author": "wasserman",
                "content": "transient heat conduction in composite slabs",
            },
        ),
    ]


@pytest.fixture
def english_index(small_collection):
    return build_index(small_collection, default_analyzer="english")


@pytest.fixture
def cranfield_dir(tmp_path: Path) -> Path:
    """A directory laid out like the distributed Cranfield files."""
    root = tmp_path / "cran"
    root.mkdir()
    (root / "cran.all.1400").write_text(CRAN_DOCS, encoding="utf-8")
    (root / "cran.qry").write_text(CRAN_QUERIES, encoding="utf-8")
    (root / "cranqrel").write_text(CRAN_QRELS, encoding="utf-8")
    return root
