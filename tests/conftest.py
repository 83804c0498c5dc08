# tests/conftest.py
# Put the project root (the folder that contains 'pseudoflow' and 'tests') on
# sys.path so `import pseudoflow` works without an install.

import sys
import pathlib
import textwrap

import pytest

ROOT = pathlib.Path(__file__).resolve().parents[1]
ROOT_STR = str(ROOT)

if ROOT_STR not in sys.path:
    sys.path.insert(0, ROOT_STR)

SAMPLES = ROOT / "samples"


@pytest.fixture
def samples_dir() -> pathlib.Path:
    return SAMPLES


@pytest.fixture
def grades_text() -> str:
    return textwrap.dedent("""\
        Start::
        Input grade::
        If grade >= 90::
            Output "A"::
        End if::
        End::
    """)
