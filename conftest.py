"""Pytest configuration for documentation examples."""

from os import chdir
from pathlib import Path
from tempfile import TemporaryDirectory
from typing import Any

import numpy as np
from sybil import Sybil
from sybil.parsers.markdown import PythonCodeBlockParser, SkipParser


def documentation_setup(namespace: dict[str, Any]) -> None:
    """Run documentation examples in a temporary directory with numpy imported."""
    namespace["np"] = np
    np.set_printoptions(precision=6, suppress=True)
    directory = Path(TemporaryDirectory().name)
    directory.mkdir(parents=True, exist_ok=True)
    chdir(directory)


pytest_collect_file = Sybil(
    parsers=[
        PythonCodeBlockParser(),
        SkipParser(),
    ],
    path=str(Path(__file__).parent / "docs"),
    pattern="**/*.md",
    setup=documentation_setup,
).pytest()
