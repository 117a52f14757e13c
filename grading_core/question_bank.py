from __future__ import annotations
import json, importlib.resources as ir
from pathlib import Path
from typing import Union
from .types import Test


def load_test(path: Union[str, Path]) -> Test:
    raw = json.loads(Path(path).read_text(encoding="utf-8"))
    return Test.from_dict(raw)


def load_sample_test() -> Test:
    data = ir.files(__package__).joinpath("data/sample_test.json").read_text(encoding="utf-8")
    return Test.from_dict(json.loads(data))
