"""Tests for the package metadata declared in setup.py."""

import ast
from pathlib import Path

SETUP_PY = Path(__file__).resolve().parent.parent / "setup.py"


def _setup_keywords():
    tree = ast.parse(SETUP_PY.read_text())
    call = next(
        node for node in ast.walk(tree)
        if isinstance(node, ast.Call) and getattr(node.func, "id", None) == "setup"
    )
    return {kw.arg: kw.value for kw in call.keywords}


class TestPackageMetadata:
    def test_declares_python_310_floor(self):
        # assetminder.utils.timezone annotates with PEP 604 unions
        keywords = _setup_keywords()

        assert ast.literal_eval(keywords["python_requires"]) == ">=3.10"
