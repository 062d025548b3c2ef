import ast
import unittest
from pathlib import Path
from typing import Dict, Iterable, Set, Tuple


REPO_ROOT = Path(__file__).resolve().parents[1]

# Layering, innermost first:
#   corecollect/ (domain + IO contracts) <- tools/ (external programs) <- pipeline/ <- cli/
LAYER_RULES: Dict[str, Tuple[str, ...]] = {
    "corecollect": ("tools", "pipeline", "cli"),
    "tools": ("pipeline", "cli"),
    "pipeline": ("cli",),
}

# Third-party libraries stay at the edges that need them.
THIRD_PARTY_HOMES: Dict[str, Set[str]] = {
    "yaml": {"pipeline/config.py"},
    "dotenv": {"pipeline/wiring.py"},
    "requests": {"tools/upload.py", "pipeline/orchestrator.py"},
}


def iter_py_files(package_dir: Path) -> Iterable[Path]:
    for p in package_dir.rglob("*.py"):
        if "__pycache__" in p.parts or any(part.startswith(".") for part in p.parts):
            continue
        yield p


def imported_roots(py_file: Path) -> Set[str]:
    """Top-level names of every absolute import in ``py_file`` (lazy imports included)."""
    tree = ast.parse(py_file.read_text(encoding="utf-8", errors="ignore"), filename=str(py_file))
    roots: Set[str] = set()
    for node in ast.walk(tree):
        if isinstance(node, ast.Import):
            roots.update(alias.name.split(".", 1)[0] for alias in node.names)
        elif isinstance(node, ast.ImportFrom) and node.level == 0 and node.module:
            roots.add(node.module.split(".", 1)[0])
    return roots


def all_project_files() -> Iterable[Path]:
    for pkg in ("corecollect", "tools", "pipeline", "cli"):
        yield from iter_py_files(REPO_ROOT / pkg)
    yield REPO_ROOT / "corecollect_cli.py"


class TestDependencyBoundaries(unittest.TestCase):
    def test_layers_only_import_inwards(self) -> None:
        problems = []
        for pkg, forbidden in LAYER_RULES.items():
            for py_file in iter_py_files(REPO_ROOT / pkg):
                bad = sorted(imported_roots(py_file) & set(forbidden))
                if bad:
                    problems.append(f"{py_file.relative_to(REPO_ROOT)} imports {bad}")
        if problems:
            self.fail("Imports against the layering:\n" + "\n".join(problems))

    def test_third_party_libraries_stay_in_their_modules(self) -> None:
        problems = []
        for py_file in all_project_files():
            rel = py_file.relative_to(REPO_ROOT).as_posix()
            for lib, homes in THIRD_PARTY_HOMES.items():
                if lib in imported_roots(py_file) and rel not in homes:
                    problems.append(f"{rel} imports {lib} (allowed in: {sorted(homes)})")
        if problems:
            self.fail("Third-party imports outside their home modules:\n" + "\n".join(problems))


if __name__ == "__main__":
    unittest.main()
