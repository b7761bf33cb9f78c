import ast
import unittest
from pathlib import Path

_PACKAGE_ROOT = Path(__file__).resolve().parents[1] / "backend" / "cineclub"


def _iter_py_files(root: Path) -> list[Path]:
    return sorted(p for p in root.rglob("*.py") if "__pycache__" not in p.parts)


def _imported_modules(py_file: Path) -> list[str]:
    tree = ast.parse(py_file.read_text(encoding="utf-8"), filename=str(py_file))
    modules: list[str] = []
    for node in ast.walk(tree):
        if isinstance(node, ast.Import):
            modules.extend(alias.name for alias in node.names)
        elif isinstance(node, ast.ImportFrom) and node.module is not None and node.level == 0:
            modules.append(node.module)
    return modules


def _violations(layer: str, forbidden: tuple[str, ...]) -> list[str]:
    root = _PACKAGE_ROOT / layer
    found: list[str] = []
    for py_file in _iter_py_files(root):
        bad = [m for m in _imported_modules(py_file) if m.startswith(forbidden)]
        if bad:
            found.append(f"{py_file.relative_to(_PACKAGE_ROOT)}: {bad}")
    return found


class TestLayerBoundaryImports(unittest.TestCase):
    def test_domain_is_pure(self) -> None:
        forbidden = (
            "cineclub.application",
            "cineclub.infrastructure",
            "cineclub.server",
            "cineclub.config",
            "aiohttp",
            "asyncpg",
            "discord",
            "fastapi",
        )
        violations = _violations("domain", forbidden)
        self.assertFalse(violations, msg="Domain must not import outer layers:\n" + "\n".join(violations))

    def test_application_does_not_import_adapters(self) -> None:
        forbidden = ("cineclub.infrastructure", "cineclub.server", "aiohttp", "asyncpg", "discord", "fastapi")
        violations = _violations("application", forbidden)
        self.assertFalse(
            violations,
            msg="Application must depend on ports, not adapters:\n" + "\n".join(violations),
        )

    def test_infrastructure_does_not_import_server(self) -> None:
        violations = _violations("infrastructure", ("cineclub.server", "discord", "fastapi"))
        self.assertFalse(violations, msg="Infrastructure must not import server:\n" + "\n".join(violations))


if __name__ == "__main__":
    unittest.main()
