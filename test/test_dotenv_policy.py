import ast
import unittest
from pathlib import Path


class TestDotenvPolicy(unittest.TestCase):
    def test_load_dotenv_only_in_settings_with_override_true(self) -> None:
        """`.env` is loaded once, by cineclub.config.settings, with override=True."""
        repo_root = Path(__file__).resolve().parents[1]
        package_root = repo_root / "backend" / "cineclub"
        allowed = package_root / "config" / "settings.py"

        offenders: list[str] = []
        calls_in_settings = 0

        for py_file in sorted(package_root.rglob("*.py")):
            if "__pycache__" in py_file.parts:
                continue

            tree = ast.parse(py_file.read_text(encoding="utf-8"), filename=str(py_file))
            for node in ast.walk(tree):
                if not isinstance(node, ast.Call):
                    continue
                func = node.func
                name = func.id if isinstance(func, ast.Name) else getattr(func, "attr", None)
                if name != "load_dotenv":
                    continue

                rel = py_file.relative_to(repo_root)
                if py_file != allowed:
                    offenders.append(f"{rel}: load_dotenv() outside config/settings.py")
                    continue
                calls_in_settings += 1
                if not any(
                    kw.arg == "override" and isinstance(kw.value, ast.Constant) and kw.value.value is True
                    for kw in node.keywords
                ):
                    offenders.append(f"{rel}: load_dotenv() must use override=True")

        self.assertFalse(offenders, msg="Dotenv policy violations:\n" + "\n".join(offenders))
        self.assertEqual(calls_in_settings, 1)


if __name__ == "__main__":
    unittest.main()
