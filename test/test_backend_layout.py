import unittest
from pathlib import Path


class TestBackendLayout(unittest.TestCase):
    def test_package_lives_under_backend(self) -> None:
        repo_root = Path(__file__).resolve().parents[1]

        self.assertTrue((repo_root / "backend" / "cineclub" / "__init__.py").exists())
        # setup.py maps the package from backend/; a root-level copy would shadow it.
        self.assertFalse((repo_root / "cineclub").exists())

    def test_every_package_dir_has_init(self) -> None:
        package_root = Path(__file__).resolve().parents[1] / "backend" / "cineclub"
        missing = [
            str(d.relative_to(package_root))
            for d in package_root.rglob("*")
            if d.is_dir() and d.name != "__pycache__" and any(d.glob("*.py")) and not (d / "__init__.py").exists()
        ]
        self.assertFalse(missing, msg=f"Directories without __init__.py: {missing}")


if __name__ == "__main__":
    unittest.main()
