from __future__ import annotations

from setuptools import find_packages, setup

setup(
    name="cineclub",
    version="0.1.0",
    # Repo convention: backend code lives under `backend/`, imported as `cineclub`.
    package_dir={"": "backend"},
    packages=find_packages(where="backend", include=["cineclub", "cineclub.*"]),
    python_requires=">=3.10",
    install_requires=[
        "pydantic>=2.10",
        "fastapi>=0.110",
        "uvicorn>=0.29",
        "aiohttp>=3.9",
        "asyncpg>=0.29",
        "python-dotenv>=1.0",
        "discord.py>=2.3",
    ],
    extras_require={
        # Test runner + TestClient transport.
        "test": ["pytest>=8.0", "httpx>=0.27"],
    },
    entry_points={
        "console_scripts": [
            "cineclub-server=cineclub.server.main:run",
        ],
    },
)
