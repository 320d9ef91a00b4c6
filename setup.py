"""
Living Loom Build Configuration

Usage:
    pip install -e .             # Library + API server
    pip install -e ".[test]"     # Plus test tooling
    uvicorn loom.api.main:app    # Run the HTTP API
"""

from setuptools import setup, find_packages

# ── Runtime stack ────────────────────────────────────────────────────────────
INSTALL_REQUIRES = [
    "pydantic>=2.0",
    "pydantic-settings>=2.0",
    "loguru>=0.7",
    "aiosqlite>=0.19",
    "fastapi>=0.100",
    "uvicorn>=0.23",
]

# ── Test tooling: opt-in via the "test" extra ────────────────────────────────
TEST_REQUIRES = [
    "pytest>=7.4",
    "pytest-asyncio>=0.21",
    "httpx>=0.24",  # fastapi.testclient transport
]

setup(
    name="living-loom",
    version="0.1.0",
    description="Consciousness metrics, hash-linked memory chains and reflection for chat sessions",
    packages=find_packages(include=["loom", "loom.*"]),
    install_requires=INSTALL_REQUIRES,
    extras_require={"test": TEST_REQUIRES},
    python_requires=">=3.11",
)
