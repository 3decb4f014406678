"""Local path constants for release-deployer.

Local state lives under the .release-deployer directory:
- .release-deployer/downloads/   # Tarballs fetched by the tarball strategy
"""

from pathlib import Path

# 基础目录（在当前工作目录下）
BASE_DIR = Path(".release-deployer")

DOWNLOADS_DIR = BASE_DIR / "downloads"
DEFAULT_CONFIG_PATH = Path("config") / "deploy.json"


def get_downloads_dir() -> Path:
    """Return the tarball download directory, creating it when missing."""
    DOWNLOADS_DIR.mkdir(parents=True, exist_ok=True)
    return DOWNLOADS_DIR
