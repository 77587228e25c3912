"""Discovery of test categories and test units under a tests root."""

import logging
import os
from pathlib import Path
from typing import Iterable

from .config import ConfigurationError
from .models import TestCategory, TestFile

logger = logging.getLogger(__name__)

INTRO_FILE = "intro.html"


def discover_categories(root: Path, extension: str = ".py") -> list[TestCategory]:
    """
    Discover all test categories under root.

    Every first-level subdirectory whose name does not begin with '.' is a
    category. Its test units are the files directly inside it with the given
    extension; nested directories (per-test assets) are never searched.

    Args:
        root: Directory holding one subdirectory per category
        extension: Test source extension, including the dot

    Returns:
        Categories sorted by name, files sorted by name within each
    """
    root = Path(root)
    if not root.is_dir():
        raise ConfigurationError(f"Tests root does not exist: {root}")

    categories = []
    for item in sorted(os.listdir(root)):
        item_path = root / item

        if item.startswith('.') or not item_path.is_dir():
            continue

        files = tuple(
            TestFile(p) for p in sorted(item_path.iterdir())
            if p.is_file() and p.suffix == extension
        )

        intro = None
        intro_path = item_path / INTRO_FILE
        if intro_path.is_file():
            intro = intro_path.read_text(errors='replace')

        categories.append(TestCategory(name=item, path=item_path, files=files, intro=intro))

    logger.info(f"Discovered {len(categories)} categories under {root}")
    return categories


def find_test_files(categories: Iterable[TestCategory], names: Iterable[str] = ()) -> list[TestFile]:
    """Select the test files of the named categories (all when names is empty)."""
    wanted = set(names)
    known = set()
    selected = []
    for category in categories:
        known.add(category.name)
        if not wanted or category.name in wanted:
            selected.extend(category.files)

    for missing in sorted(wanted - known):
        logger.warning(f"Unknown test category: {missing}")
    return selected
