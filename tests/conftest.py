from __future__ import annotations

from datetime import datetime
from pathlib import Path

import pytest

from sitesmith.config import BuildConfig, load_config
from sitesmith.tasks import TaskContext

FIXED_NOW = datetime(2024, 3, 5, 14, 7)


@pytest.fixture(autouse=True)
def ci_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """
    Clears the CI flag so lint strictness only depends on what a test sets.
    Automatically applied to all tests.
    """
    monkeypatch.delenv("CI", raising=False)


@pytest.fixture
def project_root(tmp_path: Path) -> Path:
    """
    A dedicated temp site project for each test, with the standard source
    layout and no build output yet.
    """
    root = tmp_path / "proj"
    for rel in ("src/site/include", "src/site/pages", "src/js", "src/less", "src/css", "src/images"):
        (root / rel).mkdir(parents=True)
    return root


@pytest.fixture(autouse=True)
def chdir_to_project_root(project_root: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """
    Automatically change working directory to project_root for all tests.
    This ensures relative-path operations go into the temp directory by default.
    """
    monkeypatch.chdir(project_root)


def _write(root: Path, rel: str, content: str) -> Path:
    path = root / rel
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path


@pytest.fixture
def write(project_root: Path):
    """Write a text file under the project root, creating parent directories."""
    return lambda rel, content: _write(project_root, rel, content)


@pytest.fixture
def fixed_clock():
    return lambda: FIXED_NOW


@pytest.fixture
def config(project_root: Path) -> BuildConfig:
    return load_config(project_root)


@pytest.fixture
def context(config: BuildConfig, fixed_clock) -> TaskContext:
    return TaskContext(config, clock=fixed_clock)


@pytest.fixture
def site(project_root: Path) -> Path:
    """
    A small but complete site: two pages sharing header/footer fragments,
    a LESS entry, two scripts.
    """
    _write(project_root, "src/site/include/header.html", "<header>Site</header>\n")
    _write(project_root, "src/site/include/footer.html", "<footer>Bye</footer>\n")
    _write(
        project_root,
        "src/site/index.html",
        '<html>\n<head><link rel="stylesheet" href="../css/style.css"></head>\n<body>\n'
        '  include "header"\n<main class="home">Home</main>\n  include "footer"\n</body>\n</html>\n',
    )
    _write(
        project_root,
        "src/site/pages/about.html",
        '<html>\n<body>\ninclude "header.html"\n<main class="about">About</main>\n</body>\n</html>\n',
    )
    _write(project_root, "src/less/main.less", "@brand: #336699;\n.home { color: @brand; }\n.unused { margin: 0; }\n")
    _write(project_root, "src/js/a.js", "var a = 1;\n")
    _write(project_root, "src/js/b.js", "var b = a + 1;\n")
    return project_root
