"""Script minification through rjsmin, with a build-metadata banner."""

from __future__ import annotations

from datetime import datetime

import rjsmin

from ..definitions import ProjectMetadata
from ..global_config import BANNER_DATE_FORMAT


def render_banner(template: str, *, now: datetime, project: ProjectMetadata) -> str:
    """Expand `{date}`, `{name}` and `{version}` in a banner template."""
    return template.format(
        date=now.strftime(BANNER_DATE_FORMAT),
        name=project.name,
        version=project.version,
    )


def minify_js(script: str, *, keep_bang_comments: bool = False) -> str:
    """Minify script source without changing its runtime behaviour."""
    return rjsmin.jsmin(script, keep_bang_comments=keep_bang_comments)
