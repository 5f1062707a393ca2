"""
sitesmith core package.

Builds a static site from a `src/` tree into `dist/`:
- Task kinds (`sitesmith.tasks`) each implement one build step: cleaning,
  include expansion, path rewriting, the stylesheet pipeline, copying,
  unused-selector removal, linting, bundling, minification and image
  compression.
- `sitesmith.composer` runs named pipelines of tasks in order.
- `sitesmith.watch` re-runs pipelines when sources change.
- A Typer-based CLI (`sitesmith.cli`) exposes one command per pipeline.

Configuration:
- Shared, project-wide anchors (directory names, file names, the browser
  matrix) live in `sitesmith.global_config`.
- `sitesmith.config` binds them to a project root and merges the optional
  `sitesmith.yaml` over the default task table in `sitesmith.defaults`.
"""
