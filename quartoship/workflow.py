"""Generate the GitHub Actions workflow that runs the pipeline on push."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from .config import Config

DEFAULT_WORKFLOW_PATH = Path(".github/workflows/quarto-publish.yml")


def build_workflow(config: Config, *, install_spec: str = "quartoship") -> dict[str, Any]:
    runtime = config.runtime
    packages = "\n".join(f"any::{name}" for name in runtime.packages)
    token_env = config.publish.token_env

    steps: list[dict[str, Any]] = [
        {"name": "Check out repository", "uses": "actions/checkout@v4"},
        {
            "name": f"Install {runtime.name}",
            "uses": "r-lib/actions/setup-r@v2",
            "with": {"r-version": runtime.version},
        },
        {
            "name": f"Install {runtime.name} deps",
            "uses": "r-lib/actions/setup-r-dependencies@v2",
            "with": {"packages": packages},
        },
        {"name": "Set up Quarto", "uses": "quarto-dev/quarto-actions/setup@v2"},
        {"name": "Set up Python", "uses": "actions/setup-python@v5", "with": {"python-version": "3.12"}},
        {"name": "Install quartoship", "run": f"pip install {install_spec}"},
        {
            "name": "Render, stamp and publish",
            "run": "quartoship run --skip-environment",
            "env": {token_env: "${{ secrets.GITHUB_TOKEN }}"},
        },
    ]
    if config.renderer.version:
        steps[3]["with"] = {"version": config.renderer.version}

    return {
        "name": "Render and Publish",
        "on": {"push": {"branches": [config.trigger.branch]}},
        "permissions": {"contents": "write", "pages": "write"},
        "concurrency": {"group": f"publish-{config.publish.branch}", "cancel-in-progress": False},
        "jobs": {
            "build-deploy": {
                "runs-on": "ubuntu-latest",
                "steps": steps,
            }
        },
    }


def render_workflow(config: Config, *, install_spec: str = "quartoship") -> str:
    payload = build_workflow(config, install_spec=install_spec)
    return yaml.safe_dump(payload, sort_keys=False, default_flow_style=False, width=100)


def write_workflow(
    config: Config,
    destination: Path | None = None,
    *,
    install_spec: str = "quartoship",
    force: bool = False,
) -> Path:
    target = destination or (config.project_dir / DEFAULT_WORKFLOW_PATH)
    if target.exists() and not force:
        raise FileExistsError(target)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(render_workflow(config, install_spec=install_spec), encoding="utf-8")
    return target
