from enum import Enum
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator

CONFIG_FILENAME = "quartoship.yml"


def _default_packages() -> list[str]:
    return ["knitr", "rmarkdown", "downlit", "xml2", "purrr"]


class TriggerConfig(BaseModel):
    """Which source-control events start a pipeline run."""

    branch: str = Field(default="main", description="Primary branch whose pushes publish the site.")
    events: list[str] = Field(default_factory=lambda: ["push"])

    @field_validator("branch")
    def _strip_ref_prefix(cls, value: str) -> str:
        text = value.strip()
        if text.startswith("refs/heads/"):
            text = text[len("refs/heads/") :]
        if not text:
            raise ValueError("trigger.branch cannot be empty")
        return text


class RuntimeConfig(BaseModel):
    """Document-processing runtime pinned for reproducible renders."""

    name: str = Field(default="R")
    version: str = Field(default="4.2.0", description="Exact runtime version expected on PATH.")
    executable: str = Field(default="Rscript")
    packages: list[str] = Field(default_factory=_default_packages)
    repos: str = Field(default="https://cloud.r-project.org")

    @field_validator("version")
    def _validate_version(cls, value: str) -> str:
        text = str(value).strip()
        parts = text.split(".")
        if not parts or not all(part.isdigit() for part in parts):
            raise ValueError(f"runtime.version must be dotted digits, got '{value}'")
        return text

    @field_validator("packages")
    def _dedupe_packages(cls, value: list[str]) -> list[str]:
        seen: list[str] = []
        for entry in value:
            name = entry.strip()
            if name.startswith("any::"):
                name = name[len("any::") :]
            if name and name not in seen:
                seen.append(name)
        return seen


class RendererConfig(BaseModel):
    """External static-site renderer invocation."""

    executable: str = Field(default="quarto")
    version: str | None = Field(default=None, description="Optional renderer version pin.")
    extra_args: list[str] = Field(default_factory=list)
    content_suffixes: list[str] = Field(default_factory=lambda: [".qmd", ".md", ".rmd", ".ipynb"])

    @field_validator("content_suffixes")
    def _normalize_suffixes(cls, value: list[str]) -> list[str]:
        normalized: list[str] = []
        for entry in value:
            text = entry.strip().lower()
            if not text:
                continue
            if not text.startswith("."):
                text = f".{text}"
            normalized.append(text)
        return normalized


class DomainConfig(BaseModel):
    """Custom domain written into the hosting marker file."""

    name: str | None = Field(default=None, description="Custom domain, e.g. 'blog.example.org'.")
    marker_filename: str = Field(default="CNAME")

    @field_validator("name", mode="before")
    def _blank_to_none(cls, value: Any) -> str | None:
        if value is None:
            return None
        text = str(value).strip()
        return text or None


class PublishBackend(str, Enum):
    """Mechanism used to push rendered output to the hosting branch."""

    GIT = "git"
    QUARTO = "quarto"


class PublishConfig(BaseModel):
    """Hosting target and credentials lookup."""

    backend: PublishBackend = Field(default=PublishBackend.GIT)
    branch: str = Field(default="gh-pages")
    remote: str | None = Field(
        default=None,
        description="Remote URL or 'owner/repo'. Defaults to GITHUB_REPOSITORY when unset.",
    )
    token_env: str = Field(default="GITHUB_TOKEN")
    commit_message: str = Field(default="Publish site from {sha}")
    author_name: str = Field(default="github-actions[bot]")
    author_email: str = Field(default="41898282+github-actions[bot]@users.noreply.github.com")
    nojekyll: bool = Field(default=True, description="Write .nojekyll so Pages serves files verbatim.")


class ConcurrencyConfig(BaseModel):
    """Guards against overlapping runs for the same hosting branch."""

    lock_enabled: bool = Field(default=True)
    stale_after_seconds: int = Field(default=3600, ge=1)
    skip_unchanged: bool = Field(
        default=True,
        description="Skip the push when the stamped output matches the last published digest.",
    )


class Config(BaseModel):
    project_name: str = Field(default="Quarto Site")
    project_dir: Path = Field(default=Path("."))
    output_dir: Path = Field(default=Path("docs"))
    cache_dir: Path = Field(default=Path(".quartoship"))
    trigger: TriggerConfig = Field(default_factory=TriggerConfig)
    runtime: RuntimeConfig = Field(default_factory=RuntimeConfig)
    renderer: RendererConfig = Field(default_factory=RendererConfig)
    domain: DomainConfig = Field(default_factory=DomainConfig)
    publish: PublishConfig = Field(default_factory=PublishConfig)
    concurrency: ConcurrencyConfig = Field(default_factory=ConcurrencyConfig)

    @field_validator("project_dir", "output_dir", "cache_dir", mode="before")
    def _ensure_path(cls, value: Any) -> Path:
        return Path(value)

    @property
    def marker_path(self) -> Path:
        return self.output_dir / self.domain.marker_filename

    @property
    def excluded_dirs(self) -> list[Path]:
        return [self.output_dir, self.cache_dir]


def load_config(path: str | Path) -> Config:
    """Load configuration and resolve relative paths based on the config location.

    ``path`` may point to a ``quartoship.yml`` file or to the directory holding
    it. A directory without the file yields defaults anchored to that directory.
    """
    candidate = Path(path)
    data: dict[str, Any] = {}
    if candidate.is_dir():
        config_file = candidate / CONFIG_FILENAME
        if config_file.exists():
            data = _read_yaml(config_file)
        base_dir = candidate.resolve()
    else:
        if not candidate.exists():
            raise FileNotFoundError(candidate)
        data = _read_yaml(candidate)
        base_dir = candidate.parent.resolve()

    cfg = Config(**data)

    def _abs(value: Path) -> Path:
        return value if value.is_absolute() else (base_dir / value).resolve()

    cfg.project_dir = _abs(cfg.project_dir)
    # output_dir follows Quarto's project.output-dir and hangs off the content tree.
    cfg.output_dir = cfg.output_dir if cfg.output_dir.is_absolute() else (cfg.project_dir / cfg.output_dir).resolve()
    cfg.cache_dir = _abs(cfg.cache_dir)
    return cfg


def _read_yaml(path: Path) -> dict[str, Any]:
    with path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Configuration at {path} must be a mapping.")
    return data
