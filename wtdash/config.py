"""Configuration loading and saving.

Reads the global project registry from `~/.config/wtdash/config.toml` and the
per-project `.gtrconfig` (gitconfig syntax) from each repository root.
"""

import logging
import tomllib
from pathlib import Path

import git as gitpython
from pydantic import BaseModel, ConfigDict, Field

from wtdash.constants import PROJECT_CONFIG_NAME, STATE_DIR
from wtdash.models import ProjectConfig

logger = logging.getLogger(__name__)


class ProjectEntry(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str
    path: str
    aliases: dict[str, str] = Field(default_factory=dict)


class GlobalConfig(BaseModel):
    model_config = ConfigDict(extra="ignore")

    projects: list[ProjectEntry] = Field(default_factory=list)

    def get_project(self, path: str) -> ProjectEntry | None:
        for entry in self.projects:
            if entry.path == path:
                return entry
        return None

    def add_project(self, name: str, path: str) -> ProjectEntry:
        """Register a project. Re-adding an existing path is a no-op."""
        existing = self.get_project(path)
        if existing:
            return existing
        entry = ProjectEntry(name=name, path=path)
        self.projects.append(entry)
        return entry

    def remove_project(self, path: str) -> None:
        self.projects = [e for e in self.projects if e.path != path]

    def set_alias(self, path: str, branch: str, alias: str) -> None:
        """Set the alias for branch. An empty alias removes it."""
        entry = self.get_project(path)
        if entry is None:
            return
        if alias:
            entry.aliases[branch] = alias
        else:
            entry.aliases.pop(branch, None)

    def aliases_for(self, path: str) -> dict[str, str]:
        entry = self.get_project(path)
        return dict(entry.aliases) if entry else {}

    def aliases_by_path(self) -> dict[str, dict[str, str]]:
        return {e.path: dict(e.aliases) for e in self.projects}

    def move_project(self, path: str, delta: int) -> bool:
        """Shift a project by delta positions. Returns False at the edges."""
        idx = next((i for i, e in enumerate(self.projects) if e.path == path), None)
        if idx is None:
            return False
        target = idx + delta
        if not 0 <= target < len(self.projects):
            return False
        self.projects[idx], self.projects[target] = self.projects[target], self.projects[idx]
        return True


def config_path() -> Path:
    return STATE_DIR / "config.toml"


def expand_path(raw: str) -> Path:
    """Expand a leading `~` and return an absolute path."""
    raw = raw.strip()
    if not raw:
        return Path()
    return Path(raw).expanduser().absolute()


def load_global_config(path: Path | None = None) -> GlobalConfig:
    path = path or config_path()
    if not path.exists():
        return GlobalConfig()
    with open(path, "rb") as f:
        data = tomllib.load(f)
    return GlobalConfig.model_validate(data)


def save_global_config(config: GlobalConfig, path: Path | None = None) -> Path:
    """Write the project registry as TOML. Returns the path written."""
    path = path or config_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    lines: list[str] = []
    for entry in config.projects:
        lines.append("[[projects]]")
        lines.append(f"name = {_toml_value(entry.name)}")
        lines.append(f"path = {_toml_value(entry.path)}")
        if entry.aliases:
            pairs = ", ".join(
                f"{_toml_value(branch)} = {_toml_value(alias)}" for branch, alias in entry.aliases.items()
            )
            lines.append(f"aliases = {{ {pairs} }}")
        lines.append("")
    tmp = path.with_suffix(".tmp")
    tmp.write_text("\n".join(lines))
    tmp.rename(path)
    return path


def _toml_value(value: object) -> str:
    """Format a Python value as TOML."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, list):
        items = ", ".join(_toml_value(v) for v in value)
        return f"[{items}]"
    if isinstance(value, str):
        return f'"{_escape_toml_str(value)}"'
    return str(value)


def _escape_toml_str(s: str) -> str:
    return s.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")


def project_config_path(repo_path: str | Path) -> Path:
    return Path(repo_path) / PROJECT_CONFIG_NAME


def load_project_config(repo_path: str | Path) -> ProjectConfig:
    """Parse `.gtrconfig`. Missing or unreadable files yield defaults."""
    path = project_config_path(repo_path)
    if not path.exists():
        return ProjectConfig()
    try:
        parser = gitpython.GitConfigParser(str(path), read_only=True)
        parser.read()
        post_create = parser.get_value("hooks", "postCreate", default="") or None
        include = _multi_value(parser, "copy", "include")
        exclude = _multi_value(parser, "copy", "exclude")
    except Exception:
        logger.warning("Failed to parse project config", extra={"path": str(path)}, exc_info=True)
        return ProjectConfig()
    return ProjectConfig(
        post_create=str(post_create) if post_create else None,
        copy_include=include,
        copy_exclude=exclude,
    )


def _multi_value(parser: gitpython.GitConfigParser, section: str, option: str) -> list[str]:
    if not parser.has_option(section, option):
        return []
    return [str(v) for v in parser.get_values(section, option)]
