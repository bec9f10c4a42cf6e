from pathlib import Path

import pytest

from wtdash.config import (
    GlobalConfig,
    ProjectEntry,
    config_path,
    expand_path,
    load_global_config,
    load_project_config,
    save_global_config,
)
from wtdash.models import ProjectConfig


class TestGlobalConfig:
    def test_add_is_idempotent(self):
        config = GlobalConfig()

        config.add_project("alpha", "/repos/alpha")
        config.add_project("other-name", "/repos/alpha")

        assert [e.name for e in config.projects] == ["alpha"]

    def test_aliases(self):
        config = GlobalConfig(projects=[ProjectEntry(name="alpha", path="/repos/alpha")])

        config.set_alias("/repos/alpha", "feat/x", "login")
        assert config.aliases_for("/repos/alpha") == {"feat/x": "login"}

        config.set_alias("/repos/alpha", "feat/x", "")
        assert config.aliases_for("/repos/alpha") == {}

    def test_alias_for_unknown_project_ignored(self):
        config = GlobalConfig()

        config.set_alias("/nowhere", "main", "x")

        assert config.aliases_by_path() == {}

    @pytest.mark.parametrize("path,delta,moved,order", [
        ("/b", -1, True, ["/b", "/a", "/c"]),
        ("/b", 1, True, ["/a", "/c", "/b"]),
        ("/a", -1, False, ["/a", "/b", "/c"]),
        ("/c", 1, False, ["/a", "/b", "/c"]),
        ("/zzz", 1, False, ["/a", "/b", "/c"]),
    ])
    def test_move_project(self, path, delta, moved, order):
        config = GlobalConfig(projects=[ProjectEntry(name=p, path=p) for p in ("/a", "/b", "/c")])

        assert config.move_project(path, delta) is moved
        assert [e.path for e in config.projects] == order

    def test_remove(self):
        config = GlobalConfig(projects=[ProjectEntry(name="a", path="/a"), ProjectEntry(name="b", path="/b")])

        config.remove_project("/a")

        assert [e.path for e in config.projects] == ["/b"]


class TestPersistence:
    def test_missing_file_is_empty(self, tmp_path):
        assert load_global_config(tmp_path / "none.toml") == GlobalConfig()

    def test_round_trip(self, tmp_path):
        config = GlobalConfig(projects=[
            ProjectEntry(name="alpha", path="/repos/alpha", aliases={"feat/x": "login", "fix": 'say "hi"'}),
            ProjectEntry(name="beta", path="C:\\odd\\path"),
        ])
        path = tmp_path / "config.toml"

        save_global_config(config, path)

        assert load_global_config(path) == config
        assert not path.with_suffix(".tmp").exists()

    def test_default_location(self):
        config = GlobalConfig(projects=[ProjectEntry(name="alpha", path="/repos/alpha")])

        written = save_global_config(config)

        assert written == config_path()
        assert load_global_config() == config

    def test_unknown_keys_ignored(self, tmp_path):
        path = tmp_path / "config.toml"
        path.write_text('theme = "dark"\n[[projects]]\nname = "a"\npath = "/a"\ncolor = "red"\n')

        assert load_global_config(path).projects == [ProjectEntry(name="a", path="/a")]


class TestExpandPath:
    def test_tilde(self):
        assert expand_path("~/code") == Path.home() / "code"

    def test_relative_becomes_absolute(self):
        assert expand_path("  repo  ") == Path.cwd() / "repo"

    def test_blank(self):
        assert expand_path("   ") == Path()


class TestProjectConfig:
    def test_missing_file_gives_defaults(self, tmp_path):
        assert load_project_config(tmp_path) == ProjectConfig()

    def test_reads_hooks_and_copy_patterns(self, tmp_path):
        (tmp_path / ".gtrconfig").write_text(
            "[hooks]\n"
            "\tpostCreate = npm install\n"
            "[copy]\n"
            "\tinclude = .env\n"
            "\tinclude = .env.local\n"
            "\texclude = node_modules\n"
        )

        cfg = load_project_config(tmp_path)

        assert cfg.post_create == "npm install"
        assert cfg.copy_include == [".env", ".env.local"]
        assert cfg.copy_exclude == ["node_modules"]

    def test_partial_file(self, tmp_path):
        (tmp_path / ".gtrconfig").write_text("[copy]\n\tinclude = .env\n")

        cfg = load_project_config(tmp_path)

        assert cfg.post_create is None
        assert cfg.copy_include == [".env"]
        assert cfg.copy_exclude == []
