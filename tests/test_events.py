import pytest

from wtdash.events import Action, InputChar, translate_key
from wtdash.input_buffer import InputBuffer, directory_completions


class TestTranslateKey:
    @pytest.mark.parametrize("key,character,expected", [
        ("j", "j", Action.DOWN),
        ("down", None, Action.DOWN),
        ("enter", "\r", Action.SELECT),
        ("escape", "\x1b", Action.CANCEL),
        ("R", "R", Action.REFRESH),
        ("ctrl+d", "\x04", Action.NEXT_PROJECT),
        ("question_mark", "?", Action.HELP),
        ("z", "z", None),
    ])
    def test_normal_mode(self, key, character, expected):
        assert translate_key(key, character, text_entry=False) == expected

    @pytest.mark.parametrize("key,character", [("q", "q"), ("d", "d"), ("space", " "), ("slash", "/")])
    def test_text_entry_delivers_characters(self, key, character):
        assert translate_key(key, character, text_entry=True) == InputChar(character)

    @pytest.mark.parametrize("key,character,expected", [
        ("p", "p", Action.GIT_PULL),
        ("P", "P", Action.GIT_PUSH),
        ("r", "r", Action.GIT_PULL_REBASE),
        ("m", "m", Action.GIT_MERGE_FROM),
        ("M", "M", Action.GIT_MERGE_INTO),
        ("escape", "\x1b", Action.CANCEL),
        ("q", "q", Action.QUIT),
    ])
    def test_git_popup_keys(self, key, character, expected):
        assert translate_key(key, character, text_entry=False, git_popup=True) == expected

    def test_git_letters_keep_normal_meaning_outside_popup(self):
        assert translate_key("g", "g", text_entry=False) == Action.GIT
        assert translate_key("p", "p", text_entry=False) == Action.ADD_PROJECT

    def test_text_entry_keeps_editing_keys(self):
        assert translate_key("backspace", None, text_entry=True) == Action.BACKSPACE
        assert translate_key("shift+tab", None, text_entry=True) == Action.BACKTAB

    def test_text_entry_ignores_control_characters(self):
        assert translate_key("ctrl+d", "\x04", text_entry=True) is None


class TestInputBuffer:
    def test_insert_at_cursor(self):
        buf = InputBuffer("Branch: ", "fe")
        buf.home()
        buf.right()
        buf.insert("X")

        assert buf.value == "fXe"
        assert buf.cursor == 2

    def test_backspace_and_delete(self):
        buf = InputBuffer("Name: ", "abc")
        buf.backspace()
        assert buf.value == "ab"

        buf.home()
        buf.backspace()
        assert buf.value == "ab"

        buf.delete()
        assert buf.value == "b"
        assert buf.cursor == 0

    def test_cursor_bounds(self):
        buf = InputBuffer("Name: ", "ab")
        buf.right()
        assert buf.cursor == 2
        buf.home()
        buf.left()
        assert buf.cursor == 0
        buf.end()
        assert buf.cursor == 2

    def test_completion_only_when_enabled(self, tmp_path):
        (tmp_path / "repo").mkdir()
        buf = InputBuffer("Name: ", f"{tmp_path}/")

        buf.cycle_completion()

        assert buf.value == f"{tmp_path}/"


class TestDirectoryCompletions:
    @pytest.fixture()
    def tree(self, tmp_path):
        for name in ("alpha", "alphabet", "beta", ".hidden"):
            (tmp_path / name).mkdir()
        (tmp_path / "alpha.txt").write_text("")
        return tmp_path

    def test_prefix_matches_first(self, tree):
        assert directory_completions(f"{tree}/al") == [f"{tree}/alpha/", f"{tree}/alphabet/"]

    def test_fuzzy_subsequence(self, tree):
        assert directory_completions(f"{tree}/bt") == [f"{tree}/beta/", f"{tree}/alphabet/"]

    def test_hidden_only_when_asked(self, tree):
        assert f"{tree}/.hidden/" not in directory_completions(f"{tree}/")
        assert directory_completions(f"{tree}/.h") == [f"{tree}/.hidden/"]

    def test_missing_parent(self, tmp_path):
        assert directory_completions(f"{tmp_path}/nope/x") == []

    def test_tab_cycles_and_wraps(self, tree):
        buf = InputBuffer("Path: ", f"{tree}/al", complete_paths=True)

        buf.cycle_completion()
        assert buf.value == f"{tree}/alpha/"
        buf.cycle_completion()
        assert buf.value == f"{tree}/alphabet/"
        buf.cycle_completion()
        assert buf.value == f"{tree}/alpha/"
        buf.cycle_completion(forward=False)
        assert buf.value == f"{tree}/alphabet/"

    def test_typing_resets_cycle(self, tree):
        buf = InputBuffer("Path: ", f"{tree}/al", complete_paths=True)
        buf.cycle_completion()
        buf.insert("b")

        assert buf.completion_index is None
        assert buf.completions == []
