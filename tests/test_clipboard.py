import subprocess
from unittest.mock import patch

import pytest

from clipkeep.clipboard import MemoryPasteboard, get_pasteboard
from clipkeep.clipboard.linux import LinuxPasteboard


class FakeSelection:
    """Stands in for wl-paste: a mapping of MIME target to bytes."""

    def __init__(self, targets):
        self.targets = dict(targets)

    def install(self, board):
        board._list_types = lambda: list(self.targets)
        board._reader = lambda: self.targets.get


def test_memory_pasteboard_counts_every_write():
    board = MemoryPasteboard()
    assert board.change_count == 0

    assert board.set_text("a", source_app="com.app") == 1
    assert (board.text(), board.source_app()) == ("a", "com.app")

    board.set_url("https://example.com")
    assert board.text() is None
    assert board.url() == "https://example.com"

    board.clear()
    assert board.change_count == 3
    assert (board.text(), board.url(), board.image(), board.file_urls()) == (None, None, None, [])


def test_factory():
    assert isinstance(get_pasteboard("memory"), MemoryPasteboard)
    assert isinstance(get_pasteboard("Linux"), LinuxPasteboard)
    with pytest.raises(NotImplementedError):
        get_pasteboard("amiga")


def test_linux_counter_only_moves_on_new_content():
    board = LinuxPasteboard()
    selection = FakeSelection({"text/plain;charset=utf-8": b"first"})
    selection.install(board)

    first = board.change_count
    assert board.change_count == first
    assert board.text() == "first"

    selection.targets["text/plain;charset=utf-8"] = b"second"
    assert board.change_count == first + 1
    assert board.text() == "second"


def test_linux_reads_files_and_links_from_uri_list():
    board = LinuxPasteboard()
    FakeSelection({
        "x-special/gnome-copied-files": b"copy\nfile:///tmp/a.txt\nfile:///tmp/b.png\n",
        "text/uri-list": b"ignored",
    }).install(board)

    board.change_count
    assert board.file_urls() == ["file:///tmp/a.txt", "file:///tmp/b.png"]
    assert board.url() is None

    board2 = LinuxPasteboard()
    FakeSelection({"text/uri-list": b"# comment\nhttps://example.com/page\n"}).install(board2)
    board2.change_count
    assert board2.url() == "https://example.com/page"
    assert board2.file_urls() == []


def test_linux_reads_images():
    board = LinuxPasteboard()
    FakeSelection({"image/png": b"\x89PNG fake"}).install(board)
    board.change_count
    assert board.image() == b"\x89PNG fake"
    assert board.text() is None


def test_linux_empty_selection():
    board = LinuxPasteboard()
    FakeSelection({}).install(board)
    board.change_count
    assert board.text() is None
    assert board.file_urls() == []


def test_run_command_swallows_missing_tools():
    with patch("clipkeep.clipboard.linux.subprocess.run", side_effect=FileNotFoundError):
        assert LinuxPasteboard._run_command(["wl-paste"]) is None
    error = subprocess.CalledProcessError(1, ["xclip"])
    with patch("clipkeep.clipboard.linux.subprocess.run", side_effect=error):
        assert LinuxPasteboard._run_command(["xclip"]) is None


def test_clear_without_tools_logs_warning(caplog):
    board = LinuxPasteboard()
    with patch("clipkeep.clipboard.linux.shutil.which", return_value=None):
        board.clear()
    assert "Could not clear" in caplog.text
