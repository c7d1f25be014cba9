import hashlib
import logging
import os
import shutil
import subprocess
import threading
from dataclasses import dataclass, field
from typing import Callable, List, Optional
from urllib.parse import urlparse

from clipkeep.clipboard.base import Pasteboard

logger = logging.getLogger(__name__)

COMMAND_TIMEOUT = 1.5


@dataclass
class _Snapshot:
    text: Optional[str] = None
    url: Optional[str] = None
    image: Optional[bytes] = None
    file_urls: List[str] = field(default_factory=list)

    def digest(self) -> str:
        sha = hashlib.sha256()
        sha.update((self.text or "").encode("utf-8"))
        sha.update(b"\0" + (self.url or "").encode("utf-8"))
        sha.update(b"\0" + (self.image or b"")[:4096])
        sha.update(b"\0" + "\n".join(self.file_urls).encode("utf-8"))
        return sha.hexdigest()


class LinuxPasteboard(Pasteboard):
    """Clipboard access through ``wl-paste``/``wl-copy`` or ``xclip``.

    X11 and Wayland expose no change counter, so one is synthesized: each
    read of ``change_count`` takes a fresh snapshot and bumps the counter
    when its digest differs from the previous one.
    """

    _FILE_TARGETS = ("x-special/gnome-copied-files", "text/uri-list")
    _IMAGE_TARGETS = ("image/png", "image/jpeg", "image/jpg", "image/bmp", "image/webp")
    _TEXT_TARGETS = ("text/plain;charset=utf-8", "text/plain", "utf8_string", "string")

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._count = 0
        self._digest: Optional[str] = None
        self._snapshot = _Snapshot()

    # -- backends ----------------------------------------------------------

    @staticmethod
    def _run_command(command: List[str], payload: Optional[bytes] = None) -> Optional[bytes]:
        try:
            result = subprocess.run(
                command,
                input=payload,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                check=True,
                timeout=COMMAND_TIMEOUT,
            )
            return result.stdout
        except (subprocess.CalledProcessError, subprocess.TimeoutExpired, FileNotFoundError):
            return None

    @staticmethod
    def _use_wayland() -> bool:
        return bool(os.environ.get("WAYLAND_DISPLAY")) and shutil.which("wl-paste") is not None

    def _list_types(self) -> List[str]:
        if self._use_wayland():
            data = self._run_command(["wl-paste", "--list-types"])
        elif shutil.which("xclip"):
            data = self._run_command(["xclip", "-selection", "clipboard", "-t", "TARGETS", "-o"])
        else:
            return []
        if not data:
            return []
        text = data.decode("utf-8", errors="ignore")
        return [line.strip() for line in text.splitlines() if line.strip()]

    def _reader(self) -> Callable[[str], Optional[bytes]]:
        if self._use_wayland():
            def read(target: str) -> Optional[bytes]:
                command = ["wl-paste", "--type", target]
                if target.startswith("text/"):
                    command.append("--no-newline")
                return self._run_command(command)
        else:
            def read(target: str) -> Optional[bytes]:
                return self._run_command(["xclip", "-selection", "clipboard", "-t", target, "-o"])
        return read

    @staticmethod
    def _parse_uri_list(data: bytes) -> List[str]:
        lines = [line.strip() for line in data.decode("utf-8", errors="ignore").splitlines()]
        lines = [line for line in lines if line and not line.startswith("#")]
        if lines and lines[0].lower() in {"copy", "cut"}:
            lines = lines[1:]
        return lines

    def _read_snapshot(self) -> _Snapshot:
        types = self._list_types()
        if not types:
            return _Snapshot()
        lowered = {target.lower(): target for target in types}
        read = self._reader()
        snapshot = _Snapshot()

        for target in self._FILE_TARGETS:
            if target in lowered:
                data = read(lowered[target])
                if data:
                    uris = self._parse_uri_list(data)
                    snapshot.file_urls = [u for u in uris if urlparse(u).scheme == "file"]
                    others = [u for u in uris if urlparse(u).scheme not in ("", "file")]
                    if others:
                        snapshot.url = others[0]
                    break

        for target in self._IMAGE_TARGETS:
            if target in lowered:
                data = read(lowered[target])
                if data:
                    snapshot.image = data
                    break

        for target in self._TEXT_TARGETS:
            if target in lowered:
                data = read(lowered[target])
                if data:
                    snapshot.text = data.decode("utf-8", errors="ignore")
                    break
        return snapshot

    # -- Pasteboard --------------------------------------------------------

    @property
    def change_count(self) -> int:
        snapshot = self._read_snapshot()
        digest = snapshot.digest()
        with self._lock:
            if digest != self._digest:
                self._digest = digest
                self._snapshot = snapshot
                self._count += 1
            return self._count

    def text(self) -> Optional[str]:
        with self._lock:
            return self._snapshot.text

    def url(self) -> Optional[str]:
        with self._lock:
            return self._snapshot.url

    def image(self) -> Optional[bytes]:
        with self._lock:
            return self._snapshot.image

    def file_urls(self) -> List[str]:
        with self._lock:
            return list(self._snapshot.file_urls)

    def clear(self) -> None:
        if shutil.which("wl-copy") and os.environ.get("WAYLAND_DISPLAY"):
            cleared = self._run_command(["wl-copy", "--clear"]) is not None
        elif shutil.which("xclip"):
            cleared = self._run_command(["xclip", "-selection", "clipboard"], payload=b"") is not None
        else:
            cleared = False
        if not cleared:
            logger.warning("Could not clear the system clipboard")
