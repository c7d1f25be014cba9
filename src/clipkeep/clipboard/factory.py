import platform
from typing import Optional

from clipkeep.clipboard.base import Pasteboard


def get_pasteboard(kind: Optional[str] = None) -> Pasteboard:
    """Pick a pasteboard adapter by name, or by platform when ``kind`` is None."""
    kind = (kind or platform.system()).lower()

    if kind == "memory":
        from clipkeep.clipboard.memory import MemoryPasteboard
        return MemoryPasteboard()
    elif kind == "linux":
        from clipkeep.clipboard.linux import LinuxPasteboard
        return LinuxPasteboard()
    else:
        raise NotImplementedError(f"Platform '{kind}' is not supported")
