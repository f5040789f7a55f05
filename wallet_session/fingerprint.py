"""
Device Fingerprint — stable identifier derived from device characteristics.

The fingerprint is the secret from which the local encryption key is
derived, so it must be stable for a given device and install. It is never
stored; it is recomputed whenever a key is needed.
"""
import sys
import time
import locale
import hashlib
import platform
from typing import Optional

from pydantic import BaseModel

from .version import __version__


class DeviceInfo(BaseModel):
    """Raw device characteristics hashed into the fingerprint.

    Missing values only degrade uniqueness, never correctness.
    """

    screen_width: int = 0
    screen_height: int = 0
    color_depth: int = 0
    timezone_offset: int = 0  # minutes behind UTC
    locale: str = ""
    platform: str = ""
    user_agent: str = ""

    @classmethod
    def from_environment(cls) -> "DeviceInfo":
        """Collect device characteristics from the running interpreter."""
        offset = time.altzone if time.localtime().tm_isdst > 0 else time.timezone
        lang = locale.getlocale()[0] or ""
        return cls(
            timezone_offset=offset // 60,
            locale=lang.replace("_", "-"),
            platform=platform.platform(),
            user_agent=(
                f"wallet-session/{__version__} "
                f"{platform.python_implementation()}/{platform.python_version()} "
                f"({sys.platform}; {platform.machine()})"
            ),
        )

    def raw(self) -> str:
        """Delimiter-joined representation fed to the hash."""
        screen = f"{self.screen_width}x{self.screen_height}x{self.color_depth}"
        return "|".join([
            screen,
            str(self.timezone_offset),
            self.locale,
            self.platform,
            self.user_agent,
        ])


def fingerprint(info: Optional[DeviceInfo] = None) -> str:
    """Return the SHA-256 hex fingerprint of a device.

    Args:
        info: Device characteristics; collected from the environment if omitted.

    Returns:
        64-char lowercase hex digest.
    """
    if info is None:
        info = DeviceInfo.from_environment()
    return hashlib.sha256(info.raw().encode("utf-8")).hexdigest()
