"""APC harness: host side of the Android privacy-policy collector.

Drives the on-device extraction harness over adb and collects the results it
streams back over TCP into one file per application id.
"""

__all__ = [
    "cli",
    "collector",
    "config",
    "errors",
    "ids",
    "runtime",
]
