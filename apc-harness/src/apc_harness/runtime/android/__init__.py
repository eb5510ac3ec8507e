"""Android runtime helpers.

Thin wrappers around adb so that every command is bound to one device and
logged as the exact token sequence that was run.
"""
