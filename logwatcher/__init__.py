"""
LogWatcher: email alerts on bursts of changes to a single log file.

Provides a CLI and a small library API around a Linux inotify watch and a
count/time-window alert threshold.
"""

__version__ = "0.1.0"
