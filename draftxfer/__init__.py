"""Block-hash journals, journal comparison, buffer pools and transfer plumbing for bulk file mirroring."""

__version__ = "0.1.0"

__all__ = [
    "buffer",
    "cli",
    "executor",
    "journal",
    "journal_ops",
    "pollset",
    "protocol",
    "stats",
    "timer",
]