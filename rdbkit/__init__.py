"""Work with Redis RDB snapshot contents: models, checksums, LZF, memory estimates, filters, RESP export and flame graphs."""

__version__ = "0.1.0"

__all__ = [
    "crc64",
    "filters",
    "flamegraph",
    "flameweb",
    "lzf",
    "memprofiler",
    "model",
    "radix",
    "resp",
    "toplist",
]