from __future__ import annotations

from stream_export.cli import run

if __name__ == "__main__":
    run()
