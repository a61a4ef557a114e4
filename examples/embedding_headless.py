#!/usr/bin/env python3
"""
Example: Embedded File Watching
Shows how to drive FileWatch from Python instead of the command line.

This example demonstrates:
- Building a WatchConfig programmatically
- Collecting command output with a custom CommandOutput
- Stopping the watcher from the host program

Try it:
    python examples/embedding_headless.py
    # then edit any .py file under the current directory
"""
# ruff: noqa: T201

import asyncio
import logging

from filewatch import FileWatch, ProcessSupervisor, WatchConfig


class PrintingOutput:
    """CommandOutput that prints lines with a prefix."""

    def stdout(self, line: str) -> None:
        print(f"│ {line}")

    def stderr(self, line: str) -> None:
        print(f"│ ! {line}")


async def main():
    """Re-run a quick check on every save for one minute."""
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(message)s")

    config = WatchConfig(
        filenames="**/*.py",
        debounce_seconds=1,
        command="python -m compileall -q . && echo '✓ compiled'",
        initial=True,
    )
    supervisor = ProcessSupervisor(config.command, output=PrintingOutput())
    watcher = FileWatch(config, supervisor=supervisor)

    print("🔍 Watching **/*.py for 60 seconds (Ctrl+C to stop)")
    try:
        await asyncio.wait_for(watcher.run(), timeout=60)
    except asyncio.TimeoutError:
        print("✅ Watcher stopped")


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass
