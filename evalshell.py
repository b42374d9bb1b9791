import asyncio
import logging
import os
import sys
from pathlib import Path

from evalshell import BreakSignal, Configuration, DomainFailure, PropagatingSignal, Shell

# A basic awaitable input prompt.
async def ainput(prompt: str) -> str:
    loop = asyncio.get_running_loop()
    sys.stdout.write(prompt)
    sys.stdout.flush()
    return await loop.run_in_executor(None, sys.stdin.readline)

async def read_line(prompt: str):
    # Looked up at call time so tests can replace `ainput`
    raw = await ainput(prompt)
    return raw if raw != "" else None

def configure_logging():
    level = logging.DEBUG if os.environ.get("EVALSHELL_DEBUG") else logging.WARNING
    logging.basicConfig(level=level, stream=sys.stderr, format="[%(levelname)s] %(name)s: %(message)s")

async def run_script_file(file_path: str, config: Configuration):
    """Run a Python file through the shell non-interactively and exit with appropriate status."""
    p = Path(file_path)
    try:
        source = p.read_text(encoding="utf-8")
    except FileNotFoundError:
        print(f"Error: file not found: {file_path}", file=sys.stderr)
        raise SystemExit(1)
    shell = Shell(config)
    shell.add_code(source, True)
    try:
        value = await shell.loop.evaluate(shell)
    except BreakSignal as e:
        # `raise SystemExit` or `exit()` with a success code ends the script cleanly
        if e.code in (None, 0):
            return
        shell.write_exception(e)
        raise SystemExit(1)
    except DomainFailure as e:
        shell.write_exception(e)
        raise SystemExit(1)
    shell.write_return_value(value)

async def main():
    """Run a script file when provided, otherwise start the interactive shell."""
    configure_logging()
    config = Configuration.load()
    if len(sys.argv) > 1:
        arg = sys.argv[1]
        # Treat argv[1] as a script file when it's not a flag; run_script_file handles missing files
        if not arg.startswith("-"):
            await run_script_file(arg, config)
            return

    print("evalshell v0.1")
    print("Type 'exit' or press Ctrl+D to quit.")

    shell = Shell(config, input_reader=read_line)
    try:
        await shell.run()
    except PropagatingSignal as e:
        # Already reported by the shell; hand a failing status to the caller
        raise SystemExit(1) from e

if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        print("\nExiting.")
