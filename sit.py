import asyncio
import sys
from pathlib import Path

from scriptit import __version__
from scriptit.sit_runtime import ScriptRunner
from scriptit.sit_printer import Printer
from scriptit.sit_kernel import run_kernel

CLEAR_SCREEN = "\033[2J\033[H"


# A basic awaitable input prompt.
async def ainput(prompt: str) -> str:
    loop = asyncio.get_running_loop()
    sys.stdout.write(prompt)
    sys.stdout.flush()
    return await loop.run_in_executor(None, sys.stdin.readline)


def clear_screen():
    print(CLEAR_SCREEN, end="", flush=True)


async def run_script_file(file_path: str):
    """Run a ScriptIt file; each statement that fails is reported and skipped."""
    runner = ScriptRunner(echo=sys.stdout, error_echo=sys.stderr)
    printer = Printer()
    p = Path(file_path)
    try:
        source = p.read_text(encoding="utf-8")
    except FileNotFoundError:
        print(f"Error: file not found: {file_path}", file=sys.stderr)
        raise SystemExit(1)
    runner.source_dir = str(p.parent.resolve())
    # Print output streams through the runner's echo as it happens.
    result = await runner.handle_script(source, keep_going=True)
    if result.status == 'error':
        raise SystemExit(1)
    if result.value is not None:
        print(printer.pformat(result.value))


async def main():
    """Run a script file or the kernel when asked, otherwise start the interactive REPL."""
    if len(sys.argv) > 1:
        arg = sys.argv[1]
        if arg == "--kernel":
            await run_kernel(source_dir=str(Path.cwd()))
            return
        if not arg.startswith("-"):
            await run_script_file(arg)
            return

    print(f"ScriptIt REPL v{__version__}")
    print("Type 'exit' or press Ctrl+D to quit.")

    runner = ScriptRunner(echo=sys.stdout)
    printer = Printer()
    runner.source_dir = str(Path.cwd())

    # Lines of a block that is still open (if/while/for/fn without its ';').
    pending = []
    while True:
        try:
            raw = await ainput(".. " if pending else ">> ")
            if raw == "":
                raise EOFError
            line = raw.rstrip("\r\n")

            if not pending:
                command = line.strip()
                if not command:
                    continue
                if command == "exit":
                    break
                if command == "clear":
                    clear_screen()
                    continue
                if command == "wipe":
                    clear_screen()
                    runner.reset()
                    continue

            pending.append(line)
            source = "\n".join(pending)
            if runner.needs_more_input(source):
                continue
            pending = []

            result = await runner.handle_script(source)
            if result.status == 'error':
                print(result.format_error(), file=sys.stderr)
                continue
            if result.value is not None:
                print(printer.pformat(result.value))

        except EOFError:
            print("\nExiting.")
            break
        except Exception as e:
            print(f"Error: {e}", file=sys.stderr)


def cli():
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        print("\nExiting.")


if __name__ == "__main__":
    cli()
