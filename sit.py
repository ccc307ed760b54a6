import sys
from pathlib import Path

from scriptit.scriptit_datatypes import LexError, TokenType
from scriptit.scriptit_tokenizer import tokenize
from scriptit.scriptit_runtime import ScriptRunner
from scriptit.scriptit_printer import Printer
from scriptit.scriptit_kernel import run_kernel

USAGE = """usage: sit [FILE | --script | --kernel]

  FILE       run a ScriptIt file
  --script   run a program read from stdin
  --kernel   start the JSON-lines notebook kernel
  (none)     start the interactive REPL"""


# A basic input prompt.
def input_line(prompt: str) -> str:
    sys.stdout.write(prompt)
    sys.stdout.flush()
    return sys.stdin.readline()


def echo(topic: str, message: str):
    stream = sys.stderr if topic == 'stderr' else sys.stdout
    print(message, file=stream, flush=True)


def needs_more(source: str) -> bool:
    """True while `source` still has a block opened with ':' and not closed with ';'."""
    try:
        tokens = tokenize(source)
    except LexError:
        return False
    depth = 0
    for tok in tokens:
        if tok.kind is TokenType.COLON:
            depth += 1
        elif tok.kind is TokenType.SEMICOLON:
            depth -= 1
    return depth > 0


def run_source(runner: ScriptRunner, source: str):
    """Run a whole program non-interactively and exit with appropriate status."""
    runner.evaluator.echo = echo
    result = runner.handle_script(source)
    if result.status == 'error':
        print(result.format_error(), file=sys.stderr)
        raise SystemExit(1)
    if result.value is not None:
        print(Printer().pformat(result.value))


def run_script_file(file_path: str):
    p = Path(file_path)
    try:
        source = p.read_text(encoding="utf-8")
    except FileNotFoundError:
        print(f"Error: file not found: {file_path}", file=sys.stderr)
        raise SystemExit(1)
    run_source(ScriptRunner(), source)


def run_stdin_script():
    run_source(ScriptRunner(), sys.stdin.read())


def repl():
    print("ScriptIt REPL v0.1")
    print("Type 'exit' or press Ctrl+D to quit. 'wipe' clears the session.")

    runner = ScriptRunner()
    runner.evaluator.echo = echo
    printer = Printer()

    while True:
        try:
            raw = input_line(">> ")
            if raw == "":
                raise EOFError
            line = raw.strip()

            if not line:
                continue
            if line == "exit":
                break
            if line == "wipe":
                runner.reset()
                print("Session wiped. All variables and functions cleared.")
                continue
            if line == "clear":
                print("\033[2J\033[H", end="", flush=True)
                continue

            source = raw
            while needs_more(source):
                more = input_line(".. ")
                if more == "":
                    break
                source += more

            result = runner.handle_script(source)

            if result.status == 'error':
                print(result.format_error(), file=sys.stderr)
                continue

            # expression values were already echoed; only a top-level give is left
            if result.value is not None:
                print(printer.pformat(result.value))

        except EOFError:
            print("\nExiting.")
            break


def main(argv=None):
    """Run a script file when provided, otherwise start the interactive REPL."""
    args = sys.argv[1:] if argv is None else list(argv)
    if args:
        arg = args[0]
        match arg:
            case "--kernel":
                run_kernel()
            case "--script":
                run_stdin_script()
            case "-h" | "--help":
                print(USAGE)
            case _ if not arg.startswith("-"):
                run_script_file(arg)
            case _:
                print(f"Error: unknown option {arg}", file=sys.stderr)
                print(USAGE, file=sys.stderr)
                raise SystemExit(2)
        return
    repl()


def cli():
    try:
        main()
    except KeyboardInterrupt:
        print("\nExiting.")


if __name__ == "__main__":
    cli()
