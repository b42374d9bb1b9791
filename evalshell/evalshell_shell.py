"""
The reference host for ExecutionLoop: reads input, keeps the scope and
reports results to text streams.
"""

import asyncio
import codeop
import inspect
import logging
import sys
from typing import Any, Awaitable, Callable, Dict, List, Optional

from evalshell.evalshell_capture import OutputPhase
from evalshell.evalshell_config import Configuration, resolve_path
from evalshell.evalshell_context import Context
from evalshell.evalshell_errors import BreakSignal, PropagatingSignal, RuntimeFailure
from evalshell.evalshell_loop import FRAGMENT_FILENAME, ExecutionLoop
from evalshell.evalshell_printer import Printer

logger = logging.getLogger(__name__)

RETURN_MARKER = "⏎"

InputReader = Callable[[str], Awaitable[Optional[str]]]


def shell_command(*names):
    """Mark a Shell method as a command typed at the prompt under `names`."""
    def decorator(func):
        func._shell_command_names = names
        return func
    return decorator


class Shell:
    """An interactive Python shell built on ExecutionLoop."""

    def __init__(self, config: Optional[Configuration] = None, bound_object: Any = None,
                 includes: Optional[List[str]] = None, input_reader: Optional[InputReader] = None,
                 output=None, error_output=None, printer: Optional[Printer] = None):
        self.config = config or Configuration()
        self.context = Context()
        self.context.bound_object = bound_object
        self.printer = printer or Printer()
        self.output = output or sys.stdout
        self.error_output = error_output or sys.stderr
        self.input_reader = input_reader or self._read_stdin
        self.loop_count = 0
        self._includes = [resolve_path(str(p), None) for p in (includes or [])]
        self._code_buffer: List[str] = []
        self._direct_input = False
        self.loop = ExecutionLoop(
            bind_receiver=self.config.bind_receiver,
            chunk_size=self.config.output_chunk_size,
        )
        self.commands: Dict[str, Callable] = {}
        for _, member in inspect.getmembers(self, inspect.ismethod):
            for cmd in getattr(member, "_shell_command_names", ()):
                self.commands[cmd] = member

    async def run(self):
        """Start the interactive loop. Returns when the user exits."""
        await self.loop.run(self)

    async def execute(self, code: str) -> Any:
        """Run `code` once against the shell's scope."""
        return await self.loop.execute(self, code)

    # --- input ---

    async def _read_stdin(self, prompt: str) -> Optional[str]:
        self.output.write(prompt)
        self.output.flush()
        loop = asyncio.get_running_loop()
        line = await loop.run_in_executor(None, sys.stdin.readline)
        return line if line else None

    async def get_input(self):
        """Read lines until the buffer holds a complete fragment."""
        self._code_buffer = []
        self._direct_input = False
        prompt = self.config.prompt
        while True:
            line = await self.input_reader(prompt)
            if line is None:
                # Ctrl+D
                self.output.write("\n")
                raise BreakSignal("Goodbye")
            line = line.rstrip("\r\n")
            if not self._code_buffer:
                stripped = line.strip()
                if not stripped:
                    continue
                if stripped in self.commands:
                    logger.debug("running command %s", stripped)
                    self.commands[stripped]()
                    continue
            self.add_code(line)
            if not self.has_code_buffer_open():
                return
            prompt = self.config.continuation_prompt

    def add_code(self, code: str, is_direct_input: bool = False):
        self._code_buffer.append(code)
        self._direct_input = is_direct_input

    def has_code_buffer_open(self) -> bool:
        """True while the buffered lines are an unfinished statement."""
        if self._direct_input or not self._code_buffer:
            return False
        source = "\n".join(self._code_buffer)
        try:
            return codeop.compile_command(source, FRAGMENT_FILENAME, "single") is None
        except (SyntaxError, OverflowError, ValueError):
            # Invalid code is complete as far as buffering goes; evaluation reports it.
            return False

    def flush_code(self) -> str:
        code = "\n".join(self._code_buffer)
        self._code_buffer = []
        self._direct_input = False
        return code

    def on_execute(self, code: str) -> str:
        return code.rstrip()

    # --- commands ---

    @shell_command("exit", "quit")
    def exit_command(self):
        raise BreakSignal("Goodbye")

    @shell_command("throw-up")
    def throw_up_command(self):
        raise PropagatingSignal.from_exception(self.context.last_exception)

    # --- reporting ---

    def write_exception(self, e: BaseException):
        self.context.last_exception = e
        self.error_output.write(self.printer.format_exception(e, verbose=self.config.verbose_errors) + "\n")

    def write_return_value(self, value: Any):
        if value is None:
            return
        self.context.return_value = value
        self.output.write(self.printer.format_return_value(value) + "\n")

    def write_stdout(self, chunk: str, phase: OutputPhase) -> str:
        if phase & OutputPhase.START:
            self.context.last_stdout = ""
        self.context.last_stdout += chunk
        self.output.write(chunk)
        out = self.context.last_stdout
        if phase & OutputPhase.FINAL and self.config.use_return_marker and out and not out.endswith("\n"):
            # Output without a trailing newline would run into the next prompt
            self.output.write(RETURN_MARKER + "\n")
        return chunk

    def handle_error(self, message, category, filename, lineno, file=None, line=None):
        """warnings hook installed by the loop while code runs."""
        failure = RuntimeFailure.from_warning(message, category, filename, lineno)
        if self._raises(category):
            raise failure
        if self.config.report_warnings:
            self.write_exception(failure)

    def _raises(self, category) -> bool:
        names = set(self.config.error_raise_categories)
        if not names:
            return False
        return any(klass.__name__ in names for klass in getattr(category, "__mro__", ()))

    # --- lifecycle ---

    def before_loop(self):
        self.loop_count += 1

    def after_loop(self):
        self.output.flush()
        self.error_output.flush()

    # --- scope ---

    def get_includes(self) -> List[str]:
        return list(self.config.includes) + self._includes

    def get_scope_variables(self, include_bound_object: bool = True) -> Dict[str, Any]:
        return self.context.get_all(include_bound_object)

    def set_scope_variables(self, variables: Dict[str, Any]):
        self.context.set_all(variables)

    def get_bound_object(self) -> Any:
        return self.context.bound_object
