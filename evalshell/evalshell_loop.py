"""
The execution loop: runs Python fragments against a persistent scope.

The loop talks to its host ("shell") only through the methods below:

    add_code(code, is_direct_input)     flush_code() -> str
    get_input()  (may be async)         on_execute(code) -> str
    write_exception(e)                  write_return_value(value)
    write_stdout(chunk, phase) -> str   handle_error(...)  (warnings hook)
    before_loop() / after_loop()        get_includes() -> [path]
    get_scope_variables(include_bound_object) -> dict
    set_scope_variables(dict)           get_bound_object()
"""

import ast
import builtins
import inspect
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional, Tuple
from types import CodeType

from evalshell.evalshell_capture import DEFAULT_CHUNK_SIZE, ErrorCapture, OutputCapture
from evalshell.evalshell_context import RECEIVER_NAME
from evalshell.evalshell_errors import BreakSignal, DomainFailure, PropagatingSignal, normalize

logger = logging.getLogger(__name__)

FRAGMENT_FILENAME = '<evalshell>'
NO_BIND_ENV = 'EVALSHELL_NO_BIND'

# Names the loop puts into the evaluation namespace itself; never handed back to the host.
ENVIRONMENT_NAMES = ('__builtins__', '__name__', '__doc__', '__file__', '__warningregistry__')

_COMPILE_FLAGS = ast.PyCF_ALLOW_TOP_LEVEL_AWAIT

_UNRESOLVED = object()


def compile_fragment(source: str, filename: str = FRAGMENT_FILENAME) -> Tuple[CodeType, Optional[CodeType]]:
    """Compile `source` into (statements, trailing expression).

    When the last statement is a bare expression it is split off so its value
    can be returned; otherwise the second item is None.
    """
    tree = compile(source, filename, 'exec', flags=ast.PyCF_ONLY_AST | _COMPILE_FLAGS)
    expr = None
    if tree.body and isinstance(tree.body[-1], ast.Expr):
        expr = ast.Expression(tree.body.pop().value)
    stmts = compile(tree, filename, 'exec', flags=_COMPILE_FLAGS)
    value = compile(expr, filename, 'eval', flags=_COMPILE_FLAGS) if expr is not None else None
    return stmts, value


async def _run_code(code: Optional[CodeType], namespace: Dict[str, Any]) -> Any:
    if code is None:
        return None
    result = eval(code, namespace)
    if code.co_flags & inspect.CO_COROUTINE:
        result = await result
    return result


async def _maybe_await(value):
    if inspect.isawaitable(value):
        return await value
    return value


class ExecutionLoop:
    """Runs code from a shell, one fragment at a time."""

    NOOP_INPUT = 'None'

    def __init__(self, bind_receiver: bool = True, chunk_size: int = DEFAULT_CHUNK_SIZE):
        self.binds_receiver = bind_receiver and self.bind_loop()
        self.chunk_size = chunk_size
        # Globals for every fragment. Functions defined by one fragment keep a
        # reference to this dict, so it is refilled in place rather than replaced.
        self._namespace: Dict[str, Any] = {}
        self._receiver = _UNRESOLVED

    @staticmethod
    def bind_loop() -> bool:
        """Whether fragments may see a bound receiver at all."""
        return not os.environ.get(NO_BIND_ENV)

    def bound_receiver(self, shell) -> Any:
        if self._receiver is _UNRESOLVED:
            self._receiver = shell.get_bound_object() if self.binds_receiver else None
        return self._receiver

    # --- scope plumbing ---

    def _restore_scope(self, shell) -> Dict[str, Any]:
        ns = self._namespace
        ns.clear()
        ns.update(shell.get_scope_variables(False))
        ns['__builtins__'] = builtins
        ns['__name__'] = '__main__'
        ns['__doc__'] = None
        receiver = self.bound_receiver(shell)
        if receiver is not None:
            ns[RECEIVER_NAME] = receiver
        return ns

    def _extract_scope(self, shell, ns: Dict[str, Any]) -> Dict[str, Any]:
        hidden = ENVIRONMENT_NAMES
        if self.bound_receiver(shell) is not None:
            hidden += (RECEIVER_NAME,)
        return {name: value for name, value in ns.items() if name not in hidden}

    # --- execution ---

    async def execute_once(self, shell) -> Any:
        """Evaluate the shell's buffered code and return its value.

        Output and scope changes reach the shell only if evaluation succeeds.
        Failures are re-raised exactly as the evaluated code raised them.
        """
        source = shell.on_execute(shell.flush_code() or self.NOOP_INPUT)
        ns = self._restore_scope(shell)
        logger.debug("evaluating %d chars with %d bindings", len(source), len(ns))
        capture = OutputCapture(self.chunk_size)
        with capture, ErrorCapture(shell.handle_error):
            stmts, expr = compile_fragment(source)
            await _run_code(stmts, ns)
            value = await _run_code(expr, ns)
        capture.flush_to(shell.write_stdout)
        shell.set_scope_variables(self._extract_scope(shell, ns))
        return value

    async def evaluate(self, shell) -> Any:
        """execute_once, with failures translated into DomainFailure kinds."""
        try:
            return await self.execute_once(shell)
        except DomainFailure:
            raise
        except (Exception, SystemExit, KeyboardInterrupt) as e:
            raise normalize(e) from e

    async def execute(self, shell, code: str) -> Any:
        """Run a single piece of code outside the loop, reporting any failure."""
        shell.add_code(code, True)
        try:
            return await self.evaluate(shell)
        except DomainFailure as e:
            shell.write_exception(e)
            return None

    async def run(self, shell):
        """Read, evaluate and report until the shell asks to stop.

        Raises:
            PropagatingSignal: re-raised after being reported.
        """
        self.load_includes(shell)

        while True:
            shell.before_loop()

            try:
                await _maybe_await(shell.get_input())
                _ = await self.evaluate(shell)
                shell.write_return_value(_)
            except BreakSignal as _e:
                shell.write_exception(_e)
                logger.debug("loop stopped: %s", _e)
                return
            except PropagatingSignal as _e:
                shell.write_exception(_e)
                logger.debug("loop propagating: %s", _e)
                raise
            except DomainFailure as _e:
                shell.write_exception(_e)

            shell.after_loop()

    # --- includes ---

    def load_includes(self, shell):
        """Run every include file once and merge what they define into scope."""
        ns = self._restore_scope(shell)
        with ErrorCapture(shell.handle_error):
            for path in shell.get_includes():
                logger.debug("loading include %s", path)
                try:
                    self._include(path, ns)
                except (Exception, SystemExit, KeyboardInterrupt) as e:
                    shell.write_exception(normalize(e))
                finally:
                    ns.pop('__file__', None)
        shell.set_scope_variables(self._extract_scope(shell, ns))

    def _include(self, path, ns: Dict[str, Any]):
        p = Path(path)
        source = p.read_text(encoding="utf-8")
        ns['__file__'] = str(p)
        exec(compile(source, str(p), 'exec'), ns)
