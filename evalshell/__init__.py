from evalshell.evalshell_errors import (
    DomainFailure, BreakSignal, PropagatingSignal, TypeMismatchFailure, RuntimeFailure, normalize
)
from evalshell.evalshell_capture import OutputCapture, OutputPhase, ErrorCapture
from evalshell.evalshell_context import Context
from evalshell.evalshell_loop import ExecutionLoop, compile_fragment
from evalshell.evalshell_config import Configuration
from evalshell.evalshell_printer import Printer
from evalshell.evalshell_shell import Shell

__all__ = [
    "DomainFailure", "BreakSignal", "PropagatingSignal", "TypeMismatchFailure", "RuntimeFailure",
    "normalize", "OutputCapture", "OutputPhase", "ErrorCapture", "Context", "ExecutionLoop",
    "compile_fragment", "Configuration", "Printer", "Shell",
]
