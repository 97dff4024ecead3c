"""
Line-oriented JSON kernel for notebook front ends.

Each request is one JSON object per line on stdin; each response is one
JSON object per line on stdout, flushed immediately.
"""
import asyncio
import json
import sys
from typing import Any, Dict, Optional

from scriptit.sit_runtime import ScriptRunner
from scriptit.sit_printer import Printer

KERNEL_VERSION = "2.0"


class Kernel:
    """Holds one persistent session and answers protocol requests against it."""

    def __init__(self, source_dir: Optional[str] = None):
        self.runner = ScriptRunner()
        self.runner.source_dir = source_dir
        # stdin carries the protocol, so scripts cannot read from it.
        self.runner.evaluator.input_stream = None
        self.printer = Printer()
        self.execution_count = 0
        self.running = True

    def ready_message(self) -> Dict[str, Any]:
        return {"status": "kernel_ready", "version": KERNEL_VERSION}

    async def handle_request(self, request: Dict[str, Any]) -> Dict[str, Any]:
        action = request.get("action")
        match action:
            case "execute":
                return await self._execute(request)
            case "reset":
                self.runner.reset()
                self.execution_count = 0
                return {"status": "reset_ok"}
            case "shutdown":
                self.running = False
                return {"status": "shutdown_ok"}
            case "complete":
                prefix = request.get("code") or ""
                return {"status": "ok", "completions": self.runner.completions(str(prefix))}
        return {"status": "error", "stderr": f"Unknown action: {action}"}

    async def _execute(self, request: Dict[str, Any]) -> Dict[str, Any]:
        result = await self.runner.handle_script(str(request.get("code") or ""))
        if result.status == 'success':
            self.execution_count += 1
        shown = "" if result.value is None or result.status == 'error' else self.printer.pformat(result.value)
        return {
            "cell_id": request.get("cell_id", ""),
            "status": "ok" if result.status == 'success' else "error",
            "stdout": result.stdout,
            "stderr": result.format_error(),
            "result": shown,
            "execution_count": self.execution_count,
        }

    async def handle_line(self, line: str) -> Optional[Dict[str, Any]]:
        """Answers one raw protocol line; blank lines get no response."""
        if not line.strip():
            return None
        try:
            request = json.loads(line)
        except json.JSONDecodeError as e:
            return {"status": "error", "stderr": f"Invalid request: {e.msg}"}
        if not isinstance(request, dict):
            return {"status": "error", "stderr": "Invalid request: expected a JSON object"}
        return await self.handle_request(request)


def _write_response(stream, response: Dict[str, Any]):
    stream.write(json.dumps(response) + "\n")
    stream.flush()


async def run_kernel(stdin=None, stdout=None, source_dir: Optional[str] = None):
    """Serves requests from `stdin` until shutdown or end of input."""
    stdin = stdin or sys.stdin
    stdout = stdout or sys.stdout
    kernel = Kernel(source_dir=source_dir)
    loop = asyncio.get_running_loop()
    _write_response(stdout, kernel.ready_message())
    while kernel.running:
        line = await loop.run_in_executor(None, stdin.readline)
        if line == "":
            break
        response = await kernel.handle_line(line)
        if response is not None:
            _write_response(stdout, response)
