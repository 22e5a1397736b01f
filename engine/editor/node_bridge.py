"""Pug, Less and script preprocessors via a one-shot Node subprocess running scripts/compile.js."""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path

logger = logging.getLogger(__name__)

COMPILE_SCRIPT = Path(__file__).parent.parent.parent / "scripts" / "compile.js"


class PreprocessorError(RuntimeError):
    """Raised when a preprocessor rejects its input or cannot run."""


class NodeBridge:
    """
    Runs the Pug, Less, TypeScript, Babel and CoffeeScript transforms in Node.

    Each call spawns `node scripts/compile.js`, writes one JSON request on
    stdin and reads one JSON reply from stdout:

        request:  {"transform": "typescript", "source": "..."}
        reply:    {"code": "..."}  or  {"error": "..."}
    """

    def __init__(self, node_binary: str = "node", timeout: float = 10.0, script: Path = COMPILE_SCRIPT):
        self.node_binary = node_binary
        self.timeout = timeout
        self.script = script

    async def transform(self, transform: str, source: str) -> str:
        """
        Run one transform and return the compiled code.

        Raises:
            PreprocessorError: If Node is missing, times out, exits non-zero,
                or the transform reports a compile error.
        """
        request = json.dumps({"transform": transform, "source": source})

        try:
            process = await asyncio.create_subprocess_exec(
                self.node_binary,
                str(self.script),
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as e:
            raise PreprocessorError(f"Node.js not found ({self.node_binary}). Install Node.js 18+.") from e

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(request.encode()), timeout=self.timeout)
        except TimeoutError as e:
            process.kill()
            await process.wait()
            raise PreprocessorError(f"{transform} compile timed out after {self.timeout:g}s") from e
        except asyncio.CancelledError:
            process.kill()
            await process.wait()
            raise

        if process.returncode != 0:
            detail = stderr.decode(errors="replace").strip()
            logger.warning("node_bridge: %s exited with %s: %s", transform, process.returncode, detail[:500])
            raise PreprocessorError(detail or f"{transform} compiler exited with status {process.returncode}")

        try:
            reply = json.loads(stdout)
        except json.JSONDecodeError as e:
            raise PreprocessorError(f"{transform} compiler returned malformed output") from e

        if reply.get("error") is not None:
            raise PreprocessorError(str(reply["error"]))

        return reply.get("code") or ""
