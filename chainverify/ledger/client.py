"""
Runs concordium-client and hands back its raw stdout. No parsing happens here.
"""
from __future__ import annotations

import asyncio
import time
from typing import Dict, List, Optional, Sequence

from chainverify.observability.logging import log
from chainverify.settings import settings

ACCOUNT_STAKING = "account_staking"
VALIDATOR_LOOKUP = "validator_lookup"
TRANSACTION_STATUS = "transaction_status"
BLOCK_TIME = "block_time"

# command name -> argv template (after the client binary, before connection flags)
COMMAND_TEMPLATES: Dict[str, Sequence[str]] = {
    ACCOUNT_STAKING: ("account", "show", "{address}"),
    VALIDATOR_LOOKUP: ("consensus", "show-parameters", "--include-bakers"),
    TRANSACTION_STATUS: ("transaction", "status", "{tx_hash}"),
    BLOCK_TIME: ("block", "show", "{block_hash}"),
}


class LedgerQueryError(Exception):
    """The client failed to start, exited non-zero, timed out or printed nothing."""

    def __init__(self, command: str, reason: str, returncode: Optional[int] = None):
        super().__init__(f"{command}: {reason}")
        self.command = command
        self.reason = reason
        self.returncode = returncode


class LedgerQueryClient:
    def __init__(
        self,
        client_path: Optional[str] = None,
        grpc_host: Optional[str] = None,
        grpc_port: Optional[str] = None,
        secure: Optional[bool] = None,
        timeout_sec: Optional[float] = None,
    ):
        self.client_path = client_path or settings.CONCORDIUM_CLIENT_PATH
        self.grpc_host = grpc_host if grpc_host is not None else settings.LEDGER_GRPC_HOST
        self.grpc_port = grpc_port if grpc_port is not None else settings.LEDGER_GRPC_PORT
        self.secure = settings.LEDGER_SECURE if secure is None else secure
        self.timeout_sec = float(timeout_sec if timeout_sec is not None else settings.LEDGER_QUERY_TIMEOUT_SEC)

    def build_argv(self, command: str, **args: str) -> List[str]:
        template = COMMAND_TEMPLATES.get(command)
        if template is None:
            raise ValueError(f"unknown ledger command: {command}")
        argv = [self.client_path] + [part.format(**args) for part in template]
        if self.grpc_host:
            argv += ["--grpc-ip", self.grpc_host]
        if self.grpc_port:
            argv += ["--grpc-port", str(self.grpc_port)]
        if self.secure:
            argv.append("--secure")
        return argv

    async def run(self, command: str, **args: str) -> str:
        """
        Execute one query. Arguments are passed as argv items, never through a
        shell. Raises LedgerQueryError on any failure; empty output is a failure.
        """
        argv = self.build_argv(command, **args)
        start = time.time()
        try:
            proc = await asyncio.create_subprocess_exec(
                *argv,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            log(event="ledger_query_spawn_failed", command=command, error=str(e))
            raise LedgerQueryError(command, f"could not start client: {e}") from e

        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=self.timeout_sec)
        except asyncio.TimeoutError as e:
            proc.kill()
            await proc.wait()
            log(event="ledger_query_timeout", command=command, timeoutSec=self.timeout_sec)
            raise LedgerQueryError(command, f"timed out after {self.timeout_sec}s") from e

        elapsed_ms = int((time.time() - start) * 1000)
        out = (stdout or b"").decode("utf-8", errors="replace")
        err = (stderr or b"").decode("utf-8", errors="replace")

        if proc.returncode != 0:
            log(
                event="ledger_query_failed",
                command=command,
                returncode=proc.returncode,
                elapsedMs=elapsed_ms,
                stderr=err[:500],
            )
            raise LedgerQueryError(command, f"exit code {proc.returncode}", proc.returncode)

        if not out.strip():
            log(event="ledger_query_empty", command=command, elapsedMs=elapsed_ms)
            raise LedgerQueryError(command, "empty output", proc.returncode)

        log(event="ledger_query_ok", command=command, elapsedMs=elapsed_ms)
        return out
