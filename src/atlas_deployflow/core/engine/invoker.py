"""
Invocação de comandos externos.

Os comandos de Stage são tratados como processos opacos: o core só
observa argv, exit code, stdout/stderr e duração. `SubprocessInvoker` é
a implementação real; testes injetam invocadores falsos com a mesma
assinatura.

Convenções de exit code sintético:
    - 124: comando excedeu `timeout`
    - 127: executável não encontrado
"""

from __future__ import annotations

import os
import subprocess
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional, Protocol, Sequence, Tuple, Union


EXIT_TIMEOUT = 124
EXIT_NOT_FOUND = 127


@dataclass(frozen=True)
class CommandOutcome:
    """Resultado observável de um comando externo."""

    argv: Tuple[str, ...]
    exit_code: int
    stdout: str = ""
    stderr: str = ""
    duration_ms: int = 0

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


class CommandInvoker(Protocol):
    def __call__(
        self,
        argv: Sequence[str],
        *,
        cwd: Optional[Union[str, Path]] = None,
        env: Optional[Mapping[str, str]] = None,
        timeout: Optional[float] = None,
        input_text: Optional[str] = None,
    ) -> CommandOutcome:
        ...


class SubprocessInvoker:
    """Executa comandos via `subprocess.run` (sem shell), capturando saída textual."""

    def __init__(self, *, inherit_env: bool = True):
        self.inherit_env = inherit_env

    def __call__(
        self,
        argv: Sequence[str],
        *,
        cwd: Optional[Union[str, Path]] = None,
        env: Optional[Mapping[str, str]] = None,
        timeout: Optional[float] = None,
        input_text: Optional[str] = None,
    ) -> CommandOutcome:
        args = tuple(str(a) for a in argv)
        if not args:
            raise ValueError("argv must not be empty")

        full_env = dict(os.environ) if self.inherit_env else {}
        full_env.update(env or {})

        started = time.monotonic()
        try:
            completed = subprocess.run(
                list(args),
                cwd=str(cwd) if cwd is not None else None,
                env=full_env,
                input=input_text,
                capture_output=True,
                text=True,
                timeout=timeout,
                check=False,
                shell=False,
            )
        except subprocess.TimeoutExpired as e:
            return CommandOutcome(
                argv=args,
                exit_code=EXIT_TIMEOUT,
                stdout=_as_text(e.stdout),
                stderr=_as_text(e.stderr) + f"\ncommand timed out after {timeout}s",
                duration_ms=_elapsed_ms(started),
            )
        except FileNotFoundError as e:
            return CommandOutcome(
                argv=args,
                exit_code=EXIT_NOT_FOUND,
                stderr=f"executable not found: {e.filename or args[0]}",
                duration_ms=_elapsed_ms(started),
            )

        return CommandOutcome(
            argv=args,
            exit_code=completed.returncode,
            stdout=completed.stdout or "",
            stderr=completed.stderr or "",
            duration_ms=_elapsed_ms(started),
        )


def _as_text(value) -> str:
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return str(value)


def _elapsed_ms(started: float) -> int:
    return max(0, int((time.monotonic() - started) * 1000))
