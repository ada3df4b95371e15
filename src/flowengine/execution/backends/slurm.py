"""
Backend de cluster (Slurm ou compatível).

Fluxo por iteração:
    1. `registry_folder/iter_<i>` é apagado e recriado
    2. cada unidade é serializada com joblib em `jobs/<unit_id>.joblib`
    3. um script é renderizado a partir do template de job
       (`{job_name}`, `{command}`, `{log_file}` e as chaves de `resources`)
    4. o script é submetido com `submit_command` (default: `sbatch`)
    5. `wait` faz polling até todas as unidades reportarem
       (`results/<unit_id>.joblib` ou `errors/<unit_id>.json`)
    6. a cada polling, os jobs pendentes são consultados no scheduler
       (`status_command`, default: `squeue`); um job que saiu da fila sem
       escrever arquivo (walltime, OOM, `scancel`) vira falha `JobLost`

O comando executado no nó é o worker
`python -m flowengine.execution.backends.worker JOB RESULT ERROR`.

Limites explícitos:
    - Não cancela jobs em caso de falha/timeout (o scheduler é dono deles)
    - Resources e template são repassados sem validação semântica
"""

from __future__ import annotations

import json
import shlex
import subprocess
import sys
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Set

import joblib

from flowengine.core.exceptions import BatchExecutionError
from flowengine.execution.params import DEFAULT_SLURM_RESOURCES, DEFAULT_SLURM_TEMPLATE, DEFAULT_STATUS_COMMAND
from flowengine.execution.types import UnitConfig

from .base import JobOutcome, iteration_dir, job_rng_seed, remove_dir, reset_dir

WORKER_MODULE = "flowengine.execution.backends.worker"


@dataclass(frozen=True)
class UnitPaths:
    job: Path
    result: Path
    error: Path
    log: Path
    script: Path


@dataclass(frozen=True)
class SlurmHandle:
    iteration: int
    folder: Path
    units: List[UnitConfig]
    paths: Dict[str, UnitPaths]
    job_ids: Dict[str, str] = field(default_factory=dict)


def _parse_job_id(stdout: str) -> str:
    # sbatch: "Submitted batch job 12345"
    tokens = (stdout or "").strip().split()
    return tokens[-1] if tokens else ""


class SlurmBackend:
    name = "slurm"

    def __init__(
        self,
        *,
        registry_folder: str,
        slurm_template: Optional[str] = None,
        resources: Optional[Mapping[str, Any]] = None,
        submit_command: Optional[Sequence[str]] = None,
        status_command: Optional[Sequence[str]] = None,
        poll_interval: float = 5.0,
        seed: Optional[int] = None,
        python_executable: Optional[str] = None,
    ):
        self.registry_folder = Path(registry_folder)
        self.template = slurm_template or DEFAULT_SLURM_TEMPLATE
        self.resources = {**DEFAULT_SLURM_RESOURCES, **(resources or {})}
        self.submit_command = list(submit_command or ["sbatch"])
        self.status_command = list(status_command or DEFAULT_STATUS_COMMAND)
        self.poll_interval = float(poll_interval)
        self.seed = seed
        self.python_executable = python_executable or sys.executable

    def reset(self) -> None:
        remove_dir(self.registry_folder)

    # ------------------------------------------------------------------
    # Submit
    # ------------------------------------------------------------------
    def _paths(self, folder: Path, unit_id: str) -> UnitPaths:
        return UnitPaths(
            job=folder / "jobs" / f"{unit_id}.joblib",
            result=folder / "results" / f"{unit_id}.joblib",
            error=folder / "errors" / f"{unit_id}.json",
            log=folder / "logs" / f"{unit_id}.log",
            script=folder / "scripts" / f"{unit_id}.sh",
        )

    def render_script(self, *, job_name: str, paths: UnitPaths) -> str:
        command = shlex.join([
            self.python_executable,
            "-m",
            WORKER_MODULE,
            str(paths.job),
            str(paths.result),
            str(paths.error),
        ])
        values = {**self.resources, "job_name": job_name, "command": command, "log_file": str(paths.log)}
        try:
            return self.template.format(**values)
        except KeyError as e:
            raise BatchExecutionError(
                f"Job template references unknown placeholder: {e.args[0]}",
                details={"backend": self.name, "placeholder": e.args[0], "available": sorted(values)},
                hint="Declare o placeholder em `resources` ou ajuste `slurm_template`.",
            ) from e

    def submit(
        self,
        evaluator: Any,
        units: Sequence[UnitConfig],
        *,
        iteration: int,
        attempt: int = 0,
    ) -> SlurmHandle:
        folder = reset_dir(iteration_dir(self.registry_folder, iteration, attempt))
        for sub in ("jobs", "results", "errors", "logs", "scripts"):
            (folder / sub).mkdir(parents=True, exist_ok=True)

        handle = SlurmHandle(iteration=iteration, folder=folder, units=list(units), paths={})
        for pos, unit in enumerate(handle.units, start=1):
            paths = self._paths(folder, unit.unit_id)
            handle.paths[unit.unit_id] = paths
            joblib.dump(
                {"evaluator": evaluator, "unit": unit, "rng_seed": job_rng_seed(self.seed, iteration, pos)},
                paths.job,
            )
            script = self.render_script(job_name=f"flowengine-{iteration}-{unit.unit_id}", paths=paths)
            paths.script.write_text(script, encoding="utf-8")

            proc = subprocess.run(
                [*self.submit_command, str(paths.script)],
                capture_output=True,
                text=True,
                check=False,
            )
            if proc.returncode != 0:
                raise BatchExecutionError(
                    f"Job submission failed for unit {unit.unit_id}",
                    details={
                        "iteration": iteration,
                        "backend": self.name,
                        "unit_id": unit.unit_id,
                        "returncode": proc.returncode,
                        "stderr": (proc.stderr or "").strip(),
                    },
                    hint="Verifique submit_command e o acesso ao scheduler.",
                )
            handle.job_ids[unit.unit_id] = _parse_job_id(proc.stdout)
        return handle

    # ------------------------------------------------------------------
    # Wait
    # ------------------------------------------------------------------
    def _collect(self, unit: UnitConfig, paths: UnitPaths) -> Optional[JobOutcome]:
        if paths.result.exists():
            return JobOutcome(unit_id=unit.unit_id, seed=unit.seed, ok=True, result=joblib.load(paths.result))
        if paths.error.exists():
            info = json.loads(paths.error.read_text(encoding="utf-8"))
            return JobOutcome(
                unit_id=unit.unit_id,
                seed=unit.seed,
                ok=False,
                error_type=info.get("error_type"),
                error=info.get("error"),
            )
        return None

    def active_jobs(self, job_ids: Sequence[str], *, iteration: int) -> Set[str]:
        """Job ids ainda na fila ou rodando, segundo o scheduler."""
        proc = subprocess.run(
            [*self.status_command, ",".join(job_ids)],
            capture_output=True,
            text=True,
            check=False,
        )
        if proc.returncode != 0:
            # squeue responde erro quando nenhum dos ids existe mais
            if "invalid job id" in (proc.stderr or "").lower():
                return set()
            raise BatchExecutionError(
                "Job status query failed",
                details={
                    "iteration": iteration,
                    "backend": self.name,
                    "job_ids": list(job_ids),
                    "returncode": proc.returncode,
                    "stderr": (proc.stderr or "").strip(),
                },
                hint="Verifique status_command e o acesso ao scheduler.",
            )
        return {line.strip() for line in (proc.stdout or "").splitlines() if line.strip()}

    def _lost(self, unit: UnitConfig, job_id: str) -> JobOutcome:
        return JobOutcome(
            unit_id=unit.unit_id,
            seed=unit.seed,
            ok=False,
            error_type="JobLost",
            error=f"job {job_id} left the scheduler queue without reporting a result",
        )

    def wait(self, handle: SlurmHandle, *, timeout_seconds: Optional[float] = None) -> Dict[str, JobOutcome]:
        started = time.monotonic()
        pending = {u.unit_id: u for u in handle.units}
        outcomes: Dict[str, JobOutcome] = {}

        while pending:
            for unit_id in list(pending):
                outcome = self._collect(pending[unit_id], handle.paths[unit_id])
                if outcome is not None:
                    outcomes[unit_id] = outcome
                    del pending[unit_id]
            if not pending:
                break

            tracked = {uid: handle.job_ids[uid] for uid in pending if handle.job_ids.get(uid)}
            if tracked:
                active = self.active_jobs(sorted(set(tracked.values())), iteration=handle.iteration)
                for unit_id, job_id in tracked.items():
                    if job_id in active:
                        continue
                    # o worker pode ter escrito o arquivo logo antes de sair da fila
                    unit = pending.pop(unit_id)
                    outcomes[unit_id] = self._collect(unit, handle.paths[unit_id]) or self._lost(unit, job_id)
            if not pending:
                break
            if timeout_seconds is not None and time.monotonic() - started > timeout_seconds:
                raise BatchExecutionError(
                    f"Batch timed out after {timeout_seconds}s with {len(pending)} unit(s) pending",
                    details={
                        "iteration": handle.iteration,
                        "backend": self.name,
                        "timeout_seconds": timeout_seconds,
                        "pending_units": sorted(pending),
                        "job_ids": {k: handle.job_ids.get(k) for k in sorted(pending)},
                    },
                    hint="Inspecione os logs dos jobs no registry ou aumente timeout_seconds.",
                )
            time.sleep(self.poll_interval)

        return outcomes
