"""
Worker executado em nós do cluster.

Uso:
    python -m flowengine.execution.backends.worker JOB RESULT ERROR

Carrega o job serializado (joblib), executa a unidade e escreve:
    - RESULT (joblib) em caso de sucesso
    - ERROR (JSON: unit_id, seed, error_type, error) em caso de falha

As escritas são atômicas (arquivo temporário + `os.replace`): o dispatcher
nunca lê um arquivo parcialmente escrito.
"""

from __future__ import annotations

import argparse
import json
import os
from pathlib import Path
from typing import List, Optional

import joblib

from .base import JobOutcome, run_unit


def _write_error(path: Path, payload: dict) -> None:
    tmp = path.with_name(path.name + ".tmp")
    tmp.write_text(json.dumps(payload, ensure_ascii=False), encoding="utf-8")
    os.replace(tmp, path)


def _write_result(path: Path, result) -> None:
    tmp = path.with_name(path.name + ".tmp")
    joblib.dump(result, tmp)
    os.replace(tmp, path)


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(prog="flowengine-worker")
    parser.add_argument("job")
    parser.add_argument("result")
    parser.add_argument("error")
    args = parser.parse_args(argv)

    result_path = Path(args.result)
    error_path = Path(args.error)

    try:
        job = joblib.load(args.job)
        outcome: JobOutcome = run_unit(job["evaluator"], job["unit"], job.get("rng_seed"))
    except Exception as e:
        _write_error(error_path, {"unit_id": None, "seed": None, "error_type": type(e).__name__, "error": str(e)})
        return 1

    if not outcome.ok:
        _write_error(error_path, outcome.failure_details())
        return 1

    try:
        _write_result(result_path, outcome.result)
    except Exception as e:
        _write_error(error_path, {**outcome.failure_details(), "error_type": type(e).__name__, "error": str(e)})
        return 1
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
