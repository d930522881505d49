"""
projects/saga.py -- Multi-step operations across the database and the asset store.

A Saga is an async context manager. Each step() runs one blocking action in
the threadpool and may register a compensation for it. If the body raises,
compensations run newest-first and the original exception propagates
unchanged. If the body completes, deferred cleanups run.

Compensations and deferred cleanups are best-effort: a failure is logged and
swallowed so it can never replace the error (or the success) the caller is
about to see.

Usage:
    async with Saga("create project") as saga:
        ref = await saga.step("store image", partial(assets.save, upload), compensate=assets.delete)
        await saga.step("insert project", partial(store.create_project, project))
        saga.defer("delete old image", partial(assets.delete, old_ref))
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from functools import partial
from typing import Any, Optional, TypeVar

from starlette.concurrency import run_in_threadpool

logger = logging.getLogger("folio.projects.saga")

T = TypeVar("T")


@dataclass(frozen=True)
class Compensation:
    description: str
    action: Callable[[], Any]


class Saga:
    def __init__(self, name: str) -> None:
        self.name = name
        self._rollback: list[Compensation] = []
        self._deferred: list[Compensation] = []

    async def step(
        self,
        description: str,
        action: Callable[[], T],
        compensate: Optional[Callable[[T], Any]] = None,
    ) -> T:
        """Run action; on later failure, compensate(result) undoes it."""
        result = await run_in_threadpool(action)
        if compensate is not None:
            self._rollback.append(Compensation(f"undo {description}", partial(compensate, result)))
        return result

    def defer(self, description: str, action: Callable[[], Any]) -> None:
        """Schedule action to run only once the whole saga has succeeded."""
        self._deferred.append(Compensation(description, action))

    async def __aenter__(self) -> "Saga":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        if exc_type is None:
            await self._run_best_effort(self._deferred)
        else:
            logger.warning(
                "%s failed (%s); running %d compensation(s)",
                self.name,
                exc_type.__name__,
                len(self._rollback),
            )
            await self._run_best_effort(reversed(self._rollback))
        return False

    async def _run_best_effort(self, actions: Iterable[Compensation]) -> None:
        for item in actions:
            try:
                await run_in_threadpool(item.action)
            except Exception:
                logger.exception("%s: %s failed", self.name, item.description)
