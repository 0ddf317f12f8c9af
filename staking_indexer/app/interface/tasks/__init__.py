from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any

from .staging.fetch_staking_events_task import fetch_staking_events_task as staging__fetch_staking_events_task
from .domain.apply_staking_events_task import apply_staking_events_task as domain__apply_staking_events_task
from .backfill_staking_events_task import backfill_staking_events_task
from .sync_staking_indexer_task import sync_staking_indexer_task
from .indexer_status_task import indexer_status_task
from .serve_staking_indexer_task import serve_staking_indexer_task

TaskFn = Callable[..., Awaitable[Any]]

TASKS: dict[str, TaskFn] = {
    "staging__fetch_staking_events_task": staging__fetch_staking_events_task,
    "domain__apply_staking_events_task": domain__apply_staking_events_task,
    "backfill_staking_events_task": backfill_staking_events_task,
    "sync_staking_indexer_task": sync_staking_indexer_task,
    "indexer_status_task": indexer_status_task,
    "serve_staking_indexer_task": serve_staking_indexer_task,
}
