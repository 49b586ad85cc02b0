"""arq worker settings module.

Import path for arq CLI: arq orangefarm.workers.settings.WorkerSettings
"""

from __future__ import annotations

from orangefarm.workers.event_consumer import WorkerSettings

__all__ = ["WorkerSettings"]
