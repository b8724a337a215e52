"""Application facade exports for stable use-case API."""

from kswitch.application.context_use_case import (
    execute_edit_context,
    execute_forget_context,
    execute_list_contexts,
    execute_use_context,
)
from kswitch.application.status_use_case import execute_status, execute_watch
from kswitch.application.task_use_case import (
    execute_list_tasks,
    execute_run_task,
    parse_input_pairs,
)

__all__ = [
    "execute_edit_context",
    "execute_forget_context",
    "execute_list_contexts",
    "execute_list_tasks",
    "execute_run_task",
    "execute_status",
    "execute_use_context",
    "execute_watch",
    "parse_input_pairs",
]
