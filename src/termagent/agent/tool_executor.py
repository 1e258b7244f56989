"""Runs ordered batches of intents through the tool registry and aggregates the outcome."""

import logging
from typing import (
    List,
    Sequence,
    Tuple,
)

from termagent.core.sandbox import SandboxContext
from termagent.core.schema import (
    ActionIntent,
    BatchReport,
    BatchStatus,
    ErrorKind,
    ExecutionResult,
)
from termagent.tools import ToolRegistry

logger = logging.getLogger(__name__)


def aggregate_status(results: Sequence[ExecutionResult]) -> BatchStatus:
    """
    Fold per-action results into one status.

    An empty sequence counts as :attr:`BatchStatus.ALL_SUCCEEDED` (nothing failed).
    """
    succeeded = sum(1 for r in results if r.success)
    if succeeded == len(results):
        return BatchStatus.ALL_SUCCEEDED
    if succeeded == 0:
        return BatchStatus.ALL_FAILED
    return BatchStatus.PARTIAL


class ActionExecutor:
    """Executes intents one after another against a :class:`ToolRegistry`."""

    def __init__(self, registry: ToolRegistry):
        self.registry = registry

    def execute(
        self, intents: Sequence[ActionIntent], context: SandboxContext
    ) -> Tuple[BatchReport, SandboxContext]:
        """
        Run every intent in order, never stopping early.

        Parameters
        ----------
        intents:
            The batch, in the order the model listed it.
        context:
            Sandbox to start in.  A successful ``change_directory`` moves the context for the
            intents that follow it.

        Returns
        -------
        Tuple[BatchReport, SandboxContext]
            The report (same length and order as *intents*) and the context after the batch.
        """
        results: List[ExecutionResult] = []
        total = len(intents)

        for index, intent in enumerate(intents, start=1):
            if not self.registry.has(intent.tool):
                logger.warning("[%d/%d] unknown tool '%s'", index, total, intent.tool)
                result = ExecutionResult.failure(
                    f"Unknown tool: {intent.tool}", kind=ErrorKind.UNKNOWN_TOOL, tool=intent.tool
                )
            else:
                logger.info("[%d/%d] %s", index, total, intent.tool)
                result = self.registry.invoke(intent.tool, intent.parameters, context)
                context = _follow_directory_change(result, context)
            results.append(result)

        report = BatchReport(
            intents=list(intents), results=results, status=aggregate_status(results)
        )
        logger.info("Batch finished: %s (%d/%d)", report.status.value, report.succeeded, total)
        return report, context


def _follow_directory_change(result: ExecutionResult, context: SandboxContext) -> SandboxContext:
    new_directory = result.details.get("new_directory") if result.success else None
    if not new_directory:
        return context
    return context.change_dir(new_directory)
