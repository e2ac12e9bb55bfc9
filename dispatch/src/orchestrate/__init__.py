"""
Orchestration package for dispatch runs.

Provides BatchOrchestrator for validating, submitting and tallying a batch.
"""

from dispatch.src.orchestrate.batch_orchestrator import (
    BatchOrchestrator,
    OrchestratorError,
    RunAbortedError,
    submit_batch,
)

__all__ = ["BatchOrchestrator", "OrchestratorError", "RunAbortedError", "submit_batch"]
