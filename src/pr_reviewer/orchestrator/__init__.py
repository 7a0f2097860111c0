"""Orchestration components for PR Reviewer."""

from pr_reviewer.orchestrator.classifier import ClassifiedFindings, classify_findings
from pr_reviewer.orchestrator.pipeline import PipelineState, ReviewPipeline, RunReport

__all__ = [
    "ClassifiedFindings",
    "PipelineState",
    "ReviewPipeline",
    "RunReport",
    "classify_findings",
]
