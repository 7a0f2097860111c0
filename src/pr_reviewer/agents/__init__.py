"""Model-backed agents for PR Reviewer."""

from pr_reviewer.agents.fixer import AUTO_FIX_COMMIT_PREFIX, AutoFixer, is_auto_fix_commit
from pr_reviewer.agents.model_client import ModelClient, ModelConfig, ToolCall
from pr_reviewer.agents.reviewer import REVIEW_TOOL, ReviewAgent

__all__ = [
    "AUTO_FIX_COMMIT_PREFIX",
    "AutoFixer",
    "ModelClient",
    "ModelConfig",
    "REVIEW_TOOL",
    "ReviewAgent",
    "ToolCall",
    "is_auto_fix_commit",
]
