"""PR Reviewer - LLM-driven pull request review pipeline."""

__version__ = "0.3.0"
