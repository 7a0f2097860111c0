"""Exception types raised by the review pipeline."""


class ReviewerError(Exception):
    """Base class for all pr-reviewer errors."""

    pass


class ConfigurationError(ReviewerError):
    """Raised when required settings are missing or the policy document is invalid."""

    pass


class ReviewContractError(ReviewerError):
    """Raised when the model does not answer through the submit_review tool."""

    pass


class GitError(ReviewerError):
    """Raised when a git command exits with a non-zero status."""

    def __init__(self, command: list[str], returncode: int, stderr: str) -> None:
        self.command = command
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(f"git {' '.join(command)} failed with exit code {returncode}: {stderr.strip()}")


class MergeError(ReviewerError):
    """Raised when the code host refuses to merge the pull request."""

    pass
