"""Git helpers for committing and pushing auto-fix changes."""

import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path

from pr_reviewer.errors import GitError

logger = logging.getLogger(__name__)

BOT_NAME = "pr-reviewer[bot]"
BOT_EMAIL = "pr-reviewer[bot]@users.noreply.github.com"


@dataclass(frozen=True)
class GitRunResult:
    """Simple carrier for git command results."""

    ok: bool
    code: int
    out: str
    err: str


class GitOps:
    """Runs git inside a single working tree."""

    def __init__(self, repo: Path, redact: tuple[str, ...] = ()) -> None:
        """Initialize the wrapper.

        Args:
            repo: Working tree root
            redact: Secrets to mask in logs and error messages
        """
        self.repo = Path(repo).expanduser().resolve()
        self._redact = tuple(s for s in redact if s)

    def _mask(self, text: str) -> str:
        for secret in self._redact:
            text = text.replace(secret, "***")
        return text

    def _git(self, *args: str) -> GitRunResult:
        """Run `git -C <repo> <args...>`.

        Raises:
            GitError: If git cannot be executed or exits non-zero
        """
        cmd = ["git", "-C", str(self.repo), *args]
        shown = [self._mask(a) for a in args]
        logger.debug(f"git {' '.join(shown)}")
        try:
            res = subprocess.run(cmd, capture_output=True, text=True, check=False)
        except OSError as e:
            raise GitError(shown, -1, str(e)) from e

        out = (res.stdout or "").strip()
        err = (res.stderr or "").strip()
        if res.returncode != 0:
            raise GitError(shown, res.returncode, self._mask(err or out))
        return GitRunResult(ok=True, code=res.returncode, out=out, err=err)

    def configure_identity(self, name: str = BOT_NAME, email: str = BOT_EMAIL) -> None:
        """Set the committer identity for this repository."""
        self._git("config", "user.name", name)
        self._git("config", "user.email", email)

    def stage_all(self) -> None:
        self._git("add", "-A")

    def commit(self, message: str) -> str:
        """Create a commit and return its SHA."""
        self._git("commit", "-m", message)
        return self._git("rev-parse", "HEAD").out

    def push(self, remote_url: str, branch: str) -> None:
        """Push HEAD to `branch` on the given remote URL."""
        self._git("push", remote_url, f"HEAD:{branch}")
        logger.info(f"Pushed HEAD to {branch}")


def authenticated_remote(repo_name: str, token: str, host: str = "github.com") -> str:
    """HTTPS remote URL carrying an installation/access token."""
    return f"https://x-access-token:{token}@{host}/{repo_name}.git"
