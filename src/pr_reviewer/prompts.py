"""Prompt assembly for the review model.

The system prompt is an ordered list of sections. Each section is a small
function of the policy; sections that return an empty string are dropped, so
project-specific blocks (tenancy, auth, testing, conventions) only appear when
the policy defines them.
"""

from collections.abc import Callable

from pr_reviewer.config import ReviewPolicy
from pr_reviewer.models.pull_request import PullRequestSnapshot

REVIEW_TOOL_NAME = "submit_review"

PromptSection = Callable[[ReviewPolicy], str]


def _scope_note(applies_to: tuple[str, ...]) -> str:
    if not applies_to:
        return ""
    paths = ", ".join(f"`{p}`" for p in applies_to)
    return f"\n- **Scope:** Only apply these checks to files under {paths}"


def intro_section(_policy: ReviewPolicy) -> str:
    return """You are a senior software engineer performing a thorough code review on a pull request.
Your review must be rigorous, precise, and actionable, at the level of a principal engineer reviewing production code."""


def conventions_section(policy: ReviewPolicy) -> str:
    if not policy.conventions:
        return ""
    rules = "\n".join(f"{i}. {rule}" for i, rule in enumerate(policy.conventions, 1))
    return f"""## Project Conventions (Ground Truth)

The following rules are authoritative for this project. Do NOT flag code that follows these conventions.
If code violates one of these conventions, flag it as blocking.

{rules}"""


def baseline_rules_section(_policy: ReviewPolicy) -> str:
    return """## Universal Baseline Rules

These rules always apply, regardless of project-specific configuration:

1. **Files ending in `.example` are not secrets.** A file like `.env.example` documents the shape of a config file with placeholder values. Do NOT flag these as hardcoded secrets.
2. **A single query followed by an in-memory transform is not an N+1 query.** N+1 means executing one query per item in a loop.
3. **Generated files and lock files do not need code review.** Lock files, `dist/` and build output are ignored for code-quality checks.
4. **Config files are not "magic strings."** Values in YAML/JSON config files are configuration, not hardcoded literals that need extraction."""


def checklist_intro_section(_policy: ReviewPolicy) -> str:
    return """## Review Checklist

Evaluate every change against ALL of the following criteria:

### 1. Intent Verification
- Does the diff actually accomplish what the PR title and description claim?
- Do the commit messages accurately describe the changes?
- Are there changes that seem unrelated to the stated intent?

### 2. Schema and Migration Safety
- Do schema changes risk data loss (dropping columns, changing types)?
- Are NOT NULL columns added without defaults on tables that may have existing rows?
- Are indexes added for columns used in WHERE clauses or JOINs?
- Could the migration fail on production data?

### 3. Security
- Are there hardcoded secrets, API keys, or credentials?
- Is user input properly validated and sanitized?
- Are SQL queries parameterized (no string concatenation)?
- Are new endpoints protected against common vulnerabilities?"""


def multi_tenancy_section(policy: ReviewPolicy) -> str:
    tenancy = policy.multi_tenancy
    if not tenancy or not tenancy.enabled:
        return "### 4. Multi-Tenancy\nNot applicable for this project."
    return f"""### 4. Multi-Tenancy (CRITICAL)
- {tenancy.check_description}
- Every database query in new or modified code MUST filter by `{tenancy.scope_column}`
- Check both read and write operations
- Verify that bulk operations respect tenant boundaries
- Missing tenant scope is ALWAYS a blocking issue{_scope_note(tenancy.applies_to)}"""


def auth_section(policy: ReviewPolicy) -> str:
    auth = policy.auth
    if not auth:
        return "### 5. Authentication & Authorization\nReview any auth patterns found in the codebase."
    exceptions = ", ".join(auth.except_routes) if auth.except_routes else "none"
    middleware = f"\n- Middleware is imported from `{auth.middleware_import}`" if auth.middleware_import else ""
    return f"""### 5. Authentication & Authorization
- Provider: {auth.provider}
- All routes matching `{auth.protected_routes}` must use auth middleware{middleware}
- Exceptions: {exceptions}
- New API routes without authentication are blocking issues
- Check that authorization (role checks) is applied where needed{_scope_note(auth.applies_to)}"""


def frontend_section(_policy: ReviewPolicy) -> str:
    return """### 6. GUI / Frontend Review
- Do UI changes follow existing component patterns and design system?
- Is the UI responsive (mobile, tablet, desktop)?
- Are accessibility basics covered (labels, aria attributes, keyboard navigation)?
- Are loading and error states handled?
- Do forms validate input before submission?"""


def testing_section(policy: ReviewPolicy) -> str:
    testing = policy.testing
    if testing:
        details = (
            f"- Framework: {testing.framework}\n"
            f"- Test directory: {testing.test_dir}\n"
            f"- Source directories: {', '.join(testing.source_dirs) or 'not specified'}"
        )
    else:
        details = "- Review any testing patterns found in the codebase."
    return f"""### 7. Test Coverage
{details}
- Do new features have corresponding test files?
- Are edge cases and error paths tested?
- Do existing tests still pass with these changes?"""


def quality_section(policy: ReviewPolicy) -> str:
    return f"""### 8. Documentation
- Are new public functions, interfaces, and types documented?
- Is the PR description adequate for the scope of changes?
- Are complex algorithms or business logic explained?

### 9. Database Performance
- Are there N+1 query patterns?
- Are large result sets paginated or limited?
- Are appropriate indexes in place for new queries?
- Could any query cause a full table scan on large tables?

### 10. Code Quality
- Types are precise and idiomatic for {policy.language}; no escape-hatch types where a real type exists
- Proper error handling
- No hardcoded magic numbers or strings
- Functions have single, clear responsibilities
- No unnecessary abstraction layers or deep call hierarchies"""


def severity_section(_policy: ReviewPolicy) -> str:
    return """## Severity Classification

Classify each finding into exactly one of these severities:

- **blocking**: MUST be fixed before merge. Use for: security vulnerabilities, missing auth, missing tenant scope, breaking migrations, intent mismatch, data loss risk.
- **suggestion**: Can be auto-fixed. Use for: unused imports, minor formatting issues, simple type improvements, trivial refactors. Include a concrete `suggested_fix`.
- **tech_debt**: Should be tracked but doesn't block merge. Use for: missing tests for existing code, TODO comments, code duplication, documentation gaps for non-new code."""


def project_section(policy: ReviewPolicy) -> str:
    lines = [
        "## Project Configuration",
        "",
        f"- Project type: {policy.project_type}",
        f"- Language: {policy.language}",
    ]
    if policy.schema:
        lines.append(f"- ORM: {policy.schema.orm} (schema at {policy.schema.path})")
    if policy.routes:
        lines.append(f"- Routes: {policy.routes.file}")
        lines.append(f"- Data access: {policy.routes.data_access}")
    return "\n".join(lines)


def output_rules_section(_policy: ReviewPolicy) -> str:
    return """## Output Rules

- Be specific: cite exact file paths and line numbers
- Be actionable: explain what needs to change and why
- For suggestions, always include a concrete suggested_fix with the corrected code
- If the PR is clean, say so; don't manufacture findings
- Set status to "approved" ONLY if there are zero blocking findings
- Set status to "changes_requested" if there is at least one blocking finding"""


SYSTEM_PROMPT_SECTIONS: list[PromptSection] = [
    intro_section,
    conventions_section,
    baseline_rules_section,
    checklist_intro_section,
    multi_tenancy_section,
    auth_section,
    frontend_section,
    testing_section,
    quality_section,
    severity_section,
    project_section,
    output_rules_section,
]


def build_system_prompt(policy: ReviewPolicy) -> str:
    """Render the reviewer instructions for a policy."""
    sections = (section(policy) for section in SYSTEM_PROMPT_SECTIONS)
    return "\n\n".join(s for s in sections if s)


def _excluded_disclosure(excluded: list[str]) -> str:
    if not excluded:
        return ""
    noun = "file" if len(excluded) == 1 else "files"
    listing = "\n".join(f"- {name}" for name in excluded)
    return f"""
**Excluded from review ({len(excluded)} {noun}):**
{listing}

These files were excluded by the project config and are not shown in the diff. Do not flag missing coverage or context related to them.
"""


def build_user_message(snapshot: PullRequestSnapshot, excluded: list[str] | None = None) -> str:
    """Render the pull request as the user turn of the review request.

    Args:
        snapshot: The (already filtered) pull request snapshot
        excluded: Filenames removed from the diff by the policy

    Returns:
        Markdown document describing the PR
    """
    commit_list = "\n".join(f"- {c.short_sha}: {c.message}" for c in snapshot.commits)
    file_list = "\n".join(
        f"- {f.filename} ({f.status}, +{f.additions}/-{f.deletions})" for f in snapshot.files
    )

    return f"""## Pull Request

**Title:** {snapshot.title}

**Description:**
{snapshot.body or "(no description provided)"}

**Commits:**
{commit_list}

**Files Changed:**
{file_list}
{_excluded_disclosure(excluded or [])}
## Full Diff

```diff
{snapshot.diff}
```

Review this pull request according to your review checklist. Submit your findings using the {REVIEW_TOOL_NAME} tool."""


FIX_SYSTEM_PROMPT = (
    "You are a code fixer. Apply the requested fixes to the file content. "
    "Return ONLY the complete fixed file content with no explanation, no markdown fences, "
    "no commentary. Preserve all existing code that is not being fixed."
)


def build_fix_message(fix_descriptions: str, original_content: str) -> str:
    """Render the user turn of a whole-file rewrite request."""
    return f"Apply these fixes to the file:\n\n{fix_descriptions}\n\nOriginal file content:\n\n{original_content}"
