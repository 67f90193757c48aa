"""Target repository resolution, run ids, and pre-flight repository checks."""

import logging
import secrets
import string
from datetime import datetime, timezone
from pathlib import Path

from ob1.core.errors import ConfigurationError, RepositoryStateError
from ob1.integrations import github as github_mod
from ob1.integrations.git import (
    GitError,
    RemoteInfo,
    clone,
    get_remote_url,
    get_repo_root,
    get_status_entries,
    parse_remote_url,
    set_remote_url,
)

logger = logging.getLogger(__name__)

_RUN_ID_ALPHABET = string.ascii_lowercase + string.digits


def make_run_id() -> str:
    """UTC timestamp plus a short random suffix, e.g. 20261018221503-k3x9."""
    timestamp = datetime.now(timezone.utc).strftime("%Y%m%d%H%M%S")
    suffix = "".join(secrets.choice(_RUN_ID_ALPHABET) for _ in range(4))
    return f"{timestamp}-{suffix}"


def is_github_url(repo: str) -> bool:
    return "github.com" in repo


def resolve_repository(repo: str | None, github_token: str | None = None) -> Path:
    """Local checkout for `repo` (URL, path, or None for the current repository)."""
    if repo and is_github_url(repo):
        if not github_token:
            raise ConfigurationError("GITHUB_TOKEN is required when using a GitHub repository URL")
        return ensure_github_repo(repo, github_token)

    try:
        root = get_repo_root(Path(repo).resolve() if repo else None)
    except GitError as e:
        raise RepositoryStateError(f"Not a git repository: {repo or Path.cwd()}") from e
    return Path(root)


def ensure_clean(repo_dir: Path, allow_dirty: bool, ignore: tuple[Path, ...] = ()) -> None:
    """Reject a dirty checkout. Paths under `ignore` (ob1's own output dirs) don't count."""
    if allow_dirty:
        return
    try:
        entries = get_status_entries(repo_dir)
    except GitError as e:
        raise RepositoryStateError(f"Could not read repository status: {e}") from e

    prefixes = _relative_prefixes(repo_dir, ignore)
    dirty = [e for e in entries if not any(_is_under(e.path, p) for p in prefixes)]
    if dirty:
        raise RepositoryStateError(
            "Repository has uncommitted changes. Use --allow-dirty to override."
        )


def _relative_prefixes(repo_dir: Path, paths: tuple[Path, ...]) -> list[str]:
    root = Path(repo_dir).resolve()
    prefixes = []
    for path in paths:
        try:
            relative = Path(path).resolve().relative_to(root)
        except ValueError:
            continue  # Outside the checkout
        if relative.parts:
            prefixes.append(relative.as_posix())
    return prefixes


def _is_under(path: str, prefix: str) -> bool:
    path = path.rstrip("/")
    return path == prefix or path.startswith(prefix + "/")


def get_forge_info(repo_dir: Path) -> RemoteInfo:
    """Owner and name of the repository's origin remote."""
    try:
        url = get_remote_url(repo_dir)
        if not url:
            raise RepositoryStateError("No git remote configured.")
        return parse_remote_url(url)
    except GitError as e:
        raise RepositoryStateError(str(e)) from e


def ensure_github_repo(github_url: str, token: str, local_path: Path | None = None) -> Path:
    """Make sure the GitHub repository exists and is cloned locally.

    Creates the repository when it is missing, reuses an existing checkout at
    the target path, and points `origin` at a token-authenticated URL.
    """
    try:
        info = parse_remote_url(github_url)
    except GitError as e:
        raise ConfigurationError(str(e)) from e

    logger.info("Checking if GitHub repository exists: %s/%s", info.owner, info.name)
    try:
        if not github_mod.repo_exists(token, info.owner, info.name):
            logger.info("Creating GitHub repository: %s/%s", info.owner, info.name)
            github_mod.create_repo(token, info.owner, info.name)
    except github_mod.GitHubError as e:
        raise ConfigurationError(f"Failed to prepare GitHub repository: {e}") from e

    target = local_path or Path.cwd() / info.name
    if (target / ".git").exists():
        logger.info("Using existing local repository at: %s", target)
        return target
    if target.exists() and any(target.iterdir()):
        raise RepositoryStateError(
            f"Directory {target} exists but is not a git repository and is not empty"
        )

    logger.info("Cloning repository to: %s", target)
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        clone(f"https://github.com/{info.owner}/{info.name}.git", target)
        set_remote_url(target, f"https://{token}@github.com/{info.owner}/{info.name}.git")
    except GitError as e:
        raise RepositoryStateError(f"Failed to clone {github_url}: {e}") from e
    return target
