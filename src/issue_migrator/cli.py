"""
Command-line interface for the issue migration tool.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys

from . import github_utils as ghu
from . import gitlab_utils as glu
from .config import ServerSettings
from .exceptions import MigrationError
from .models import Direction, PlatformConfig
from .orchestrator import create_migrator
from .utils import PassError, setup_logging


def parse_arguments(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description="Migrate issues between GitHub and GitLab, including attachments")
    _ = parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")
    _ = parser.add_argument("--log-file", help="Append logs to this file (default: migration.log)")
    subparsers = parser.add_subparsers(dest="command", required=True)

    migrate = subparsers.add_parser("migrate", help="Migrate selected issues")
    _ = migrate.add_argument("direction", choices=[d.value for d in Direction], help="Migration direction")
    _ = migrate.add_argument("github_repo", help="GitHub repository path (owner/repo)")
    _ = migrate.add_argument("gitlab_project_id", type=int, help="Numeric GitLab project id")
    _ = migrate.add_argument(
        "--issue", "-i", dest="issue_ids", type=int, action="append", required=True,
        help="Source issue number. Can be specified multiple times.",
    )  # fmt: skip
    _ = migrate.add_argument("--gitlab-url", default=glu.DEFAULT_BASE_URL, help="GitLab base URL")
    _ = migrate.add_argument("--github-api-url", help="GitHub API URL (GitHub Enterprise)")
    _ = migrate.add_argument("--gitlab-pass-token", help="Path for GitLab token in pass utility (default: $GITLAB_TOKEN)")
    _ = migrate.add_argument("--github-pass-token", help="Path for GitHub token in pass utility (default: $GITHUB_TOKEN)")

    serve = subparsers.add_parser("serve", help="Run the HTTP backend")
    _ = serve.add_argument("--host", help="Interface to bind (default: $HOST or 0.0.0.0)")
    _ = serve.add_argument("--port", type=int, help="Port to listen on (default: $PORT or 8080)")

    return parser.parse_args(argv)


def _platform_configs(args: argparse.Namespace) -> tuple[PlatformConfig, PlatformConfig]:
    """Build (source, target) configurations from the arguments and environment."""
    owner, _, repo = args.github_repo.partition("/")
    github = PlatformConfig(
        type="github",
        owner=owner,
        repo=repo,
        base_url=args.github_api_url or "",
        token=ghu.get_token(args.github_pass_token) or "",
        session=ghu.get_session(),
    )
    gitlab = PlatformConfig(
        type="gitlab",
        project_id=args.gitlab_project_id,
        base_url=args.gitlab_url,
        token=glu.get_token(args.gitlab_pass_token) or "",
        session=glu.get_session(),
    )
    if Direction(args.direction) is Direction.GITHUB_TO_GITLAB:
        return github, gitlab
    return gitlab, github


def _run_migration(args: argparse.Namespace) -> int:
    source, target = _platform_configs(args)
    migrator = create_migrator(args.direction, source, target)
    result = migrator.migrate(args.issue_ids)
    print(json.dumps(result.to_dict(), indent=2))
    return 0 if not result.failed else 1


def main(argv: list[str] | None = None) -> None:
    """Main entry point."""
    args = parse_arguments(argv)

    # Setup logging
    verbose: bool = getattr(args, "verbose", False)
    setup_logging(verbose=verbose, log_file=args.log_file)

    if args.command == "serve":
        from .server import run

        env_settings = ServerSettings.from_env()
        settings = ServerSettings(
            host=args.host or env_settings.host,
            port=args.port or env_settings.port,
            cors_origins=env_settings.cors_origins,
        )
        run(settings)
        return

    try:
        sys.exit(_run_migration(args))
    except (MigrationError, PassError):
        logger = logging.getLogger(__name__)
        logger.exception("Migration failed")
        sys.exit(1)
