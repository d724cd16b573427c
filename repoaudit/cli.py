"""CLI entry point - run the audit, write artifacts, print a short overview."""

import json
import logging
import sys
from dataclasses import asdict
from pathlib import Path

import click
import typer

# Subcommands (so "repoaudit secrets" is not taken for a path)
_SUBCOMMANDS = {"locate", "patterns", "secrets"}
_VALUE_OPTIONS = (
    "--path", "-p", "--output", "-o", "--branch", "-b", "--remote", "-r", "--config", "-c", "--decoder",
)


def _preprocess_argv():
    """Fix argv so `repoaudit . --json` works like `repoaudit -p . --json`."""
    argv = sys.argv[1:]
    if not argv:
        return
    first = argv[0]
    if first in _SUBCOMMANDS or first.startswith("-"):
        return
    opt_tokens = ["-p", first]
    i = 1
    while i < len(argv):
        t = argv[i]
        opt_tokens.append(t)
        i += 1
        if t in _VALUE_OPTIONS and "=" not in t and i < len(argv):
            opt_tokens.append(argv[i])
            i += 1
    sys.argv[1:] = opt_tokens


from .config import AuditConfig, load_config, resolve_output_dir
from .errors import AuditError, ConfigurationError, ParseError
from .format import format_console
from .locator import locate_repository
from .pipeline import FatalAuditError, run_audit
from .secret_scan import SECRET_PATTERNS, render_matches, scan_history, scan_worktree
from .sink import ReportSink

app = typer.Typer(help="Audit a repository's size, secret-leak and branch protection posture.")


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def _fail(msg: str) -> None:
    """Print a red error and exit 1."""
    typer.echo(click.style(f"ERROR: {msg}", fg="red"), err=True)
    raise typer.Exit(1)


def _write_error(path: Path, output: str | None, error: Exception) -> None:
    """Leave error.txt in the output dir, unless that dir is itself the problem."""
    try:
        out_dir = resolve_output_dir(path, output or AuditConfig.output_dir)
    except ConfigurationError:
        return
    ReportSink.create(out_dir).write("error.txt", f"ERROR: {error}")


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    path: Path = typer.Option(Path("."), "--path", "-p", exists=True, file_okay=False, dir_okay=True, resolve_path=True, help="Repository path (default: .)"),
    output: str = typer.Option(None, "--output", "-o", help="Artifact directory (default: repo_audit_output)"),
    branch: str = typer.Option(None, "--branch", "-b", help="Branch whose protection is checked (default: main)"),
    remote: str = typer.Option(None, "--remote", "-r", help="Remote naming the upstream (default: origin)"),
    config_file: Path = typer.Option(None, "--config", "-c", help="YAML config (default: .repoaudit.yaml in the repo)"),
    fetch: bool = typer.Option(False, "--fetch", help="git fetch --all --prune before auditing"),
    decoder: str = typer.Option(None, "--decoder", help="Response decoder: auto, json or regex"),
    json_out: bool = typer.Option(False, "--json", "-j", help="Print the run outcome as JSON"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging on stderr"),
) -> None:
    """Run the full audit and write the summary plus per-step artifacts."""
    _setup_logging(verbose)
    if ctx.invoked_subcommand is not None:
        return

    try:
        config = load_config(
            path, config_file,
            output_dir=output, branch=branch, remote=remote,
            fetch=True if fetch else None, decoder=decoder,
        )
        resolve_output_dir(path, config.output_dir)
    except ConfigurationError as e:
        _write_error(path, output, e)
        _fail(str(e))

    try:
        report = run_audit(path, config)
    except FatalAuditError as e:
        _fail(f"{e}\nDetails: {e.error_path}")

    if json_out:
        output_data = {
            "repository": report.repository.full_name if report.repository else None,
            "started_at": report.started_at,
            "output_dir": report.output_dir,
            "summary": report.summary_path,
            "degraded": report.degraded_steps,
            "steps": [asdict(s) for s in report.steps],
        }
        typer.echo(json.dumps(output_data, indent=2))
    else:
        typer.echo(format_console(report))


@app.command("locate")
def locate_cmd(
    path: Path = typer.Argument(Path("."), exists=True, file_okay=False, dir_okay=True, resolve_path=True, help="Repository path"),
    remote: str = typer.Option("origin", "--remote", "-r", help="Remote name"),
) -> None:
    """Print owner/repo parsed from the remote URL."""
    try:
        identity = locate_repository(path, remote)
    except (ConfigurationError, ParseError) as e:
        _fail(str(e))
    typer.echo(identity.full_name)


@app.command("patterns")
def patterns_cmd() -> None:
    """List the secret heuristics (matching is case-sensitive)."""
    typer.echo("Secret heuristics:")
    for p in SECRET_PATTERNS:
        typer.echo(f"  {p}")
    typer.echo("\nMatches are candidates for manual triage, not confirmed secrets.")


@app.command("secrets")
def secrets_cmd(
    path: Path = typer.Argument(Path("."), exists=True, file_okay=False, dir_okay=True, resolve_path=True, help="Repository path"),
    history: bool = typer.Option(False, "--history", help="Also grep every reachable commit"),
    limit: int = typer.Option(500, "--limit", "-l", help="Worktree display limit"),
) -> None:
    """Run only the secret heuristics and print matches."""
    try:
        config = load_config(path)
        exclude = [resolve_output_dir(path, config.output_dir)]
    except ConfigurationError as e:
        _fail(str(e))
    worktree_result = scan_worktree(path, exclude, limit=limit)
    if history:
        try:
            history_result = scan_history(path)
        except AuditError as e:
            _fail(str(e))
        typer.echo("history matches:")
        typer.echo(render_matches(history_result) or "(none)")
    typer.echo("worktree matches:")
    typer.echo(render_matches(worktree_result) or "(none)")


def _main() -> None:
    """Entry point: preprocess argv (repoaudit . -> repoaudit -p .), then run app."""
    _preprocess_argv()
    app()


if __name__ == "__main__":
    _main()
