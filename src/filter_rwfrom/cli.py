"""
Command-line interface for filter-rwfrom.

CLI Structure:
    filter-rwfrom check [RULES]
    filter-rwfrom rewrite [RULES] [--mail ADDR] [--rcpt ADDR] [--input FILE]
    filter-rwfrom pipe [RULES]

RULES defaults to the rules file from the settings (``rules_file``,
``RWFROM_CONF``), itself defaulting to /etc/mail/filter-rwfrom.conf. A rule
file that cannot be read or parsed stops the command with exit status 1
before any message is touched.
"""
import io
import sys
import logging
import uuid
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional, TextIO

import click

from filter_rwfrom import __version__
from filter_rwfrom.config import FilterSettings, load_settings
from filter_rwfrom.engine import RewriteEngine
from filter_rwfrom.errors import ConfigError, RuleConfigError, error_code_for, log_error_with_context
from filter_rwfrom.filter import FilterHost
from filter_rwfrom.logging_config import init_logging
from filter_rwfrom.logging_context import set_run_id, with_session_context
from filter_rwfrom.protocol import ProtocolDriver
from filter_rwfrom.rules import load_rules_file

logger = logging.getLogger(__name__)

# Mail is 8-bit data: bytes that are not UTF-8 pass through unchanged
MAIL_ERRORS = 'surrogateescape'

rules_argument = click.argument(
    'rules',
    required=False,
    type=click.Path(path_type=Path, dir_okay=False)
)


@click.group()
@click.version_option(version=__version__, prog_name='filter-rwfrom')
@click.option(
    '--settings',
    'settings_path',
    type=click.Path(path_type=Path, dir_okay=False),
    help='Path to YAML settings file.'
)
@click.option(
    '--env',
    'env_path',
    type=click.Path(path_type=Path, dir_okay=False),
    help='Path to .env file with environment overrides.'
)
@click.option(
    '--log-level',
    type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR'], case_sensitive=False),
    help='Override the configured log level.'
)
@click.pass_context
def cli(ctx: click.Context, settings_path: Optional[Path], env_path: Optional[Path], log_level: Optional[str]):
    """
    filter-rwfrom: rewrite the From: header of messages in transit

    Rules select a replacement From: address by matching the envelope
    sender or recipient against glob patterns.
    """
    ctx.ensure_object(dict)

    try:
        settings = load_settings(settings_path, env_path)
    except ConfigError as e:
        click.echo(f"Configuration error: {e}", err=True)
        sys.exit(1)

    log_overrides = dict(settings.logging)
    if log_level:
        log_overrides['level'] = log_level.upper()
    init_logging(overrides=log_overrides)
    set_run_id(uuid.uuid4().hex[:12])

    ctx.obj['settings'] = settings


def _load_engine(settings: FilterSettings, rules: Optional[Path]) -> RewriteEngine:
    """
    Load the rule file and build the engine, exiting on configuration errors.
    """
    path = rules if rules is not None else settings.rules_file
    try:
        store = load_rules_file(path, comment_prefix=settings.comment_prefix)
    except RuleConfigError as e:
        log_error_with_context(e, error_code_for(e), "Loading rule file", context={'path': path})
        click.echo(f"Configuration error: {path}: {e}", err=True)
        sys.exit(1)
    return RewriteEngine(store, max_line_size=settings.max_line_size)


@contextmanager
def _mail_stream(name: str) -> Iterator[TextIO]:
    """
    Open stdin or stdout as UTF-8 text that round-trips any byte.

    The wrapper is detached on exit so the underlying binary stream stays open.
    """
    stream = io.TextIOWrapper(click.get_binary_stream(name), encoding='utf-8', errors=MAIL_ERRORS)
    try:
        yield stream
    finally:
        if name != 'stdin':
            stream.flush()
        stream.detach()


@cli.command()
@rules_argument
@click.pass_context
def check(ctx: click.Context, rules: Optional[Path]):
    """Validate the rule file and report how many rules it holds."""
    settings = ctx.obj['settings']
    engine = _load_engine(settings, rules)
    path = rules if rules is not None else settings.rules_file
    click.echo(f"{path}: {len(engine.rules)} rule(s) OK")


@cli.command()
@rules_argument
@click.option('--mail', 'mail_address', type=str, help='Envelope sender of the message.')
@click.option('--rcpt', 'rcpt_address', type=str, help='Envelope recipient of the message.')
@click.option(
    '--input',
    'input_file',
    type=click.File('r', encoding='utf-8', errors=MAIL_ERRORS),
    default='-',
    help='Message to filter (default: stdin).'
)
@click.pass_context
def rewrite(
    ctx: click.Context,
    rules: Optional[Path],
    mail_address: Optional[str],
    rcpt_address: Optional[str],
    input_file
):
    """Filter a single message and write it to stdout."""
    engine = _load_engine(ctx.obj['settings'], rules)
    host = FilterHost(engine)
    session_id = 'cli'

    with with_session_context(session_id), _mail_stream('stdout') as output:
        host.message_begin(session_id)
        if mail_address is not None:
            host.envelope_sender(session_id, mail_address)
        if rcpt_address is not None:
            host.envelope_recipient(session_id, rcpt_address)
        for raw in input_file:
            output.write(host.body_line(session_id, raw.rstrip('\r\n')) + '\n')
        host.message_end(session_id)


@cli.command()
@rules_argument
@click.pass_context
def pipe(ctx: click.Context, rules: Optional[Path]):
    """Run the filter event protocol on stdin/stdout."""
    engine = _load_engine(ctx.obj['settings'], rules)
    logger.debug("starting...")

    with _mail_stream('stdin') as source, _mail_stream('stdout') as output:
        count = ProtocolDriver(FilterHost(engine), output).run(source)

    logger.debug(f"exiting after {count} event(s)")


def main() -> int:
    """Console script entry point."""
    cli(prog_name='filter-rwfrom')
    return 0
