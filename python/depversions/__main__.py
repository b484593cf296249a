"""Main CLI entry point for depversions."""

import argparse
import logging
import sys
from typing import Callable, List, Optional, Tuple

from . import __version__
from .api_client import DepsDevClient
from .commands.check import run_check, verify
from .commands.list import run_list
from .config import VALID_SCOPES, CheckConfiguration, ResolverDefinition, VersionCheckExclude
from .errors import DependencyVersionsError
from .formatters import OutputFormatter, ReportEntry
from .graph_builder import DepsDevGraphResolver
from .models import Project
from .parsers import PomParser
from .scopes import TEST
from .strategies import DEFAULT_STRATEGY

logger = logging.getLogger(__name__)

Reports = List[Tuple[Project, List[ReportEntry]]]


def setup_logging(verbose: bool = False, log_level: Optional[str] = None):
    """Configure logging based on verbosity flags."""
    if log_level:
        level = getattr(logging, log_level.upper(), logging.WARNING)
    elif verbose:
        level = logging.INFO
    else:
        level = logging.WARNING

    logging.basicConfig(
        level=level,
        format='%(levelname)s: %(message)s'
    )


def build_configuration(args, conflicts_only: bool) -> CheckConfiguration:
    """Translate command line arguments into a check configuration."""
    resolvers = [ResolverDefinition.from_patterns(strategy, patterns.split(','))
                 for strategy, patterns in (args.resolvers or [])]
    exclusions = [VersionCheckExclude(dependency, expected, resolved)
                  for dependency, expected, resolved in (args.exclusions or [])]

    return CheckConfiguration(
        scope=args.scope,
        deep_scan=args.deep_scan,
        direct_only=args.direct_only,
        managed_only=args.managed_only,
        fast_resolution=not args.sequential,
        resolvers=resolvers,
        default_strategy=args.default_strategy,
        exclusions=exclusions,
        unresolved_system_artifacts_fail_build=args.unresolved_system_artifacts_fail_build,
        conflicts_only=conflicts_only,
        conflicts_fail_build=getattr(args, 'fail_on_conflict', False),
        direct_conflicts_fail_build=getattr(args, 'fail_on_direct_conflict', False),
        skip=args.skip,
        include_pom_projects=args.include_pom_projects,
        quiet=args.quiet,
    )


def render_reports(reports: Reports, output_format: str, text_formatter: Callable[[List[ReportEntry]], str],
                   command_line: Optional[str] = None) -> str:
    """Render the reports of all checked projects."""
    if output_format == 'sbom':
        entries = [entry for _, project_entries in reports for entry in project_entries]
        return OutputFormatter.format_as_sbom([project for project, _ in reports], entries, command_line)

    if len(reports) == 1:
        return text_formatter(reports[0][1])

    sections = []
    for project, entries in reports:
        sections.append(f"{project}:\n{text_formatter(entries)}")
    return '\n'.join(sections)


def write_output(output: str, output_file: str) -> None:
    if output_file == '-':
        print(output, end='')
    else:
        with open(output_file, 'w') as f:
            f.write(output)
        logger.info(f"Output written to: {output_file}")


def _load_projects(pom_file: str) -> List[Project]:
    projects = PomParser().parse_reactor(pom_file)
    logger.info(f"Loaded {len(projects)} projects from {pom_file}")
    return projects


def handle_check(args):
    """Handle the 'check' subcommand."""
    setup_logging(args.verbose, args.loglevel)
    command_line = ' '.join(sys.argv[1:])

    try:
        configuration = build_configuration(args, conflicts_only=args.conflicts_only)
        projects = _load_projects(args.pom)
        with DepsDevGraphResolver(DepsDevClient(timeout=args.timeout)) as resolver:
            result = run_check(projects, configuration, resolver)

        output = render_reports(result.reports, args.output_format, OutputFormatter.format_check_report, command_line)
        write_output(output, args.output)

        verify(result, configuration)
    except DependencyVersionsError as e:
        logger.debug(f"Check failed: {e}", exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except OSError as e:
        logger.error(f"Error writing output: {e}")
        print(f"Error writing output: {e}", file=sys.stderr)
        return 1

    return 0


def handle_list(args):
    """Handle the 'list' subcommand."""
    setup_logging(args.verbose, args.loglevel)
    command_line = ' '.join(sys.argv[1:])

    try:
        configuration = build_configuration(args, conflicts_only=args.conflicts_only)
        projects = _load_projects(args.pom)
        with DepsDevGraphResolver(DepsDevClient(timeout=args.timeout)) as resolver:
            reports = run_list(projects, configuration, resolver)

        output = render_reports(reports, args.output_format, OutputFormatter.format_list_report, command_line)
        write_output(output, args.output)
    except DependencyVersionsError as e:
        logger.debug(f"List failed: {e}", exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except OSError as e:
        logger.error(f"Error writing output: {e}")
        print(f"Error writing output: {e}", file=sys.stderr)
        return 1

    return 0


def _add_common_arguments(subparser: argparse.ArgumentParser) -> None:
    subparser.add_argument('pom', help='Project pom.xml; modules it lists are checked as well')
    subparser.add_argument('output', nargs='?', default='-',
                           help='Output file (default: stdout, use - for stdout)')
    subparser.add_argument('--format', dest='output_format', default='text',
                           choices=['text', 'sbom'],
                           help='Output format (text, sbom). Default: text')
    subparser.add_argument('--scope', default=TEST, choices=list(VALID_SCOPES),
                           help=f'Scope to check. Default: {TEST}')
    subparser.add_argument('--deep-scan', action='store_true',
                           help='Check the dependencies of every resolved artifact, not only the declared ones')
    subparser.add_argument('--direct-only', action='store_true',
                           help='Only report artifacts the project requests directly')
    subparser.add_argument('--managed-only', action='store_true',
                           help='Only report artifacts whose version is managed')
    subparser.add_argument('--sequential', action='store_true',
                           help='Resolve dependencies one after the other instead of in parallel')
    subparser.add_argument('--resolver', dest='resolvers', nargs=2, action='append',
                           metavar=('STRATEGY', 'PATTERNS'),
                           help='Use STRATEGY for artifacts matching the comma separated group[:artifact] '
                                'PATTERNS; may be repeated, the first match wins')
    subparser.add_argument('--exclude', dest='exclusions', nargs=3, action='append',
                           metavar=('PATTERN', 'EXPECTED', 'RESOLVED'),
                           help='Never report a conflict between EXPECTED and RESOLVED for artifacts '
                                'matching PATTERN; may be repeated')
    subparser.add_argument('--default-strategy', default=DEFAULT_STRATEGY,
                           help=f'Strategy for artifacts not matched by a resolver. Default: {DEFAULT_STRATEGY}')
    subparser.add_argument('--unresolved-system-artifacts-fail-build', action='store_true',
                           help='Fail if a system scoped dependency can not be resolved')
    subparser.add_argument('--include-pom-projects', action='store_true',
                           help='Also check projects with pom packaging')
    subparser.add_argument('--skip', action='store_true', help='Do nothing')
    subparser.add_argument('--timeout', type=int, default=30,
                           help='deps.dev request timeout in seconds. Default: 30')
    subparser.add_argument('-q', '--quiet', action='store_true',
                           help='Report progress at debug level only')
    subparser.add_argument('-v', '--verbose', action='store_true',
                           help='Verbose output')
    subparser.add_argument('--loglevel',
                           choices=['DEBUG', 'INFO', 'WARN', 'ERROR'],
                           help='Set log level')


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='depversions',
        description='Find dependency version conflicts in Maven projects'
    )
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')

    subparsers = parser.add_subparsers(dest='command', help='Subcommands')

    # Check command
    check_parser = subparsers.add_parser('check', help='Report version conflicts, optionally failing on them')
    _add_common_arguments(check_parser)
    check_parser.add_argument('--all', dest='conflicts_only', action='store_false',
                              help='Report all dependencies, not only the ones in conflict')
    check_parser.add_argument('--fail-on-conflict', action='store_true',
                              help='Exit with an error if any conflict is found')
    check_parser.add_argument('--fail-on-direct-conflict', action='store_true',
                              help='Exit with an error if a conflict involves a direct dependency')
    check_parser.set_defaults(func=handle_check, conflicts_only=True)

    # List command
    list_parser = subparsers.add_parser('list', help='List all dependencies with their selected versions')
    _add_common_arguments(list_parser)
    list_parser.add_argument('--conflicts-only', action='store_true',
                             help='Only list dependencies in conflict')
    list_parser.set_defaults(func=handle_list)

    return parser


def main(argv: Optional[List[str]] = None):
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    # Execute command
    try:
        return args.func(args)
    except Exception as e:
        logger.exception(f"Unexpected error: {e}")
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == '__main__':
    sys.exit(main())
