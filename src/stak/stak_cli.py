"""
Command-line interface for compiling and running Stak programs.
"""

import argparse
import logging
import sys
from typing import List

from stak.stak import Stak
from stak.stak_config import StakConfig
from stak.stak_error import StakConfigError, StakError
from stak.stak_trace import StakFileTraceWatcher, StakStdoutTraceWatcher


def build_arg_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the stak command."""
    parser = argparse.ArgumentParser(
        prog="stak",
        description="Compile a Stak program to stack IR and run it",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s factorial.stak                    # Compile and run
  %(prog)s factorial.stak --dump-ir          # Show the optimized IR first
  %(prog)s factorial.stak --no-optimize      # Skip constant folding
  %(prog)s factorial.stak --output out.txt   # Write program output to a file
  %(prog)s factorial.stak --frames-to-stderr # Keep frame traces out of the program output
        """
    )
    parser.add_argument('file', help='Stak source file')
    parser.add_argument('--config', '-c', help='YAML configuration file')
    parser.add_argument('--dump-ir', action='store_true', default=None,
                        help='Print the IR before running it')
    parser.add_argument('--no-optimize', action='store_true',
                        help='Disable constant folding')
    parser.add_argument('--no-trace', action='store_true',
                        help='Do not emit frame allocation and tail call lines')
    parser.add_argument('--frames-to-stderr', action='store_true',
                        help='Write frame allocation and tail call lines to stderr, keeping program output separate')
    parser.add_argument('--max-call-depth', type=int,
                        help='Maximum number of nested function frames')
    parser.add_argument('--output', '-o', help='Write program output to this file instead of stdout')
    parser.add_argument('--verbose', '-v', action='store_true',
                        help='Enable debug logging')
    return parser


def resolve_config(args: argparse.Namespace) -> StakConfig:
    """Load the configuration file, if any, and apply command-line overrides."""
    config = StakConfig.load_from_file(args.config) if args.config else StakConfig()

    if args.dump_ir:
        config.dump_ir = True

    if args.no_optimize:
        config.optimize = False

    if args.no_trace:
        config.trace_frames = False

    if args.max_call_depth is not None:
        config.max_call_depth = args.max_call_depth

    if args.verbose:
        config.log_level = "DEBUG"

    errors = config.validation_errors()
    if errors:
        raise StakConfigError(f"Invalid configuration: {errors[0]}")

    return config


def main(argv: List[str] | None = None) -> int:
    """Main CLI entry point."""
    args = build_arg_parser().parse_args(argv)

    try:
        config = resolve_config(args)

    except StakError as e:
        print(str(e), file=sys.stderr)
        return 1

    logging.basicConfig(
        level=getattr(logging, config.log_level.upper()),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    logger = logging.getLogger("StakCLI")

    try:
        with open(args.file, 'r', encoding='utf-8') as f:
            source = f.read()

    except OSError as e:
        print(f"Error: Cannot read '{args.file}': {e}", file=sys.stderr)
        return 1

    stak = Stak(
        optimize=config.optimize,
        max_call_depth=config.max_call_depth,
        trace_frames=config.trace_frames,
        validate=config.validate
    )

    try:
        program = stak.compile(source, name=args.file)
        if config.dump_ir:
            print(program.dump())

        vm = stak.create_vm()
        frame_stream = sys.stderr if args.frames_to_stderr else None
        if args.output:
            with StakFileTraceWatcher(args.output, frame_stream) as watcher:
                vm.set_trace_watcher(watcher)
                vm.execute(program)

        else:
            vm.set_trace_watcher(StakStdoutTraceWatcher(frame_stream))
            vm.execute(program)

    except StakError as e:
        logger.debug("Run of %s failed", args.file, exc_info=True)
        print(str(e), file=sys.stderr)
        return 1

    except RuntimeError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    return 0
