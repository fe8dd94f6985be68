"""CHIP-8 Debugger Main Entry Point

Command-line interface for the CHIP-8 debugger.
"""

import sys
import argparse
from pathlib import Path

# Add src/ to path for local imports
_src_dir = str(Path(__file__).parent.parent)
if _src_dir not in sys.path:
    sys.path.insert(0, _src_dir)

from debugger.interactive_debugger import start_interactive_debugger


def main() -> int:
    """Main entry point for the debugger."""
    parser = argparse.ArgumentParser(
        description="CHIP-8 Debugger - Step through CHIP-8 ROMs and sources",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  c8-debug                       # Start the debugger without a program
  c8-debug pong.ROM              # Debug a ROM image
  c8-debug pong.asm --seed 123   # Assemble and debug a source file
"""
    )

    parser.add_argument(
        "program",
        nargs="?",
        type=Path,
        help="ROM image or assembly source to debug"
    )

    parser.add_argument(
        "--seed",
        type=int,
        default=None,
        help="Seed for the RAND instruction"
    )

    parser.add_argument(
        "--version",
        action="version",
        version="CHIP-8 Debugger v0.1.0"
    )

    args = parser.parse_args()

    try:
        program_file = str(args.program) if args.program else None
        start_interactive_debugger(program_file, args.seed)
        return 0

    except KeyboardInterrupt:
        print("\nInterrupted by user")
        return 1


if __name__ == "__main__":
    sys.exit(main())
