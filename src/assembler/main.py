"""CHIP-8 Assembler Main Entry Point

Command-line interface for the assembler and disassembler.
"""

import sys
import argparse
import logging
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

# Add src/ to path for local imports
_src_dir = str(Path(__file__).parent.parent)
if _src_dir not in sys.path:
    sys.path.insert(0, _src_dir)

try:
    from .assembler import AssemblerError, assemble_source
except ImportError:
    from assembler.assembler import AssemblerError, assemble_source

from isa.instruction_set import disassemble

ROM_SUFFIX = '.ROM'


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )


def assemble_to_rom(input_path: Path, output_path: Optional[Path] = None) -> bool:
    """Assemble a source file to a ROM image.

    Args:
        input_path: Path to the assembly source
        output_path: Path of the ROM to write (defaults to <name>.ROM beside the source)

    Returns:
        True if assembly succeeded, False otherwise
    """
    if not input_path.exists():
        print(f"Error: Input file '{input_path}' not found", file=sys.stderr)
        return False

    with open(input_path, 'r', encoding='utf-8') as f:
        source = f.read()

    try:
        rom = assemble_source(source)
    except AssemblerError as e:
        print(f"Assembly Error: {e}", file=sys.stderr)
        return False

    if output_path is None:
        output_path = input_path.with_suffix(ROM_SUFFIX)

    with open(output_path, 'wb') as f:
        f.write(rom)

    print(f"Assembled {len(rom)} bytes: {input_path} -> {output_path}")
    return True


def disassemble_file(rom_path: Path) -> bool:
    """Print a listing of a ROM image."""
    if not rom_path.exists():
        print(f"Error: ROM file '{rom_path}' not found", file=sys.stderr)
        return False

    rom = rom_path.read_bytes()
    table = Table(title=str(rom_path))
    table.add_column("Address", style="cyan")
    table.add_column("Opcode", style="magenta")
    table.add_column("Instruction", style="green")
    for address, opcode, text in disassemble(rom):
        width = 2 if text.startswith("DB") else 4
        table.add_row(f"0x{address:03X}", f"{opcode:0{width}X}", text)

    Console().print(table)
    return True


def main() -> int:
    """Main entry point for the assembler."""
    parser = argparse.ArgumentParser(
        description="CHIP-8 Assembler - Assemble mnemonic source into a ROM image",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  c8asm assemble pong.asm                  # Write pong.ROM beside the source
  c8asm assemble pong.asm -o out/pong.ROM  # Specify output file
  c8asm disassemble pong.ROM               # Print a listing
"""
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", required=True)

    assemble_parser = subparsers.add_parser("assemble", help="Assemble a source file")
    assemble_parser.add_argument("source", type=Path, help="Assembly source file")
    assemble_parser.add_argument("-o", "--output", type=Path, help="Output ROM file")

    disassemble_parser = subparsers.add_parser("disassemble", help="Disassemble a ROM")
    disassemble_parser.add_argument("rom", type=Path, help="ROM image")

    args = parser.parse_args()
    configure_logging(args.verbose)

    if args.command == "assemble":
        success = assemble_to_rom(args.source, args.output)
    else:
        success = disassemble_file(args.rom)

    return 0 if success else 1


if __name__ == "__main__":
    sys.exit(main())
