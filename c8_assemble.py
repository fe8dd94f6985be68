#!/usr/bin/env python3
"""CHIP-8 Assembler Runner Script

Sets up the Python path and runs the assembler.

Usage:
    python c8_assemble.py assemble <source.asm> [-o <out.ROM>]
    python c8_assemble.py disassemble <rom>
"""

import sys
from pathlib import Path

# Add src to Python path
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root / 'src'))

from assembler.main import main

if __name__ == '__main__':
    sys.exit(main())
