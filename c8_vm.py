#!/usr/bin/env python3
"""CHIP-8 Virtual Machine Runner Script

Sets up the Python path and runs the emulator.

Usage:
    python c8_vm.py run <rom|source.asm> [-s 1-10] [-d] [-p] [-ko] [--headless]

Flags:
    -s, --speed N     Execution speed, N x 100 instructions per second (default: 5)
    -d, --debug       Log every executed instruction
    -p, --perfmon     Log instructions per second
    -ko, --keep-open  Keep the window open after the program finishes
    --headless        Run without a graphical display
"""

import sys
from pathlib import Path

# Add src to Python path
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root / 'src'))

from vm.virtual_machine import main

if __name__ == '__main__':
    sys.exit(main())
