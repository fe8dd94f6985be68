#!/usr/bin/env python3
"""CHIP-8 Debugger Runner Script

Sets up the Python path and runs the interactive debugger.
"""

import sys
from pathlib import Path

# Add src to Python path
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root / 'src'))

from debugger.main import main

if __name__ == '__main__':
    sys.exit(main())
