"""CHIP-8 Virtual Machine

Driver that owns the run loop around the emulator: it measures elapsed
time between steps, throttles to the configured speed, honours
breakpoints and publishes frames for the pygame display.
"""

from typing import Dict, List, Optional, Any, Callable, Set, Tuple
from dataclasses import dataclass
from pathlib import Path
import logging
import threading
import time
import sys

from rich.console import Console
from rich.logging import RichHandler

# Add src to path for local imports
sys.path.insert(0, str(Path(__file__).parent.parent))

try:
    from .emulator import Emulator, EmulatorError, EmulatorState
    from .display import Display
    from .frame_buffer import render_rows
except ImportError:
    from vm.emulator import Emulator, EmulatorError, EmulatorState
    from vm.display import Display
    from vm.frame_buffer import render_rows

from assembler.assembler import AssemblerError, assemble_source

logger = logging.getLogger(__name__)

SOURCE_SUFFIXES = {'.asm', '.src', '.s', '.c8s'}
INSTRUCTIONS_PER_SPEED_STEP = 100
MIN_SPEED = 1
MAX_SPEED = 10


class VMException(Exception):
    """Base exception for virtual machine errors."""
    pass


@dataclass(frozen=True)
class Frame:
    """Immutable display snapshot handed from the stepping thread to the renderer."""
    pixels: Tuple[bytes, ...]
    play_sound: bool
    sequence: int


class FrameHandoff:
    """Single-slot mailbox holding the most recent frame."""

    def __init__(self):
        self._lock = threading.Lock()
        self._frame: Optional[Frame] = None
        self._sequence = 0

    def publish(self, pixels: Tuple[bytes, ...], play_sound: bool) -> Frame:
        with self._lock:
            self._sequence += 1
            self._frame = Frame(pixels, play_sound, self._sequence)
            return self._frame

    def latest(self) -> Optional[Frame]:
        with self._lock:
            return self._frame


class PerfMonitor:
    """Logs executed instructions per second once per interval."""

    def __init__(self, clock: Callable[[], float] = time.perf_counter, interval: float = 1.0):
        self.clock = clock
        self.interval = interval
        self.window_start: Optional[float] = None
        self.window_steps = 0
        self.last_rate: Optional[float] = None

    def record(self) -> None:
        now = self.clock()
        if self.window_start is None:
            self.window_start = now
        self.window_steps += 1

        elapsed = now - self.window_start
        if elapsed >= self.interval:
            self.last_rate = self.window_steps / elapsed
            logger.info("%.0f instructions/s", self.last_rate)
            self.window_start = now
            self.window_steps = 0


class VirtualMachine:
    """CHIP-8 Virtual Machine - coordinates the emulator, timing and display."""

    def __init__(self,
                 speed: int = 5,
                 enable_display: bool = True,
                 scale: int = 10,
                 debug: bool = False,
                 perfmon: bool = False,
                 keep_open: bool = False,
                 seed: Optional[int] = None,
                 store_load_increments_index: bool = True,
                 clock: Callable[[], float] = time.perf_counter,
                 sleep: Callable[[float], None] = time.sleep):
        """Initialize virtual machine.

        Args:
            speed: 1-10, scaled to 100 instructions per second per step
            enable_display: Whether to open a pygame window
            scale: Display scale factor
            debug: Log every executed instruction
            perfmon: Log instructions per second
            keep_open: Keep the window open after the program finishes
            seed: Seed for RAND (None for a random seed)
            store_load_increments_index: STOR/READ advance I past the registers
            clock: Monotonic clock in seconds
            sleep: Sleep function used for throttling
        """
        if not MIN_SPEED <= speed <= MAX_SPEED:
            raise VMException(f"Speed must be between {MIN_SPEED} and {MAX_SPEED}, got {speed}")

        self.speed = speed
        self.debug = debug
        self.keep_open = keep_open
        self.seed = seed
        self.clock = clock
        self.sleep = sleep

        self.emulator = Emulator(seed, store_load_increments_index)
        self.display = Display(scale) if enable_display else None
        self.frames = FrameHandoff()
        self.perf = PerfMonitor(clock) if perfmon else None

        # Execution state
        self.stop_event = threading.Event()
        self.execution_thread: Optional[threading.Thread] = None
        self.error: Optional[Exception] = None
        self._last_step_time: Optional[float] = None

        # Debugging
        self.breakpoints: Set[int] = set()
        self.debug_callbacks: List[Callable] = []

    @property
    def instructions_per_second(self) -> int:
        return self.speed * INSTRUCTIONS_PER_SPEED_STEP

    @property
    def finished(self) -> bool:
        return self.emulator.finished

    def load_rom(self, rom: bytes) -> None:
        """Load a ROM image and reset the machine."""
        self.emulator.load_rom(rom)
        self.reset()

    def load_source(self, source: str) -> None:
        """Assemble source text and load the result."""
        self.load_rom(assemble_source(source))

    def load_program(self, filename: str) -> None:
        """Load a ROM, or an assembly source by suffix.

        Args:
            filename: Path to a ROM image or assembly source
        """
        path = Path(filename)
        try:
            if path.suffix.lower() in SOURCE_SUFFIXES:
                self.load_source(path.read_text(encoding='utf-8'))
            else:
                self.load_rom(path.read_bytes())
        except (AssemblerError, EmulatorError) as e:
            raise VMException(f"Failed to load program '{filename}': {e}") from e
        logger.info("Loaded program %s", path)

    def reset(self, seed: Optional[int] = None) -> None:
        """Reset the emulator and timing state.

        Without an explicit seed the configured seed is reused.
        """
        self.emulator.reset(self.seed if seed is None else seed)
        self.stop_event.clear()
        self.error = None
        self._last_step_time = None
        self._publish_frame()

    def step(self) -> bool:
        """Execute one instruction with the elapsed time since the last step.

        Returns:
            True if the program can keep running, False once it finished
        """
        if self.emulator.finished:
            return False

        now = self.clock()
        if self._last_step_time is None:
            elapsed_ms = 0.0
        else:
            elapsed_ms = (now - self._last_step_time) * 1000.0
        self._last_step_time = now

        if self.debug:
            logger.debug("PC=%04X %04X %s", self.emulator.pc, self.emulator.fetch(),
                         self.emulator.current_instruction())

        self.emulator.step(elapsed_ms)

        if self.emulator.frame_buffer_updated:
            self._publish_frame()
        if self.perf:
            self.perf.record()

        self._trigger_debug_callbacks()
        return not self.emulator.finished

    def run(self, max_steps: Optional[int] = None, throttle: bool = True) -> str:
        """Run until the program finishes or something stops it.

        Args:
            max_steps: Maximum instructions to execute (None for unlimited)
            throttle: Hold execution to the configured speed

        Returns:
            Why the loop stopped: 'finished', 'breakpoint', 'stopped' or 'max_steps'
        """
        period = 1.0 / self.instructions_per_second
        deadline = self.clock()
        steps = 0

        while True:
            if self.emulator.finished:
                return 'finished'
            if self.stop_event.is_set():
                return 'stopped'
            if max_steps is not None and steps >= max_steps:
                return 'max_steps'
            if steps > 0 and self.emulator.pc in self.breakpoints:
                logger.info("Breakpoint hit at 0x%03X", self.emulator.pc)
                return 'breakpoint'

            self.step()
            steps += 1

            if throttle:
                deadline += period
                delay = deadline - self.clock()
                if delay > 0:
                    self.sleep(delay)
                elif delay < -period:
                    # Fell behind; do not try to catch up in a burst
                    deadline = self.clock()

    def start(self, max_steps: Optional[int] = None) -> None:
        """Start VM execution.

        With a display the run loop moves to ``execution_thread`` and the
        calling (main) thread renders frames until the program finishes
        or the window is closed.

        Raises:
            EmulatorError: If execution failed
        """
        if self.display is None:
            self.run(max_steps)
            return

        if not self.display.initialize_display():
            raise VMException("Failed to initialize display")

        self.stop_event.clear()
        self.execution_thread = threading.Thread(
            target=self._execution_loop, args=(max_steps,), name="chip8-execution", daemon=True
        )
        self.execution_thread.start()

        try:
            while self.execution_thread.is_alive():
                if not self.display.update_display(self.frames.latest()):
                    break
            else:
                if self.error is None and self.keep_open:
                    self._keep_display_open()
        finally:
            self.stop()

        if self.error is not None:
            raise self.error

    def _execution_loop(self, max_steps: Optional[int]) -> None:
        try:
            reason = self.run(max_steps)
            logger.debug("Execution loop ended: %s", reason)
        except EmulatorError as e:
            logger.error("Execution error: %s", e)
            self.error = e

    def _keep_display_open(self) -> None:
        """Keep rendering the final frame until the window is closed."""
        print("Program finished. Close the window or press 'q' to exit.")
        while self.display.update_display(self.frames.latest()):
            pass

    def stop(self) -> None:
        """Stop VM execution."""
        self.stop_event.set()
        if self.execution_thread and self.execution_thread.is_alive():
            self.execution_thread.join(timeout=1.0)
        self.execution_thread = None

    def _publish_frame(self) -> None:
        self.frames.publish(self.emulator.frame_buffer.snapshot(), self.emulator.play_sound)

    def set_breakpoint(self, address: int) -> None:
        """Set a breakpoint at the given address."""
        self.breakpoints.add(address)

    def clear_breakpoint(self, address: int) -> None:
        """Clear a breakpoint at the given address."""
        self.breakpoints.discard(address)

    def clear_all_breakpoints(self) -> None:
        """Clear all breakpoints."""
        self.breakpoints.clear()

    def add_debug_callback(self, callback: Callable) -> None:
        """Add a function called with this VM after every step."""
        self.debug_callbacks.append(callback)

    def remove_debug_callback(self, callback: Callable) -> None:
        if callback in self.debug_callbacks:
            self.debug_callbacks.remove(callback)

    def _trigger_debug_callbacks(self) -> None:
        for callback in self.debug_callbacks:
            callback(self)

    def get_state(self) -> EmulatorState:
        return self.emulator.dump_state()

    def shutdown(self) -> None:
        """Shutdown the virtual machine."""
        self.stop()
        if self.display:
            self.display.shutdown_display()

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.shutdown()


def create_vm(config: Optional[Dict[str, Any]] = None) -> VirtualMachine:
    """Create a virtual machine with optional configuration.

    Args:
        config: Optional configuration dictionary

    Returns:
        Configured VirtualMachine instance
    """
    if config is None:
        config = {}

    return VirtualMachine(
        speed=config.get('speed', 5),
        enable_display=config.get('enable_display', True),
        scale=config.get('scale', 10),
        debug=config.get('debug', False),
        perfmon=config.get('perfmon', False),
        keep_open=config.get('keep_open', False),
        seed=config.get('seed'),
        store_load_increments_index=config.get('store_load_increments_index', True),
    )


def configure_logging(debug: bool, perfmon: bool = False) -> None:
    if debug:
        level = logging.DEBUG
    elif perfmon:
        level = logging.INFO
    else:
        level = logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )


def main():
    """Main entry point for VM when run as script."""
    import argparse

    parser = argparse.ArgumentParser(description='CHIP-8 Virtual Machine')
    subparsers = parser.add_subparsers(dest='command', required=True)

    run_parser = subparsers.add_parser('run', help='Run a ROM or assembly source')
    run_parser.add_argument('program', type=str, help='ROM image or assembly source')
    run_parser.add_argument('--speed', '-s', type=int, default=5,
                            choices=range(MIN_SPEED, MAX_SPEED + 1), metavar='1-10',
                            help='Execution speed (x100 instructions per second)')
    run_parser.add_argument('--debug', '-d', action='store_true', help='Log each executed instruction')
    run_parser.add_argument('--perfmon', '-p', action='store_true', help='Log instructions per second')
    run_parser.add_argument('--keep-open', '-ko', action='store_true',
                            help='Keep the window open after the program finishes')
    run_parser.add_argument('--headless', action='store_true', help='Run without graphics')
    run_parser.add_argument('--scale', type=int, default=10, help='Display scale factor')
    run_parser.add_argument('--seed', type=int, default=None, help='Seed for RAND')
    run_parser.add_argument('--max-steps', type=int, default=None, help='Stop after N instructions')

    args = parser.parse_args()
    configure_logging(args.debug, args.perfmon)

    config = {
        'speed': args.speed,
        'enable_display': not args.headless,
        'scale': args.scale,
        'debug': args.debug,
        'perfmon': args.perfmon,
        'keep_open': args.keep_open,
        'seed': args.seed,
    }

    try:
        with create_vm(config) as vm:
            vm.load_program(args.program)
            vm.start(args.max_steps)

            state = vm.get_state()
            if vm.finished:
                print(f"Program finished at PC=0x{state.program_counter:03X} "
                      f"after {vm.emulator.instruction_count} instructions")
            if args.headless:
                print(render_rows(state.frame_buffer))
    except FileNotFoundError as e:
        print(f"Error: File not found - {e}", file=sys.stderr)
        return 1
    except (VMException, EmulatorError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    return 0


if __name__ == '__main__':
    sys.exit(main())
