"""CHIP-8 Interactive Debugger

Provides a command-line interface for stepping through CHIP-8 programs.
"""

import cmd
from typing import Optional

from rich.console import Console
from rich.table import Table
from rich.panel import Panel

from isa.instruction_set import disassemble_opcode
from vm.emulator import EmulatorError
from vm.frame_buffer import render_rows
from vm.memory import MEMORY_SIZE
from vm.virtual_machine import VirtualMachine, VMException, create_vm


class Chip8Debugger(cmd.Cmd):
    """Interactive debugger for CHIP-8 programs."""

    intro = """CHIP-8 Interactive Debugger v0.1.0
Type 'help' or '?' for commands.
"""
    prompt = "(c8-debug) "

    def __init__(self, seed: Optional[int] = None, console: Optional[Console] = None):
        super().__init__()
        self.vm: Optional[VirtualMachine] = None
        self.seed = seed
        self.console = console or Console()
        self.program_file: Optional[str] = None
        self.last_dump_address = 0x200
        self.last_dump_count = 16

    def preloop(self):
        """Setup before command loop."""
        self.console.print("[bold blue]CHIP-8 Interactive Debugger[/bold blue]")
        self.console.print("Load a ROM or source file with 'load <filename>' to start debugging.\n")

    def postloop(self):
        """Cleanup after command loop."""
        if self.vm:
            self.vm.shutdown()

    def emptyline(self) -> bool:
        return False

    def _require_vm(self) -> bool:
        if not self.vm:
            self.console.print("[red]No program loaded[/red]")
            return False
        return True

    # File operations

    def do_load(self, arg: str) -> None:
        """Load a ROM or assembly source: load <filename>"""
        if not arg:
            self.console.print("[red]Error: Please specify a filename[/red]")
            return

        try:
            if self.vm:
                self.vm.shutdown()

            self.vm = create_vm({'enable_display': False, 'seed': self.seed})
            self.vm.load_program(arg)
            self.program_file = arg

            self.console.print(f"[green]Program loaded: {arg}[/green]")
            self._show_status()

        except (VMException, OSError) as e:
            self.vm = None
            self.console.print(f"[red]Error loading program: {e}[/red]")

    def do_reload(self, arg: str) -> None:
        """Reload the current program from disk"""
        if not self.program_file:
            self.console.print("[red]No program loaded[/red]")
            return

        breakpoints = set(self.vm.breakpoints) if self.vm else set()
        self.do_load(self.program_file)
        if self.vm:
            self.vm.breakpoints.update(breakpoints)

    # Execution control

    def do_run(self, arg: str) -> None:
        """Run until finished or a breakpoint: run [max_steps]"""
        if not self._require_vm():
            return

        max_steps = None
        if arg:
            try:
                max_steps = int(arg)
            except ValueError:
                self.console.print("[red]Invalid step count[/red]")
                return

        try:
            reason = self.vm.run(max_steps, throttle=False)
            self.console.print(f"[green]Stopped: {reason}[/green]")
        except EmulatorError as e:
            self.console.print(f"[red]Execution error: {e}[/red]")

        self._show_status()

    def do_continue(self, arg: str) -> None:
        """Continue execution: continue"""
        self.do_run("")

    def do_step(self, arg: str) -> None:
        """Execute instructions: step [count]"""
        if not self._require_vm():
            return

        count = 1
        if arg:
            try:
                count = int(arg)
            except ValueError:
                self.console.print("[red]Invalid step count[/red]")
                return

        try:
            for _ in range(count):
                if not self.vm.step():
                    break
        except EmulatorError as e:
            self.console.print(f"[red]Execution error: {e}[/red]")

        self._show_status()

    def do_reset(self, arg: str) -> None:
        """Reset the virtual machine: reset [seed]"""
        if not self._require_vm():
            return

        seed = None
        if arg:
            try:
                seed = int(arg)
            except ValueError:
                self.console.print("[red]Invalid seed[/red]")
                return

        self.vm.reset(seed)
        self.console.print("[green]Virtual machine reset[/green]")
        self._show_status()

    # Breakpoints

    def do_break(self, arg: str) -> None:
        """Set breakpoint: break <address>"""
        if not self._require_vm():
            return

        if not arg:
            self._list_breakpoints()
            return

        try:
            address = self._parse_address(arg)
            self.vm.set_breakpoint(address)
            self.console.print(f"[green]Breakpoint set at 0x{address:03X}[/green]")
        except ValueError:
            self.console.print("[red]Invalid address[/red]")

    def do_delete(self, arg: str) -> None:
        """Delete breakpoint: delete <address>"""
        if not self._require_vm():
            return

        if not arg:
            self.console.print("[red]Please specify breakpoint address[/red]")
            return

        try:
            address = self._parse_address(arg)
            self.vm.clear_breakpoint(address)
            self.console.print(f"[yellow]Breakpoint cleared at 0x{address:03X}[/yellow]")
        except ValueError:
            self.console.print("[red]Invalid address[/red]")

    def do_clear(self, arg: str) -> None:
        """Clear all breakpoints: clear"""
        if not self._require_vm():
            return

        self.vm.clear_all_breakpoints()
        self.console.print("[yellow]All breakpoints cleared[/yellow]")

    # Information display

    def do_status(self, arg: str) -> None:
        """Show VM status: status"""
        if not self._require_vm():
            return
        self._show_status()

    def do_registers(self, arg: str) -> None:
        """Show V0-VF, I, PC and the stack: registers"""
        if not self._require_vm():
            return
        self._show_registers()

    def do_memory(self, arg: str) -> None:
        """Show memory: memory [address] [count]"""
        if not self._require_vm():
            return

        address = self.last_dump_address
        count = self.last_dump_count

        if arg:
            parts = arg.split()
            try:
                address = self._parse_address(parts[0])
                if len(parts) >= 2:
                    count = int(parts[1])
            except ValueError:
                self.console.print("[red]Invalid address or count[/red]")
                return

        self.last_dump_address = address
        self.last_dump_count = count
        self._show_memory(address, count)

    def do_program(self, arg: str) -> None:
        """Disassemble around PC: program [address] [count]"""
        if not self._require_vm():
            return

        start = max(0x200, self.vm.emulator.pc - 4)
        count = 10

        if arg:
            parts = arg.split()
            try:
                start = self._parse_address(parts[0])
                if len(parts) >= 2:
                    count = int(parts[1])
            except ValueError:
                self.console.print("[red]Invalid address or count[/red]")
                return

        self._show_program(start, count)

    def do_screen(self, arg: str) -> None:
        """Show the frame buffer: screen"""
        if not self._require_vm():
            return

        state = self.vm.get_state()
        lit = self.vm.emulator.frame_buffer.lit_pixels()
        self.console.print(Panel(render_rows(state.frame_buffer), title="Display",
                                 subtitle=f"{lit} pixels lit",
                                 border_style="blue", expand=False))

    # Memory/Register modification

    def do_set(self, arg: str) -> None:
        """Set register or memory: set reg <Vx|I> <value> | set mem <addr> <value>"""
        if not self._require_vm():
            return

        usage = "[red]Usage: set reg <Vx|I> <value> | set mem <addr> <value>[/red]"
        parts = arg.split()
        if len(parts) < 3:
            self.console.print(usage)
            return

        emulator = self.vm.emulator
        try:
            value = self._parse_address(parts[2])
            if parts[0] == 'reg':
                name = parts[1].upper()
                if name == 'I':
                    emulator.index_register = value & 0xFFFF
                elif len(name) == 2 and name[0] == 'V':
                    emulator.registers[int(name[1], 16)] = value & 0xFF
                else:
                    raise ValueError(f"Unknown register {parts[1]}")
                self.console.print(f"[green]{name} = 0x{value:02X}[/green]")
            elif parts[0] == 'mem':
                address = self._parse_address(parts[1])
                emulator.memory.write_byte(address, value)
                self.console.print(f"[green]Memory[0x{address:03X}] = 0x{value & 0xFF:02X}[/green]")
            else:
                self.console.print(usage)
        except ValueError as e:
            self.console.print(f"[red]Error: {e}[/red]")

    # Utility commands

    def do_quit(self, arg: str) -> bool:
        """Quit the debugger: quit"""
        self.console.print("[blue]Goodbye![/blue]")
        return True

    def do_exit(self, arg: str) -> bool:
        """Exit the debugger: exit"""
        return self.do_quit(arg)

    def do_help(self, arg: str) -> None:
        """Show help: help [command]"""
        if arg:
            super().do_help(arg)
        else:
            self.console.print(Panel(
                "[bold]CHIP-8 Debugger Commands[/bold]\n\n"
                "[green]File Operations:[/green]\n"
                "  load <file>       - Load ROM or assembly source\n"
                "  reload            - Reload current program\n\n"
                "[green]Execution Control:[/green]\n"
                "  run [steps]       - Run until finished or breakpoint\n"
                "  continue          - Same as run\n"
                "  step [count]      - Execute instruction(s)\n"
                "  reset [seed]      - Reset VM\n\n"
                "[green]Breakpoints:[/green]\n"
                "  break [addr]      - Set/list breakpoints\n"
                "  delete <addr>     - Delete breakpoint\n"
                "  clear             - Clear all breakpoints\n\n"
                "[green]Information:[/green]\n"
                "  status            - Show VM status\n"
                "  registers         - Show registers and stack\n"
                "  memory [addr] [n] - Show memory\n"
                "  program [addr]    - Disassemble program\n"
                "  screen            - Show the display\n\n"
                "[green]Modification:[/green]\n"
                "  set reg <Vx|I> <v> - Set register\n"
                "  set mem <a> <v>    - Set memory byte\n\n"
                "[green]Other:[/green]\n"
                "  help [cmd]        - Show help\n"
                "  quit/exit         - Exit debugger",
                title="Help",
                border_style="blue"
            ))

    # Helper methods

    def _show_status(self) -> None:
        """Display VM status."""
        if not self.vm:
            return

        emulator = self.vm.emulator
        state = emulator.dump_state()
        status_text = f"""[bold]PC:[/bold] 0x{state.program_counter:03X}  {emulator.current_instruction()}
[bold]I:[/bold] 0x{state.index_register:03X}
[bold]Instructions:[/bold] {emulator.instruction_count}
[bold]Call depth:[/bold] {state.call_depth}
[bold]Delay timer:[/bold] {state.delay_timer}
[bold]Finished:[/bold] {state.finished}"""

        self.console.print(Panel(status_text, title="VM Status", border_style="green"))

    def _show_registers(self) -> None:
        """Display registers."""
        state = self.vm.get_state()

        table = Table(title="Registers")
        table.add_column("Reg", style="cyan")
        table.add_column("Hex", style="green")
        table.add_column("Dec", style="yellow")
        table.add_column("Bin", style="blue")

        for i, value in enumerate(state.registers):
            table.add_row(f"V{i:X}", f"0x{value:02X}", f"{value}", f"{value:08b}")
        table.add_row("I", f"0x{state.index_register:03X}", f"{state.index_register}", "")
        table.add_row("PC", f"0x{state.program_counter:03X}", f"{state.program_counter}", "")
        table.add_row("SP", f"0x{state.stack_pointer:03X}", f"{state.stack_pointer}", "")

        self.console.print(table)

        if state.stack:
            stack = ", ".join(f"0x{address:03X}" for address in state.stack)
            self.console.print(f"[bold]Stack:[/bold] {stack}")

    def _show_memory(self, address: int, count: int = 16) -> None:
        """Display memory contents."""
        memory_data = self.vm.emulator.memory.dump(address, count)

        table = Table(title=f"Memory (0x{address:03X})")
        table.add_column("Address", style="cyan")
        table.add_column("Hex", style="green")
        table.add_column("Dec", style="yellow")
        table.add_column("Bin", style="blue")
        table.add_column("Region", style="magenta")

        for addr, value in memory_data.items():
            region = self.vm.emulator.memory.region_of(addr).name
            table.add_row(f"0x{addr:03X}", f"0x{value:02X}", f"{value}", f"{value:08b}", region)

        self.console.print(table)

    def _show_program(self, start: int = 0x200, count: int = 10) -> None:
        """Display disassembled instructions."""
        emulator = self.vm.emulator

        table = Table(title="Program")
        table.add_column("Address", style="cyan")
        table.add_column("Opcode", style="magenta")
        table.add_column("Instruction", style="green")
        table.add_column("PC", style="red")

        for addr in range(start, min(start + count * 2, MEMORY_SIZE - 1), 2):
            opcode = emulator.memory.read_word(addr)
            pc_marker = ">>>" if addr == emulator.pc else ""
            breakpoint_marker = "*" if addr in self.vm.breakpoints else ""
            table.add_row(f"0x{addr:03X}", f"{opcode:04X}", disassemble_opcode(opcode),
                          f"{pc_marker} {breakpoint_marker}")

        self.console.print(table)

    def _list_breakpoints(self) -> None:
        """List all breakpoints."""
        if not self.vm.breakpoints:
            self.console.print("[yellow]No breakpoints set[/yellow]")
            return

        table = Table(title="Breakpoints")
        table.add_column("Address", style="cyan")

        for addr in sorted(self.vm.breakpoints):
            table.add_row(f"0x{addr:03X}")

        self.console.print(table)

    def _parse_address(self, addr_str: str) -> int:
        """Parse address string ($hex, 0xhex or decimal)."""
        if addr_str.startswith('$'):
            return int(addr_str[1:], 16)
        if addr_str.startswith('0x') or addr_str.startswith('0X'):
            return int(addr_str, 16)
        return int(addr_str)


def start_interactive_debugger(program_file: Optional[str] = None,
                               seed: Optional[int] = None) -> None:
    """Start the interactive debugger.

    Args:
        program_file: Optional program file to load automatically
        seed: Seed for RAND
    """
    debugger = Chip8Debugger(seed)

    if program_file:
        debugger.onecmd(f"load {program_file}")

    try:
        debugger.cmdloop()
    except KeyboardInterrupt:
        print("\nGoodbye!")
    finally:
        if debugger.vm:
            debugger.vm.shutdown()
