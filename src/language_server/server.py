"""CHIP-8 Assembly Language Server

Implements the Language Server Protocol for CHIP-8 assembly sources:
assembler diagnostics, mnemonic and register completion, and hover help
built from the instruction set table.
"""

import logging
import re
from typing import Dict, List, Optional

from pygls.server import LanguageServer
from lsprotocol.types import (
    TEXT_DOCUMENT_COMPLETION,
    TEXT_DOCUMENT_DIAGNOSTIC,
    TEXT_DOCUMENT_DID_CHANGE,
    TEXT_DOCUMENT_DID_CLOSE,
    TEXT_DOCUMENT_DID_OPEN,
    TEXT_DOCUMENT_HOVER,
    CompletionItem,
    CompletionItemKind,
    CompletionList,
    CompletionOptions,
    CompletionParams,
    Diagnostic,
    DiagnosticOptions,
    DiagnosticSeverity,
    DidChangeTextDocumentParams,
    DidCloseTextDocumentParams,
    DidOpenTextDocumentParams,
    DocumentDiagnosticParams,
    FullDocumentDiagnosticReport,
    Hover,
    HoverParams,
    MarkupContent,
    MarkupKind,
    Position,
    Range,
    TextDocumentSyncKind,
)

from assembler.assembler import AssemblerError, assemble_source
from isa.instruction_set import INSTRUCTION_SET, lookup

logger = logging.getLogger(__name__)

DIAGNOSTIC_SOURCE = "c8asm"

DATA_DIRECTIVES = [
    ('DW', 'DW #HHHH', 'Emit a 16-bit word, high byte first'),
    ('DB', 'DB $bbbbbbbb', 'Emit one byte from 8 bits of 0, 1 or . (MSB first)'),
]

REGISTER_NAMES = [f"V{i:X}" for i in range(16)]

_WORD = re.compile(r"[A-Za-z0-9_]")


def document_lines(text: str) -> List[str]:
    """Split a document the way the assembler numbers its lines."""
    lines = text.splitlines()
    # A trailing line break opens an empty last line for the editor
    if not lines or text.endswith(('\n', '\r')):
        lines.append("")
    return lines


def collect_diagnostics(text: str) -> List[Diagnostic]:
    """Assemble a document and report the first error, if any."""
    try:
        assemble_source(text)
    except AssemblerError as e:
        line = (e.line_number or 1) - 1
        lines = document_lines(text)
        end = len(lines[line]) if line < len(lines) else 0
        return [Diagnostic(
            range=Range(
                start=Position(line=line, character=0),
                end=Position(line=line, character=end)
            ),
            message=e.message,
            severity=DiagnosticSeverity.Error,
            source=DIAGNOSTIC_SOURCE,
            code=type(e).__name__,
        )]
    return []


def completion_items(line_prefix: str) -> List[CompletionItem]:
    """Completions for the text before the cursor on the current line."""
    code = line_prefix.split(';', 1)[0].lstrip()
    if code.endswith(':'):
        code = ""
    elif ':' in code:
        code = code.split(':', 1)[1].lstrip()

    if not code or ' ' not in code:
        items = [
            CompletionItem(
                label=spec.mnemonic,
                kind=CompletionItemKind.Keyword,
                detail=f"{spec.syntax}  ({spec.template})",
                documentation=spec.description,
            )
            for spec in INSTRUCTION_SET
        ]
        items.extend(
            CompletionItem(label=name, kind=CompletionItemKind.Keyword,
                           detail=syntax, documentation=description)
            for name, syntax, description in DATA_DIRECTIVES
        )
        return items

    return [
        CompletionItem(label=name, kind=CompletionItemKind.Variable,
                       detail="Register" if name != "VF" else "Register (flags)")
        for name in REGISTER_NAMES
    ]


def hover_markdown(word: str) -> Optional[str]:
    spec = lookup(word)
    if spec is not None:
        return f"**{spec.syntax}**\n\nOpcode `{spec.template}`\n\n{spec.description}"

    for name, syntax, description in DATA_DIRECTIVES:
        if word.upper() == name:
            return f"**{syntax}**\n\n{description}"

    if word.upper() in REGISTER_NAMES:
        if word.upper() == "VF":
            return "**VF**\n\nFlag register: carry, borrow, shifted-out bit and draw collision"
        return f"**{word.upper()}**\n\nGeneral purpose 8-bit register"
    return None


def word_at(line: str, character: int) -> str:
    start = character
    end = character
    while start > 0 and _WORD.match(line[start - 1]):
        start -= 1
    while end < len(line) and _WORD.match(line[end]):
        end += 1
    return line[start:end]


class Chip8LanguageServer(LanguageServer):
    """Language Server for CHIP-8 assembly."""

    def __init__(self):
        super().__init__("c8-language-server", "0.1.0",
                         text_document_sync_kind=TextDocumentSyncKind.Full)

        # Document cache
        self.documents: Dict[str, str] = {}

    def refresh_diagnostics(self, uri: str) -> None:
        self.publish_diagnostics(uri, collect_diagnostics(self.documents.get(uri, "")))


c8_server = Chip8LanguageServer()


@c8_server.feature(TEXT_DOCUMENT_COMPLETION, CompletionOptions(trigger_characters=[" ", ","]))
async def completion(params: CompletionParams) -> CompletionList:
    """Provide completion items."""
    text = c8_server.documents.get(params.text_document.uri)
    if text is None:
        return CompletionList(is_incomplete=False, items=[])

    lines = document_lines(text)
    position = params.position
    if position.line >= len(lines):
        return CompletionList(is_incomplete=False, items=[])

    prefix = lines[position.line][:position.character]
    return CompletionList(is_incomplete=False, items=completion_items(prefix))


@c8_server.feature(TEXT_DOCUMENT_HOVER)
async def hover(params: HoverParams) -> Optional[Hover]:
    """Provide hover information."""
    text = c8_server.documents.get(params.text_document.uri)
    if text is None:
        return None

    lines = document_lines(text)
    position = params.position
    if position.line >= len(lines):
        return None

    contents = hover_markdown(word_at(lines[position.line], position.character))
    if contents is None:
        return None
    return Hover(contents=MarkupContent(kind=MarkupKind.Markdown, value=contents))


@c8_server.feature(
    TEXT_DOCUMENT_DIAGNOSTIC,
    DiagnosticOptions(inter_file_dependencies=False, workspace_diagnostics=False),
)
async def diagnostics(params: DocumentDiagnosticParams) -> FullDocumentDiagnosticReport:
    """Provide diagnostics (errors, warnings)."""
    text = c8_server.documents.get(params.text_document.uri, "")
    return FullDocumentDiagnosticReport(kind="full", items=collect_diagnostics(text))


# Document synchronization
@c8_server.feature(TEXT_DOCUMENT_DID_OPEN)
async def did_open(params: DidOpenTextDocumentParams):
    """Handle document open event."""
    c8_server.documents[params.text_document.uri] = params.text_document.text
    c8_server.refresh_diagnostics(params.text_document.uri)


@c8_server.feature(TEXT_DOCUMENT_DID_CHANGE)
async def did_change(params: DidChangeTextDocumentParams):
    """Handle document change event."""
    document_uri = params.text_document.uri
    for change in params.content_changes:
        if getattr(change, 'range', None) is None:
            c8_server.documents[document_uri] = change.text
        else:
            logger.warning("Incremental change ignored for %s", document_uri)
    c8_server.refresh_diagnostics(document_uri)


@c8_server.feature(TEXT_DOCUMENT_DID_CLOSE)
async def did_close(params: DidCloseTextDocumentParams):
    """Handle document close event."""
    c8_server.documents.pop(params.text_document.uri, None)
    c8_server.publish_diagnostics(params.text_document.uri, [])
