"""Line scanner for DataSpec Markdown documents.

The document is walked once to record headings (ignoring anything inside
fenced code blocks). Sub-parsers then operate on the line slice belonging to
one section:

- ``key_value``: ``- **Label:** value`` lines
- ``pipe_table_rows``: the first pipe-delimited table
- ``bullet_items``: the first run of bullet lines
- ``first_code_block``: the first fenced block
- ``prose``: free text up to the first rule or fence
"""

import re
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Tuple

HEADING_RE = re.compile(r"^(#{1,6})\s+(.*?)\s*#*\s*$")
FENCE_RE = re.compile(r"^\s*(```|~~~)")
BULLET_RE = re.compile(r"^\s*[-*+]\s+")
KEY_VALUE_RE = re.compile(r"^\s*[-*+]\s+\*\*(?P<label>.+?)\*\*\s*(?P<value>.*)$")
SEPARATOR_ROW_RE = re.compile(r"^\|?\s*:?-{3,}:?\s*(\|\s*:?-{3,}:?\s*)*\|?\s*$")
RULE_RE = re.compile(r"^\s*(-{3,}|\*{3,}|_{3,})\s*$")

_COLONS = ":："


def normalize_label(text: str) -> str:
    """Case-fold *text* and drop whitespace and trailing colons for label comparison."""
    return re.sub(r"\s+", "", text).strip(_COLONS).lower()


@dataclass(frozen=True)
class Section:
    level: int
    title: str
    line: int
    body_end: int
    end: int

    @property
    def body_start(self) -> int:
        return self.line + 1


class Document:
    """A scanned Markdown document: its lines plus the heading outline."""

    def __init__(self, text: str) -> None:
        self.text = text
        self.lines: List[str] = text.splitlines()
        self.fenced: List[bool] = [False] * len(self.lines)
        self.sections: Tuple[Section, ...] = self._scan()

    def _scan(self) -> Tuple[Section, ...]:
        headings: List[Tuple[int, int, str]] = []
        in_fence = False
        for idx, line in enumerate(self.lines):
            if FENCE_RE.match(line):
                self.fenced[idx] = True
                in_fence = not in_fence
                continue
            if in_fence:
                self.fenced[idx] = True
                continue
            match = HEADING_RE.match(line)
            if match:
                headings.append((idx, len(match.group(1)), match.group(2).strip()))

        total = len(self.lines)
        sections: List[Section] = []
        for pos, (line_no, level, title) in enumerate(headings):
            body_end = headings[pos + 1][0] if pos + 1 < len(headings) else total
            end = total
            for later_line, later_level, _ in headings[pos + 1:]:
                if later_level <= level:
                    end = later_line
                    break
            sections.append(Section(level=level, title=title, line=line_no, body_end=body_end, end=end))
        return tuple(sections)

    def headings(self, level: Optional[int] = None) -> List[Section]:
        return [s for s in self.sections if level is None or s.level == level]

    def find_section(self, aliases: Iterable[str]) -> Optional[Section]:
        """First section whose heading starts with any alias (label comparison rules)."""
        wanted = [normalize_label(alias) for alias in aliases]
        for section in self.sections:
            title = normalize_label(section.title)
            if any(title.startswith(alias) for alias in wanted):
                return section
        return None

    def body(self, section: Section, include_subsections: bool = False) -> List[str]:
        stop = section.end if include_subsections else section.body_end
        return self.lines[section.body_start:stop]

    def unfenced_lines(self) -> List[str]:
        return [line for idx, line in enumerate(self.lines) if not self.fenced[idx]]

    def key_value(self, labels: Iterable[str], section: Optional[Section] = None) -> Optional[str]:
        """Raw value of the first ``- **Label:** value`` line matching any label."""
        if section is None:
            lines = self.unfenced_lines()
        else:
            lines = self.body(section, include_subsections=True)
        return key_value(lines, labels)


def key_value(lines: Sequence[str], labels: Iterable[str]) -> Optional[str]:
    wanted = {normalize_label(label) for label in labels}
    for line in lines:
        match = KEY_VALUE_RE.match(line)
        if not match:
            continue
        if normalize_label(match.group("label")) in wanted:
            return match.group("value").strip().lstrip(_COLONS).strip()
    return None


def is_key_value(line: str) -> bool:
    return bool(KEY_VALUE_RE.match(line))


def split_cells(line: str) -> List[str]:
    text = line.strip()
    if text.startswith("|"):
        text = text[1:]
    if text.endswith("|"):
        text = text[:-1]
    return [cell.strip() for cell in text.split("|")]


def pipe_table_rows(lines: Sequence[str]) -> List[List[str]]:
    """Data rows of the first pipe table in *lines*; header and separator rows are skipped."""
    rows: List[List[str]] = []
    started = False
    header_seen = False
    for line in lines:
        stripped = line.strip()
        if not stripped.startswith("|"):
            if started:
                break
            continue
        started = True
        if SEPARATOR_ROW_RE.match(stripped):
            continue
        if not header_seen:
            header_seen = True
            continue
        rows.append(split_cells(stripped))
    return rows


def bullet_items(lines: Sequence[str]) -> List[str]:
    """Text of the first contiguous run of bullet lines, markers removed."""
    items: List[str] = []
    for line in lines:
        if BULLET_RE.match(line):
            items.append(BULLET_RE.sub("", line, count=1).strip())
        elif items:
            break
    return items


def first_code_block(lines: Sequence[str]) -> Optional[str]:
    collecting = False
    buffer: List[str] = []
    for line in lines:
        if FENCE_RE.match(line):
            if collecting:
                return "\n".join(buffer).strip()
            collecting = True
            continue
        if collecting:
            buffer.append(line)
    if collecting:
        # Unterminated fence: take what is there.
        return "\n".join(buffer).strip()
    return None


def prose(lines: Sequence[str]) -> str:
    """Free text of a section body up to the first horizontal rule or fence."""
    buffer: List[str] = []
    for line in lines:
        if RULE_RE.match(line) or FENCE_RE.match(line):
            break
        buffer.append(line)
    return "\n".join(buffer).strip()
