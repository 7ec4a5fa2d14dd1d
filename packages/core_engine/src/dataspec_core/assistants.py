"""Slash-command files for AI coding assistants.

Each supported assistant reads custom commands from its own directory.
A configurator knows that location and the file format, and renders one
Markdown file per built-in command from the command's declared metadata.
"""

import logging
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence

import yaml

from dataspec_core.commands import BUILTIN_COMMANDS, COMMAND_PREFIX, CommandDefinition, format_parameter_help
from dataspec_core.errors import ConfigError

logger = logging.getLogger(__name__)


class SlashCommandConfigurator:
    tool_id = ""
    tool_name = ""
    directory = ""
    suffix = ".md"

    def command_path(self, command_id: str) -> str:
        return f"{self.directory}/dataspec-{command_id}{self.suffix}"

    def frontmatter(self, command: CommandDefinition) -> Optional[str]:
        return None

    def render(self, command: CommandDefinition) -> str:
        lines = [
            f"# {command.name}",
            "",
            command.description,
            "",
            f"Usage: `{COMMAND_PREFIX}{command.id}`",
        ]
        if command.aliases:
            lines.append("Aliases: " + ", ".join(f"`{COMMAND_PREFIX}{alias}`" for alias in command.aliases))
        if command.parameters:
            lines.extend(["", "```text", format_parameter_help(command.parameters), "```"])
        if command.examples:
            lines.extend(["", "Examples:", "", "```"])
            lines.extend(command.examples)
            lines.append("```")
        body = "\n".join(lines) + "\n"

        header = self.frontmatter(command)
        if header is None:
            return body
        return f"---\n{header}---\n\n{body}"

    def write(self, root: Path, commands: Sequence[CommandDefinition]) -> List[Path]:
        written = []
        for command in commands:
            target = root / self.command_path(command.id)
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(self.render(command), encoding="utf-8")
            logger.debug("Wrote %s command file %s", self.tool_name, target)
            written.append(target)
        return written


class ClaudeConfigurator(SlashCommandConfigurator):
    tool_id = "claude"
    tool_name = "Claude"
    directory = ".claude/commands"

    def frontmatter(self, command: CommandDefinition) -> Optional[str]:
        return yaml.safe_dump({"description": command.description}, allow_unicode=True, sort_keys=False)


class CursorConfigurator(SlashCommandConfigurator):
    tool_id = "cursor"
    tool_name = "Cursor"
    directory = ".cursorrules"
    suffix = ".mdc"


class WindsurfConfigurator(SlashCommandConfigurator):
    tool_id = "windsurf"
    tool_name = "Windsurf"
    directory = ".windsurf/commands"


CONFIGURATORS: Dict[str, SlashCommandConfigurator] = {
    configurator.tool_id: configurator
    for configurator in (ClaudeConfigurator(), CursorConfigurator(), WindsurfConfigurator())
}

SUPPORTED_TOOLS = tuple(sorted(CONFIGURATORS))


def get_configurator(tool: str) -> SlashCommandConfigurator:
    try:
        return CONFIGURATORS[tool]
    except KeyError:
        raise ConfigError(
            f"Unsupported AI tool '{tool}'. Use one of: {', '.join(SUPPORTED_TOOLS)}."
        ) from None


def write_assistant_commands(
    root: str,
    tools: Iterable[str],
    commands: Sequence[CommandDefinition] = BUILTIN_COMMANDS,
) -> List[Path]:
    """Write one command file per tool and command under *root*, overwriting earlier copies."""
    configurators = [get_configurator(tool) for tool in tools]
    written: List[Path] = []
    for configurator in configurators:
        written.extend(configurator.write(Path(root), commands))
    return written
