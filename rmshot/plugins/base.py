"""Base protocol for tool plugins."""

from typing import Protocol, List, Dict, Any, Callable, Optional, NamedTuple, runtime_checkable

from .types import ToolSchema


class CommandCompletion(NamedTuple):
    """A completion option for command arguments.

    Attributes:
        value: The completion value to insert.
        description: Brief description shown in completion menu.
    """
    value: str
    description: str = ""


class CommandParameter(NamedTuple):
    """Definition of a command parameter for argument parsing.

    Attributes:
        name: Parameter name (used as key in parsed args dict).
        description: Brief description for help text.
        required: Whether the parameter is required (default: False).
        capture_rest: If True, this parameter captures all remaining args as a
            single string. Only valid for last param.
    """
    name: str
    description: str = ""
    required: bool = False
    capture_rest: bool = False


class UserCommand(NamedTuple):
    """Declaration of a user-facing command.

    User commands are invoked directly by the user (ribbon button, editor
    command palette, CLI) without going through the model's function calling.

    Attributes:
        name: Command name for invocation and autocompletion.
        description: Brief description shown in autocompletion/help.
        share_with_model: If True, command output is added to conversation
            history so the model can see/use it.
        parameters: Argument schema used to parse the raw command line.
    """
    name: str
    description: str
    share_with_model: bool = False
    parameters: Optional[List[CommandParameter]] = None


def parse_command_args(command: UserCommand, raw_args: str) -> Dict[str, Any]:
    """Parse a raw argument string according to a command's parameters.

    Args:
        command: The UserCommand with optional parameters definition.
        raw_args: Raw argument string from user input.

    Returns:
        Dictionary of named arguments. If command has no parameters defined,
        returns {"args": [list of split args]}.
    """
    raw_args = raw_args.strip()
    result: Dict[str, Any] = {}

    if not command.parameters:
        return {"args": raw_args.split() if raw_args else []}

    if not raw_args:
        return result

    arg_parts = raw_args.split()
    arg_index = 0

    for param in command.parameters:
        if arg_index >= len(arg_parts):
            break

        if param.capture_rest:
            # Capture all remaining args as single string
            result[param.name] = ' '.join(arg_parts[arg_index:])
            break
        result[param.name] = arg_parts[arg_index]
        arg_index += 1

    return result


@runtime_checkable
class ToolPlugin(Protocol):
    """Interface that all tool plugins must implement.

    Plugins provide two types of capabilities:
    1. Model tools: Functions an AI model can invoke via function calling
    2. User commands: Commands the user can invoke directly

    Model tools are declared via get_tool_schemas() and executed via
    get_executors(). User commands are declared via get_user_commands()
    and dispatched through execute_user_command().
    """

    @property
    def name(self) -> str:
        """Unique identifier for this plugin."""
        ...

    def get_tool_schemas(self) -> List[ToolSchema]:
        """Return the tool declarations for this plugin."""
        ...

    def get_executors(self) -> Dict[str, Callable[[Dict[str, Any]], Any]]:
        """Return a mapping of tool names to their executor callables.

        Each executor should accept a dict of arguments and return a
        JSON-serializable result.
        """
        ...

    def initialize(self, config: Optional[Dict[str, Any]] = None) -> None:
        """Called once when the plugin is enabled.

        Args:
            config: Optional configuration dict for plugin-specific settings.
        """
        ...

    def shutdown(self) -> None:
        """Called when the plugin is disabled. Clean up resources here."""
        ...

    def get_system_instructions(self) -> Optional[str]:
        """Return instructions describing this plugin's tools, or None."""
        ...

    def get_auto_approved_tools(self) -> List[str]:
        """Return tool names that run without permission prompts."""
        ...

    def get_user_commands(self) -> List[UserCommand]:
        """Return user-facing commands this plugin provides."""
        ...

    def execute_user_command(self, command: str, args: Dict[str, Any]) -> str:
        """Run a user command and return the text to show the user."""
        ...
