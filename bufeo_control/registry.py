"""
CommandRegistry - Explicit registration of dashboard commands

Bounded Context: Command registration and validation
Responsibilities:
  - Register commands with handlers
  - Validate command existence before execution
  - Provide introspection (available_commands, get_help)

Handlers always receive the full command payload (a dict, possibly empty).

Threading: Registration is locked; execution reads an immutable snapshot.
"""

from typing import Any, Callable, Dict, Optional, Set
import threading

CommandHandler = Callable[[Dict[str, Any]], Any]


class CommandNotAvailableError(Exception):
    """Raised when attempting to execute an unregistered command"""
    pass


class CommandRegistry:
    """
    Registry for control commands with explicit registration.

    Example:
        registry = CommandRegistry()
        registry.register('set_user', service.handle_set_user, "Select a user")

        try:
            registry.execute('set_user', {'user_id': 'all'})
        except CommandNotAvailableError as e:
            print(f"Command not available: {e}")
    """

    def __init__(self):
        self._commands: Dict[str, CommandHandler] = {}
        self._descriptions: Dict[str, str] = {}
        self._lock = threading.Lock()

    def register(self, command: str, handler: CommandHandler, description: str) -> None:
        """
        Register a command with its handler function.

        Raises:
            ValueError: If command already registered or name is malformed
        """
        name = command.strip().lower()
        if not name or ' ' in name:
            raise ValueError(f"Invalid command name: {command!r}")

        with self._lock:
            if name in self._commands:
                raise ValueError(f"Command '{name}' already registered")
            self._commands = {**self._commands, name: handler}
            self._descriptions = {**self._descriptions, name: description}

    def execute(self, command: str, command_data: Optional[Dict[str, Any]] = None) -> Any:
        """
        Execute a registered command.

        Raises:
            CommandNotAvailableError: If command not registered
        """
        name = command.strip().lower()
        handler = self._commands.get(name)
        if handler is None:
            raise CommandNotAvailableError(
                f"Command '{name}' not available. "
                f"Available commands: {', '.join(sorted(self.available_commands))}"
            )
        return handler(command_data or {})

    def is_available(self, command: str) -> bool:
        return command.strip().lower() in self._commands

    @property
    def available_commands(self) -> Set[str]:
        return set(self._commands.keys())

    def get_help(self) -> Dict[str, str]:
        return dict(self._descriptions)

    def count(self) -> int:
        return len(self._commands)
