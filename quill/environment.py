from typing import Any, Dict, Optional
from quill.errors import QuillRuntimeError, Position


class Environment:
    """Represents a runtime scope mapping identifiers to values.

    Environments form a parent chain that mirrors lexical nesting. A child
    holds a reference to its parent, never a copy, so every closure created
    under an environment shares it with the frame that is still running.
    """
    def __init__(self, parent: Optional['Environment'] = None,
                 values: Optional[Dict[str, Any]] = None,
                 receiver: Any = None):
        self.parent = parent
        # a method's receiver scope passes the instance's field dict here so
        # writes land on the instance itself
        self.values: Dict[str, Any] = values if values is not None else {}
        self.receiver = receiver

    def get(self, name: str, pos: Optional[Position] = None) -> Any:
        env = self.find(name)
        if env is None:
            raise QuillRuntimeError(f'undefined variable {name}', pos)
        return env.values[name]

    def find(self, name: str) -> Optional['Environment']:
        env: Optional[Environment] = self
        while env is not None:
            if name in env.values:
                return env
            env = env.parent
        return None

    def find_receiver(self) -> Any:
        """The struct instance of the innermost enclosing method call, if any."""
        env: Optional[Environment] = self
        while env is not None:
            if env.receiver is not None:
                return env.receiver
            env = env.parent
        return None

    def set(self, name: str, value: Any, pos: Optional[Position] = None) -> None:
        """Mutate the nearest existing binding of `name` in place."""
        env = self.find(name)
        if env is None:
            raise QuillRuntimeError(f'undefined variable {name}', pos)
        env.values[name] = value

    def declare(self, name: str, value: Any) -> None:
        self.values[name] = value

    def child(self) -> 'Environment':
        return Environment(parent=self)
