import builtins
from typing import Optional, TextIO


class BasicIO:
    """Console access for the io module.

    With no streams configured the process console is used through the
    `print` and `input` builtins, which is what tests patch.
    """
    def __init__(self, stdin: Optional[TextIO] = None, stdout: Optional[TextIO] = None):
        self.stdin = stdin
        self.stdout = stdout

    def write(self, text: str) -> None:
        if self.stdout is None:
            print(text, end='', flush=True)
        else:
            self.stdout.write(text)

    def read_line(self, prompt: str) -> str:
        if self.stdin is None:
            try:
                return builtins.input(prompt)
            except EOFError:
                return ''
        self.write(prompt)
        line = self.stdin.readline()
        if line.endswith('\n'):
            line = line[:-1]
        if line.endswith('\r'):
            line = line[:-1]
        return line
