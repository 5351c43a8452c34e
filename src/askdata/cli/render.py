"""CLI renderer for askdata."""

from prompt_toolkit import PromptSession
from prompt_toolkit.patch_stdout import patch_stdout
from rich.console import Console
from rich.markup import escape

from askdata.suggestions import SuggestionsParser


class Renderer:
    """CLI renderer using Rich for terminal output."""

    def __init__(self, console: Console | None = None) -> None:
        self.console: Console = console or Console()
        self._prompt_session: PromptSession[str] | None = None
        self._parser: SuggestionsParser | None = None

    def welcome(self, model: str, demo: bool) -> None:
        self.console.print("[bold blue]askdata[/bold blue] - ask your data anything.")
        self.console.print(f"[bold]Model:[/bold] [magenta]{model}[/magenta]")
        if demo:
            self.console.print("[dim]Demo backend: answers come from canned tables.[/dim]")
        self.console.print("[dim]Type 'new' for a fresh conversation, 'quit' to leave.[/dim]")

    def info(self, message: str) -> None:
        self.console.print(message)

    def error(self, message: str) -> None:
        self.console.print(f"[bold red]Error:[/bold red] {message}")

    def begin_answer(self) -> SuggestionsParser:
        self._parser = SuggestionsParser()
        self.console.print("[bold yellow]askdata:[/bold yellow] ", end="")
        return self._parser

    def fragment(self, text: str) -> None:
        """Print streamed prose, keeping the suggestions block off screen."""
        parser = self._parser or self.begin_answer()
        visible = parser.feed(text)
        if visible:
            self.console.print(visible, end="", markup=False, highlight=False, soft_wrap=True)

    def end_answer(self) -> list[str]:
        """Finish the answer and show follow-up suggestions, if any."""
        parser, self._parser = self._parser, None
        if parser is None:
            return []
        rest = parser.flush()
        if rest:
            self.console.print(rest, end="", markup=False, highlight=False, soft_wrap=True)
        self.console.print()
        parsed = parser.finish()
        if parsed.suggestions:
            self.console.print("[bold]You could ask next:[/bold]")
            for idx, suggestion in enumerate(parsed.suggestions, start=1):
                self.console.print(f"  [cyan]{idx}.[/cyan] {escape(suggestion)}", highlight=False)
        return parsed.suggestions

    def get_user_input(self) -> str:
        if self._prompt_session is None:
            self._prompt_session = PromptSession()
        with patch_stdout(raw=True):
            return self._prompt_session.prompt("> ")
