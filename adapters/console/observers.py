"""
Terminal presentation of chat messages, chat history and alert outcomes.

These are the development stand-ins for the UI shell: the listener reports to
`ConsoleMessageObserver`, and the panic button reaches the patient's doctor
through `ConsoleResponder`.
"""

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from core.domain.models import AlertKind, AlertOutcome, ChatMessage

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S UTC"


class ConsoleMessageObserver:
    """Prints each message a listener surfaces under a new-messages banner."""

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()

    def on_message(self, owner_id: str, message: ChatMessage) -> None:
        self.console.print(Text("=== NEW MESSAGES ===", style="bold yellow"))
        self.console.print(
            Text(
                f"From {message.sender_id}: {message.content} "
                f"({message.timestamp.strftime(TIMESTAMP_FORMAT)})"
            )
        )

    def on_error(self, owner_id: str, error: Exception) -> None:
        self.console.print(Text(f"Error checking messages for {owner_id}: {error}", style="red"))


def print_chat_history(
    console: Console, user_id: str, other_user_id: str, history: list[ChatMessage]
) -> None:
    """Render a conversation from `user_id`'s point of view."""
    table = Table(title=f"Chat with {other_user_id}")
    table.add_column("Who", style="cyan")
    table.add_column("Message")
    table.add_column("Sent", style="dim")

    for message in history:
        who = "You" if message.sender_id == user_id else "Them"
        table.add_row(who, message.content, message.timestamp.strftime(TIMESTAMP_FORMAT))

    if not history:
        console.print(Text("No messages yet", style="dim"))
        return
    console.print(table)


def print_alert_outcome(console: Console, outcome: AlertOutcome) -> None:
    if not outcome.triggered:
        console.print(Text("Vitals are within threshold, no alert sent", style="green"))
        return

    title = "PANIC ALERT" if outcome.kind is AlertKind.PANIC else "VITALS ALERT"
    lines = [outcome.message or "", f"Recipients: {', '.join(outcome.recipients)}"]
    if outcome.out_of_range:
        lines.append(f"Out of range: {', '.join(v.value for v in outcome.out_of_range)}")
    if outcome.responder_notified:
        lines.append("Responder notified")
    console.print(Panel(Text("\n".join(lines)), title=title, style="red"))


class ConsoleResponder:
    """The direct path to a patient's doctor during a panic alert."""

    def __init__(self, doctor_name: str, console: Console | None = None) -> None:
        self.doctor_name = doctor_name
        self.console = console or Console()
        self.received: list[str] = []

    def __call__(self, message: str) -> None:
        self.received.append(message)
        self.console.print(
            Text(f"Dr. {self.doctor_name} received alert: {message}", style="bold red")
        )
