#!/usr/bin/env python3
"""Interactive terminal dashboard for the BariPronto clinical service."""

import sys

import httpx
from rich.console import Console
from rich.panel import Panel
from rich.prompt import Prompt
from rich.table import Table


def error_detail(response: httpx.Response) -> str:
    """Extract the error message from an API response.

    Falls back to the raw body when it is not JSON (e.g. a proxy error page).
    """
    try:
        body = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
    if isinstance(body, dict) and "detail" in body:
        return str(body["detail"])
    return response.text


class DashboardCLI:
    """Terminal front end: totals, the patient list and the new patient form."""

    def __init__(self, base_url: str = "http://localhost:8000"):
        """Initialize dashboard CLI."""
        self.base_url = base_url
        self.console = Console()
        self.client = httpx.Client(timeout=30.0)

    def start(self) -> None:
        """Start the interactive dashboard session."""
        self.console.print(
            Panel.fit(
                "[bold blue]🏥 BariPronto - Clinical Dashboard[/bold blue]\n"
                "Commands: /refresh, /new, /help, /quit",
                border_style="blue",
            )
        )

        if not self._test_connection():
            self.console.print(f"[red]❌ Cannot connect to the service at {self.base_url}.[/red]")
            return

        self._show_dashboard(self._get("/dashboard"))

        try:
            while True:
                command = Prompt.ask("\n[bold cyan]>[/bold cyan]").strip().lower()

                if command in ["/quit", "/exit", "quit", "exit"]:
                    break
                elif command == "/help":
                    self._show_help()
                elif command == "/refresh":
                    self._show_dashboard(self._post("/dashboard/refresh"))
                elif command == "/new":
                    self._new_patient()
                elif command == "":
                    continue
                else:
                    self.console.print(f"[yellow]Unknown command: {command}. Type /help.[/yellow]")

        except KeyboardInterrupt:
            pass
        finally:
            self.console.print("\n[yellow]👋 Goodbye![/yellow]")
            self.client.close()

    def _test_connection(self) -> bool:
        """Test connection to the service."""
        try:
            response = self.client.get(f"{self.base_url}/health")
            return response.status_code == 200
        except httpx.HTTPError:
            return False

    def _get(self, path: str) -> dict | None:
        return self._request("GET", path)

    def _post(self, path: str, payload: dict | None = None) -> dict | None:
        return self._request("POST", path, payload)

    def _request(self, method: str, path: str, payload: dict | None = None) -> dict | None:
        """Send a request and return the JSON body, printing any error."""
        try:
            response = self.client.request(method, f"{self.base_url}{path}", json=payload)
        except httpx.HTTPError as e:
            self.console.print(f"[red]❌ Connection error: {e}[/red]")
            return None

        if response.status_code >= 400:
            self.console.print(Panel(error_detail(response), title="[red]Error[/red]", border_style="red"))
            return None
        try:
            return response.json() or {}
        except ValueError:
            self.console.print(f"[red]❌ Unexpected response from {path}: {response.text[:200]}[/red]")
            return None

    def _new_patient(self) -> None:
        """Fill in and submit the new patient form."""
        self._post("/patients/form/open")
        self.console.print(Panel.fit("[bold]New patient[/bold]\n[dim]Name and date of birth only[/dim]"))

        name = Prompt.ask("Name")
        birth_date = Prompt.ask("Date of birth (YYYY-MM-DD, blank to skip)", default="")

        created = self._post("/patients", {"name": name, "birth_date": birth_date or None})
        if created is None:
            # Form keeps the typed values on the server; close it so the list shows again
            self._post("/patients/form/close")
            return

        self.console.print(f"[green]✅ Saved {created.get('name', name.strip())}[/green]")
        self._show_dashboard(self._get("/dashboard"))

    def _show_dashboard(self, dashboard: dict | None) -> None:
        """Render totals and the patient table."""
        if dashboard is None:
            return

        if dashboard.get("error"):
            self.console.print(Panel(dashboard["error"], title="[red]Error[/red]", border_style="red"))

        self.console.print(
            Panel.fit(
                f"[bold]Total patients:[/bold] {dashboard['total_patients']}    "
                f"[bold]Total visits:[/bold] {dashboard['total_visits']}",
                border_style="green",
            )
        )

        patients = dashboard.get("patients", [])
        if not patients:
            self.console.print("[dim]No patients registered yet. Use /new to register the first one.[/dim]")
            return

        table = Table(title="Patients", show_lines=False)
        table.add_column("Name", style="bold")
        table.add_column("Date of birth")
        table.add_column("Age")

        for patient in patients:
            table.add_row(patient["name"], patient.get("birth_date") or "-", patient["age_display"])

        self.console.print(table)

    def _show_help(self) -> None:
        """Show help information."""
        help_text = """
[bold]Available Commands:[/bold]
• /refresh - Reload patients and totals
• /new - Register a new patient
• /help - Show this help message
• /quit or /exit - Exit the dashboard

[bold]Tips:[/bold]
• Only the 50 most recently registered patients are listed
• Date of birth is optional; use YYYY-MM-DD
        """

        self.console.print(Panel(help_text.strip(), title="[cyan]❓ Help[/cyan]", border_style="cyan"))


def main():
    """Main entry point for the dashboard CLI."""
    base_url = sys.argv[1] if len(sys.argv) > 1 else "http://localhost:8000"

    cli = DashboardCLI(base_url)
    cli.start()


if __name__ == "__main__":
    main()
