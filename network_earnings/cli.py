"""Administrative command-line interface."""
from typing import Annotated, Optional
from uuid import UUID, uuid4
import logging

import typer
from rich.console import Console
from rich.table import Table
from sqlmodel import Session

from network_earnings.core.config import settings
from network_earnings.core.db import create_all_tables, engine
from network_earnings.core.init_data import seed_demo_data
from network_earnings.core.rls import apply_policies, check_schema, policy_statements
from network_earnings.models.user import SignUpRequest, UserRole, UserTier
from network_earnings.services.auth_service import AuthService, SignupError, SignupStage
from network_earnings.services.identity_provider import (
    IdentityProviderError, build_identity_provider
)

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = typer.Typer(
    name="network-earnings",
    help="Network Earnings administration",
    no_args_is_help=True,
)

console = Console()


@app.command("init-db")
def init_db() -> None:
    """Create the database tables."""
    console.print("[bold blue]Creating tables...[/bold blue]")
    create_all_tables()
    console.print("[bold green]✓[/bold green] Tables created")


@app.command("seed")
def seed() -> None:
    """Load demo users, campaigns, leads, earnings, payouts and disputes."""
    create_all_tables()
    with Session(engine) as session:
        loaded = seed_demo_data(session, build_identity_provider(session))
    if loaded:
        console.print("[bold green]✓[/bold green] Demo data loaded")
    else:
        console.print("[yellow]Database already has campaigns, nothing loaded[/yellow]")


@app.command("create-user")
def create_user(
    email: Annotated[str, typer.Option("--email", "-e", help="Email address")],
    password: Annotated[str, typer.Option("--password", "-p", help="Password", prompt=True, hide_input=True)],
    first_name: Annotated[str, typer.Option("--first-name", help="First name")] = "",
    last_name: Annotated[str, typer.Option("--last-name", help="Last name")] = "",
    role: Annotated[UserRole, typer.Option("--role", "-r", help="Role")] = UserRole.REFERRER,
    tier: Annotated[UserTier, typer.Option("--tier", help="Tier")] = UserTier.STANDARD,
) -> None:
    """Create a user with any role, admins included."""
    with Session(engine) as session:
        provider = build_identity_provider(session)
        try:
            identity, _ = provider.create_identity(email, password, {
                "first_name": first_name,
                "last_name": last_name,
                "role": role.value,
                "tier": tier.value,
                "phone_verified": False,
            })
        except IdentityProviderError as e:
            console.print(f"[bold red]✗[/bold red] {e.message}")
            raise typer.Exit(1)
    console.print(f"[bold green]✓[/bold green] Created {role.value} {identity.email} ({identity.id})")


@app.command("delete-user")
def delete_user(
    user_id: Annotated[UUID, typer.Argument(help="Identity id")],
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Do not ask for confirmation")] = False,
) -> None:
    """Delete an identity from the identity provider."""
    if not yes:
        typer.confirm(f"Delete user {user_id}?", abort=True)
    with Session(engine) as session:
        try:
            build_identity_provider(session).delete_identity(user_id)
        except IdentityProviderError as e:
            console.print(f"[bold red]✗[/bold red] {e.message}")
            raise typer.Exit(1)
    console.print(f"[bold green]✓[/bold green] Deleted {user_id}")


@app.command("list-users")
def list_users() -> None:
    """List identities with their profile role and tier."""
    with Session(engine) as session:
        identities = build_identity_provider(session).list_identities()

    table = Table(title=f"Users ({len(identities)})")
    table.add_column("ID", style="dim")
    table.add_column("Email")
    table.add_column("Name")
    table.add_column("Role")
    table.add_column("Tier")
    for identity in identities:
        metadata = identity.user_metadata
        name = f"{metadata.get('first_name') or ''} {metadata.get('last_name') or ''}".strip()
        table.add_row(
            str(identity.id), identity.email, name,
            metadata.get("role") or "-", metadata.get("tier") or "-",
        )
    console.print(table)


@app.command("apply-rls")
def apply_rls(
    dry_run: Annotated[bool, typer.Option("--dry-run", help="Print the statements without running them")] = False,
) -> None:
    """Install the row-level security policies (Postgres only)."""
    statements = policy_statements(include_optional=settings.CREATE_OPTIONAL_TABLES)
    if dry_run:
        for statement in statements:
            console.print(f"{statement};")
        return

    console.print(f"Applying {len(statements)} statements...")
    result = apply_policies(engine, statements)
    if result.skipped:
        console.print("[yellow]Database is not Postgres, nothing applied[/yellow]")
        return
    console.print(f"[bold green]✓[/bold green] {result.applied} applied")
    if result.failed:
        console.print(f"[bold red]✗[/bold red] {len(result.failed)} failed")
        raise typer.Exit(1)


@app.command("check-schema")
def check_schema_command() -> None:
    """Compare the database schema with the application models."""
    report = check_schema(engine)
    for table in report.missing_tables:
        console.print(f"[yellow]Missing table:[/yellow] {table}")
    for table, columns in report.missing_columns.items():
        console.print(f"[red]Missing columns in {table}:[/red] {', '.join(columns)}")
    for table, columns in report.extra_columns.items():
        console.print(f"[dim]Unmapped columns in {table}: {', '.join(columns)}[/dim]")
    if not report.aligned:
        raise typer.Exit(1)
    console.print("[bold green]✓[/bold green] Schema is aligned")


@app.command("check-auth")
def check_auth(
    keep: Annotated[bool, typer.Option("--keep", help="Keep the test user afterwards")] = False,
) -> None:
    """Run a signup end to end and report which path the provider accepted."""
    console.print(f"Identity provider: [bold]{settings.AUTH_PROVIDER}[/bold]")
    if settings.AUTH_PROVIDER == "supabase":
        console.print(f"SUPABASE_URL set: {bool(settings.SUPABASE_URL)}")
        console.print(f"SUPABASE_ANON_KEY set: {bool(settings.SUPABASE_ANON_KEY)}")
        console.print(f"SUPABASE_SERVICE_KEY set: {bool(settings.SUPABASE_SERVICE_KEY)}")

    request = SignUpRequest(
        email=f"signup-check-{uuid4().hex[:8]}@example.com",
        password=uuid4().hex,
        first_name="Signup",
        last_name="Check",
        role=UserRole.REFERRER,
    )
    identity_id: Optional[UUID] = None
    with Session(engine) as session:
        provider = build_identity_provider(session)
        try:
            attempt = AuthService(session, provider).sign_up(request)
        except SignupError as e:
            console.print(
                f"[bold red]✗[/bold red] Signup stopped at {e.attempt.stage.value}: {e.attempt.error}")
            if e.attempt.stage == SignupStage.PROFILE_PENDING and e.attempt.identity:
                identity_id = e.attempt.identity.id
            attempt = None

        if attempt is not None:
            identity_id = attempt.identity.id
            path = "fallback (identity, then profile)" if attempt.used_fallback else "combined"
            console.print(f"[bold green]✓[/bold green] Signup completed using the {path} path")
            metadata = attempt.identity.user_metadata
            if metadata.get("first_name") != "Signup" or metadata.get("role") != "referrer":
                console.print("[bold red]✗[/bold red] Profile metadata does not match the request")

        if identity_id and not keep:
            provider.delete_identity(identity_id)
            console.print(f"Removed test user {identity_id}")

    if attempt is None:
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
