"""
Crumbled CLI.

Command-line interface for database setup and back-office chores.
"""

import typer
from rich.console import Console
from rich.table import Table
from sqlalchemy.exc import SQLAlchemyError

from shared.config.constants import FlavorSize, OrderMode
from shared.config.logging import setup_logging

app = typer.Typer(
    name="shop-cli",
    help="Crumbled Cookies shop CLI",
    add_completion=False,
)
console = Console()


# =============================================================================
# Database Commands
# =============================================================================

@app.command()
def db_init():
    """Create all database tables."""
    from shared.infrastructure.db import engine
    from shop_api.models import Base

    try:
        Base.metadata.create_all(bind=engine)
    except SQLAlchemyError as e:
        console.print(f"[red]✗ Table creation failed: {e}[/red]")
        raise typer.Exit(1)
    console.print("[green]✓ Tables created/verified[/green]")


@app.command()
def db_seed(
    force: bool = typer.Option(False, "--force", "-f", help="Allow seeding in production"),
):
    """Seed the catalog, zones, kitchens and promo codes."""
    from shared.config.settings import settings
    from shared.infrastructure.db import get_db_context
    from shop_api.seed import seed

    if settings.environment == "production" and not force:
        console.print("[red]Cannot seed production without --force[/red]")
        raise typer.Exit(1)

    setup_logging()
    try:
        with get_db_context() as db:
            seed(db)
    except SQLAlchemyError as e:
        console.print(f"[red]✗ Seeding failed: {e}[/red]")
        raise typer.Exit(1)
    console.print("[green]✓ Seed complete[/green]")


# =============================================================================
# Shop Commands
# =============================================================================

@app.command()
def order_mode(
    mode: str = typer.Argument(None, help="stock_based or preorder; omit to show the current mode"),
):
    """Show or switch the global order mode."""
    from shared.infrastructure.db import get_db_context
    from shop_api.services.domain import SiteSettings

    with get_db_context() as db:
        accessor = SiteSettings(db)
        if mode is None:
            console.print(f"Order mode: [cyan]{accessor.get_order_mode().value}[/cyan]")
            return
        try:
            new_mode = OrderMode(mode)
        except ValueError:
            console.print(f"[red]Unknown order mode '{mode}'[/red]")
            raise typer.Exit(1)
        accessor.set_order_mode(new_mode)
    console.print(f"[green]✓ Order mode set to {new_mode.value}[/green]")


@app.command()
def stock_report():
    """Show stock counters for every active flavor."""
    from sqlalchemy import select

    from shared.infrastructure.db import get_db_context
    from shop_api.models import Flavor
    from shop_api.services.domain import SiteSettings
    from shop_api.services.domain.stock_policy import availability_status

    with get_db_context() as db:
        mode = SiteSettings(db).get_order_mode()
        flavors = db.scalars(
            select(Flavor).where(Flavor.is_active.is_(True)).order_by(Flavor.name)
        ).all()

        table = Table(title=f"Stock ({mode.value})")
        table.add_column("ID", style="dim")
        table.add_column("Flavor", style="cyan")
        for size in FlavorSize:
            table.add_column(size.value.capitalize(), justify="right")

        for flavor in flavors:
            cells = []
            for size in FlavorSize:
                count = flavor.stock_for(size)
                badge = availability_status(count, mode)
                style = {"out_of_stock": "red", "low_stock": "yellow"}.get(badge, "green")
                cells.append(f"[{style}]{count}[/{style}]")
            table.add_row(str(flavor.id), flavor.name, *cells)

    console.print(table)


@app.command()
def reconcile_stock():
    """Compare stock counters with the stock ledger."""
    from shared.infrastructure.db import get_db_context
    from shop_api.services.domain import StockService

    with get_db_context() as db:
        mismatches = StockService(db).reconcile()

    if not mismatches:
        console.print("[green]✓ Ledger matches every counter[/green]")
        return

    table = Table(title="Ledger mismatches")
    table.add_column("Flavor", style="cyan")
    table.add_column("Size")
    table.add_column("Counter", justify="right")
    table.add_column("Ledger", justify="right")
    for row in mismatches:
        table.add_row(row["flavor_name"], row["size"], str(row["counter"]), str(row["ledger"]))
    console.print(table)
    raise typer.Exit(1)


@app.command()
def expire_carts():
    """Mark carts past their expiry as abandoned."""
    from shared.infrastructure.db import get_db_context
    from shop_api.services.domain import CartService

    with get_db_context() as db:
        expired = CartService(db).expire_stale()
    console.print(f"[green]✓ {expired} cart(s) expired[/green]")


@app.command()
def breakers():
    """Show circuit breaker state for the payment and SMS gateways."""
    from shop_api.services.payments import get_all_breaker_stats

    table = Table(title="Circuit breakers")
    table.add_column("Name", style="cyan")
    table.add_column("State")
    table.add_column("Calls", justify="right")
    table.add_column("Failures", justify="right")
    table.add_column("Rejected", justify="right")
    for name, stats in get_all_breaker_stats().items():
        table.add_row(
            name,
            str(stats["state"]),
            str(stats["total_calls"]),
            str(stats["failed_calls"]),
            str(stats["rejected_calls"]),
        )
    console.print(table)


# =============================================================================
# Development Commands
# =============================================================================

@app.command()
def dev_server(
    port: int = typer.Option(None, help="Port (defaults to REST_API_PORT)"),
    reload: bool = typer.Option(True, help="Enable auto-reload"),
):
    """Start the API development server."""
    import uvicorn

    from shared.config.settings import settings

    port = port or settings.api_port
    console.print(f"[blue]Starting shop API on port {port}[/blue]")
    uvicorn.run("shop_api.main:app", host="0.0.0.0", port=port, reload=reload)


if __name__ == "__main__":
    app()
