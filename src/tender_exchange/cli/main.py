"""
Tender Exchange CLI

Command-line interface over the TenderExchange façade. Every command that
acts on someone's behalf takes --as USER_ID; the user id is resolved to a
role-scoped caller exactly as a routing layer would resolve a token.

Usage:
    tender-exchange init --db exchange.db
    tender-exchange user register --email ana@acme.test --role COMPANY_ADMIN
    tender-exchange company create --as <user_id> --name "Acme Works"
    tender-exchange tender create --as <user_id> --title "Road resurfacing" \\
        --deadline 2025-12-31 --budget 1000000
    tender-exchange application submit --as <user_id> --tender <tender_id> --amount 950000
    tender-exchange application decide --as <user_id> --id <application_id> --decision accepted
    tender-exchange dashboard --as <user_id>
"""

import os
from collections.abc import Callable
from datetime import datetime, time
from pathlib import Path
from typing import List, Optional, TypeVar

import typer
from typing_extensions import Annotated
from werkzeug.security import generate_password_hash

from tender_exchange.access.models import Caller, TenderFilters, TenderSort
from tender_exchange.application.models import Application, ApplicationStatus
from tender_exchange.directory.models import Role
from tender_exchange.exchange import TenderExchange
from tender_exchange.kernel.errors import ExchangeError
from tender_exchange.kernel.logging import configure_logging, is_production
from tender_exchange.kernel.policy import ExchangePolicy
from tender_exchange.kernel.retry import retry_on_store_unavailable
from tender_exchange.tender.models import Tender, TenderStatus

# Logs go to stderr so stdout stays parseable
configure_logging(
    json_output=is_production(),
    log_level=os.getenv("LOG_LEVEL", "WARNING"),
)

app = typer.Typer(
    name="tender-exchange",
    help="Tender Exchange - procurement tenders and bids between companies",
    add_completion=False,
)

# Sub-apps
user_app = typer.Typer(help="Member registration commands")
company_app = typer.Typer(help="Company onboarding and capability commands")
catalog_app = typer.Typer(help="Goods/service catalog commands")
tender_app = typer.Typer(help="Tender lifecycle commands")
application_app = typer.Typer(help="Application submission and decision commands")

app.add_typer(user_app, name="user")
app.add_typer(company_app, name="company")
app.add_typer(catalog_app, name="catalog")
app.add_typer(tender_app, name="tender")
app.add_typer(application_app, name="application")

DEFAULT_DB = Path(os.getenv("TENDER_EXCHANGE_DB", ".tender_exchange.db"))

T = TypeVar("T")

DbOption = Annotated[Optional[Path], typer.Option("--db", help="Database path")]
ActorOption = Annotated[str, typer.Option("--as", help="Acting user id")]


def get_exchange(db_path: Optional[Path] = None) -> TenderExchange:
    """Open an existing exchange database or exit"""
    db = db_path or DEFAULT_DB
    if not db.exists():
        typer.echo(f"Error: Database not found: {db}", err=True)
        typer.echo(f"Run 'tender-exchange init --db {db}' to initialize", err=True)
        raise typer.Exit(1)
    return TenderExchange(db, policy=ExchangePolicy.from_env())


@retry_on_store_unavailable()
def _call(operation: Callable[..., T], *args: object, **kwargs: object) -> T:
    return operation(*args, **kwargs)


def run(operation: Callable[..., T], *args: object, **kwargs: object) -> T:
    """
    Call into the core, retrying an unavailable store

    Domain errors are printed as ``Error [<code>]: <message>`` and exit 1.
    """
    try:
        return _call(operation, *args, **kwargs)
    except ExchangeError as e:
        typer.echo(f"Error [{e.code}]: {e}", err=True)
        raise typer.Exit(1) from e


def acting(exchange: TenderExchange, user_id: str) -> Caller:
    return run(exchange.resolve_caller, user_id)


def parse_deadline(value: str) -> datetime:
    """
    Parse an ISO date or datetime

    A bare date means the end of that day, UTC.
    """
    try:
        if len(value) == 10:
            return datetime.combine(datetime.fromisoformat(value).date(), time(23, 59, 59))
        return datetime.fromisoformat(value)
    except ValueError as e:
        raise typer.BadParameter(f"Invalid deadline: {value}") from e


def echo_tender(tender: Tender) -> None:
    typer.echo(f"  {tender.tender_id}: {tender.title}")
    typer.echo(f"    Status: {tender.status.value}")
    typer.echo(f"    Budget: {tender.budget}")
    typer.echo(f"    Deadline: {tender.deadline.isoformat()}")
    if tender.category:
        typer.echo(f"    Category: {tender.category}")


def echo_application(application: Application) -> None:
    typer.echo(f"  {application.application_id}: tender {application.tender_id}")
    typer.echo(f"    Company: {application.company_id}")
    typer.echo(f"    Status: {application.status.value}")
    typer.echo(f"    Quotation: {application.quotation_amount}")


# Initialization command


@app.command()
def init(
    db: Annotated[
        Path,
        typer.Option(help="Database path"),
    ] = DEFAULT_DB,
) -> None:
    """Initialize a new exchange database"""
    if db.exists():
        typer.echo(f"Error: Database already exists: {db}", err=True)
        raise typer.Exit(1)

    TenderExchange(db)
    typer.echo(f"✓ Initialized exchange database: {db}")


# User commands


@user_app.command("register")
def user_register(
    email: Annotated[str, typer.Option("--email", help="Email address")],
    role: Annotated[Role, typer.Option("--role", help="Member role")],
    password: Annotated[
        str, typer.Option("--password", prompt=True, hide_input=True, help="Password")
    ],
    name: Annotated[Optional[str], typer.Option("--name", help="Full name")] = None,
    db: DbOption = None,
) -> None:
    """Register a member (not yet attached to a company)"""
    exchange = get_exchange(db)
    user = run(exchange.register_user, email, generate_password_hash(password), role, name)

    typer.echo(f"✓ Registered user: {user.user_id}")
    typer.echo(f"  Role: {user.role.value}")


# Company commands


@company_app.command("create")
def company_create(
    actor: ActorOption,
    name: Annotated[str, typer.Option("--name", help="Company name (unique)")],
    industry: Annotated[Optional[str], typer.Option("--industry")] = None,
    description: Annotated[Optional[str], typer.Option("--description")] = None,
    logo_url: Annotated[Optional[str], typer.Option("--logo-url")] = None,
    db: DbOption = None,
) -> None:
    """Onboard a company and attach the acting user to it"""
    exchange = get_exchange(db)
    company = run(exchange.register_company, actor, name, industry, description, logo_url)

    typer.echo(f"✓ Created company: {company.company_id}")
    typer.echo(f"  Name: {company.name}")


@company_app.command("add-member")
def company_add_member(
    actor: ActorOption,
    user_id: Annotated[str, typer.Option("--user", help="User id to attach")],
    db: DbOption = None,
) -> None:
    """Attach a registered user to the acting admin's company"""
    exchange = get_exchange(db)
    caller = acting(exchange, actor)
    user = run(exchange.add_member, caller.company_id or "", user_id, caller)
    typer.echo(f"✓ Added {user.user_id} ({user.role.value}) to company {user.company_id}")


@company_app.command("tag")
def company_tag(
    actor: ActorOption,
    service: Annotated[
        List[str], typer.Option("--service", help="Goods/service id (repeatable)")
    ],
    db: DbOption = None,
) -> None:
    """Declare goods/services the acting user's company can supply"""
    exchange = get_exchange(db)
    caller = acting(exchange, actor)
    company_id = caller.company_id or ""

    tags = run(exchange.add_capabilities, company_id, service, caller)
    typer.echo(f"✓ Company {company_id} now declares {len(tags)} capabilities:")
    for tag in tags:
        typer.echo(f"  {tag.goods_service_id}: {tag.name}")


@company_app.command("show")
def company_show(
    company_id: Annotated[str, typer.Option("--id", help="Company id")],
    db: DbOption = None,
) -> None:
    """Show a company and its declared capabilities"""
    exchange = get_exchange(db)
    company = run(exchange.get_company, company_id)
    tags = run(exchange.capabilities, company_id)

    typer.echo(f"Company: {company.name} ({company.company_id})")
    if company.industry:
        typer.echo(f"  Industry: {company.industry}")
    typer.echo(f"  Capabilities ({len(tags)}):")
    for tag in tags:
        typer.echo(f"    {tag.goods_service_id}: {tag.name}")


# Catalog commands


@catalog_app.command("add")
def catalog_add(
    name: Annotated[str, typer.Option("--name", help="Goods/service name")],
    category: Annotated[Optional[str], typer.Option("--category")] = None,
    description: Annotated[Optional[str], typer.Option("--description")] = None,
    db: DbOption = None,
) -> None:
    """Seed a catalog entry (returns the existing entry for a known name)"""
    exchange = get_exchange(db)
    entry = run(exchange.register_goods_service, name, category, description)
    typer.echo(f"✓ Catalog entry: {entry.goods_service_id}")
    typer.echo(f"  Name: {entry.name}")


@catalog_app.command("list")
def catalog_list(db: DbOption = None) -> None:
    """List the goods/service catalog"""
    exchange = get_exchange(db)
    entries = run(exchange.list_goods_services)

    if not entries:
        typer.echo("Catalog is empty")
        return

    typer.echo(f"Catalog ({len(entries)}):")
    for entry in entries:
        suffix = f" [{entry.category}]" if entry.category else ""
        typer.echo(f"  {entry.goods_service_id}: {entry.name}{suffix}")


# Tender commands


@tender_app.command("create")
def tender_create(
    actor: ActorOption,
    title: Annotated[str, typer.Option("--title", help="Tender title")],
    deadline: Annotated[
        str, typer.Option("--deadline", help="ISO date or datetime (UTC)")
    ],
    budget: Annotated[str, typer.Option("--budget", help="Budget amount")],
    description: Annotated[str, typer.Option("--description")] = "",
    category: Annotated[Optional[str], typer.Option("--category")] = None,
    db: DbOption = None,
) -> None:
    """Publish a tender for the acting user's company"""
    exchange = get_exchange(db)
    caller = acting(exchange, actor)
    company_id = caller.company_id or ""

    tender = run(
        exchange.create_tender,
        company_id,
        caller,
        title,
        description,
        parse_deadline(deadline),
        budget,
        category,
    )
    typer.echo(f"✓ Created tender: {tender.tender_id}")
    typer.echo(f"  Title: {tender.title}")
    typer.echo(f"  Status: {tender.status.value}")


@tender_app.command("close")
def tender_close(
    actor: ActorOption,
    tender_id: Annotated[str, typer.Option("--id", help="Tender id")],
    db: DbOption = None,
) -> None:
    """Close a tender for applications"""
    exchange = get_exchange(db)
    caller = acting(exchange, actor)
    tender = run(exchange.close_tender, tender_id, caller)
    typer.echo(f"✓ Closed tender: {tender.tender_id}")
    typer.echo(f"  Status: {tender.status.value}")


@tender_app.command("show")
def tender_show(
    actor: ActorOption,
    tender_id: Annotated[str, typer.Option("--id", help="Tender id")],
    db: DbOption = None,
) -> None:
    """Show one tender"""
    exchange = get_exchange(db)
    caller = acting(exchange, actor)
    tender = run(exchange.get_tender, caller, tender_id)
    echo_tender(tender)
    if tender.description:
        typer.echo(f"    Description: {tender.description}")


@tender_app.command("list")
def tender_list(
    actor: ActorOption,
    search: Annotated[Optional[str], typer.Option("--search")] = None,
    category: Annotated[Optional[str], typer.Option("--category")] = None,
    status: Annotated[Optional[TenderStatus], typer.Option("--status")] = None,
    min_budget: Annotated[Optional[str], typer.Option("--min-budget")] = None,
    max_budget: Annotated[Optional[str], typer.Option("--max-budget")] = None,
    sort: Annotated[TenderSort, typer.Option("--sort")] = TenderSort.NEWEST,
    offset: Annotated[int, typer.Option("--offset", min=0)] = 0,
    limit: Annotated[Optional[int], typer.Option("--limit", min=1)] = None,
    db: DbOption = None,
) -> None:
    """List tenders visible to the acting user"""
    exchange = get_exchange(db)
    caller = acting(exchange, actor)

    try:
        filters = TenderFilters(
            search=search,
            category=category,
            status=status,
            min_budget=min_budget,
            max_budget=max_budget,
            sort=sort,
            offset=offset,
            limit=limit,
        )
    except ValueError as e:
        raise typer.BadParameter(str(e)) from e

    tenders = run(exchange.list_tenders, caller, filters)
    if not tenders:
        typer.echo("No tenders found")
        return

    typer.echo(f"Tenders ({len(tenders)}):")
    for tender in tenders:
        echo_tender(tender)


@tender_app.command("sweep")
def tender_sweep(db: DbOption = None) -> None:
    """Persist expiry for tenders past their deadline"""
    exchange = get_exchange(db)
    expired = run(exchange.expire_overdue)

    typer.echo(f"✓ Expired {len(expired)} tender(s)")
    for tender_id in expired:
        typer.echo(f"  {tender_id}")


# Application commands


@application_app.command("submit")
def application_submit(
    actor: ActorOption,
    tender_id: Annotated[str, typer.Option("--tender", help="Tender id")],
    amount: Annotated[str, typer.Option("--amount", help="Quotation amount")],
    proposal: Annotated[str, typer.Option("--proposal", help="Proposal text")] = "",
    db: DbOption = None,
) -> None:
    """Submit the acting user's company's bid on a tender"""
    exchange = get_exchange(db)
    caller = acting(exchange, actor)
    company_id = caller.company_id or ""

    application = run(
        exchange.submit_application, tender_id, company_id, amount, proposal, caller
    )
    typer.echo(f"✓ Submitted application: {application.application_id}")
    typer.echo(f"  Status: {application.status.value}")


@application_app.command("decide")
def application_decide(
    actor: ActorOption,
    application_id: Annotated[str, typer.Option("--id", help="Application id")],
    decision: Annotated[str, typer.Option("--decision", help="accepted or rejected")],
    db: DbOption = None,
) -> None:
    """Accept or reject a pending application"""
    exchange = get_exchange(db)
    caller = acting(exchange, actor)
    application = run(exchange.decide_application, application_id, caller, decision)

    typer.echo(f"✓ Application {application.application_id} {application.status.value}")


@application_app.command("show")
def application_show(
    actor: ActorOption,
    application_id: Annotated[str, typer.Option("--id", help="Application id")],
    db: DbOption = None,
) -> None:
    """Show one application"""
    exchange = get_exchange(db)
    caller = acting(exchange, actor)
    echo_application(run(exchange.get_application, caller, application_id))


@application_app.command("list")
def application_list(
    actor: ActorOption,
    tender_id: Annotated[Optional[str], typer.Option("--tender", help="Tender id")] = None,
    status: Annotated[
        Optional[ApplicationStatus], typer.Option("--status", help="Only this status")
    ] = None,
    db: DbOption = None,
) -> None:
    """List applications visible to the acting user"""
    exchange = get_exchange(db)
    caller = acting(exchange, actor)
    applications = run(exchange.list_applications, caller, tender_id, status)

    if not applications:
        typer.echo("No applications found")
        return

    typer.echo(f"Applications ({len(applications)}):")
    for application in applications:
        echo_application(application)


# Reporting and operations


@app.command()
def dashboard(actor: ActorOption, db: DbOption = None) -> None:
    """Activity counters for the acting user's company"""
    exchange = get_exchange(db)
    caller = acting(exchange, actor)
    summary = run(exchange.dashboard, caller)

    typer.echo(f"Dashboard for company {summary.company_id}:")
    typer.echo(f"  Tenders created: {summary.tenders_created}")
    typer.echo(f"  Applications submitted: {summary.applications_submitted}")
    typer.echo(f"  Applications received: {summary.applications_received}")
    typer.echo(f"  Applications accepted: {summary.applications_accepted}")


@app.command("serve-health")
def serve_health(
    port: Annotated[int, typer.Option("--port", help="Health server port")] = 8080,
    metrics_port: Annotated[
        Optional[int], typer.Option("--metrics-port", help="Prometheus exporter port")
    ] = None,
    db: DbOption = None,
) -> None:
    """Run the health check server (and optionally the metrics exporter)"""
    from tender_exchange.health_server import initialize_health_server, run_health_server
    from tender_exchange.kernel.metrics import start_metrics_server

    if metrics_port is not None:
        start_metrics_server(metrics_port)
    initialize_health_server(db or DEFAULT_DB)
    run_health_server(port=port)


if __name__ == "__main__":
    app()
