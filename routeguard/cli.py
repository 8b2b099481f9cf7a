"""RouteGuard CLI tool (routeguard)."""

from typing import Optional

import typer

app = typer.Typer(name="routeguard", help="RouteGuard CLI")
db_app = typer.Typer(help="Database management commands")
permissions_app = typer.Typer(help="Permission catalog commands")
app.add_typer(db_app, name="db")
app.add_typer(permissions_app, name="permissions")


def _mysql_params():
    """Split the MySQL URL into connection parameters and the database name."""
    from sqlalchemy.engine import make_url
    from routeguard.core.config import settings

    url = make_url(settings.DATABASE_URL)
    if not url.drivername.startswith("mysql"):
        typer.echo(f"❌ DATABASE_URL is not a MySQL URL ({url.drivername})", err=True)
        raise typer.Exit(code=1)
    params = {
        "host": url.host or "localhost",
        "port": url.port or 3306,
        "user": url.username,
        "password": url.password or "",
    }
    return params, url.database


@app.command("extract")
def extract(
    source: Optional[str] = typer.Option(None, help="Route registry JSON (default: ROUTE_REGISTRY_PATH)"),
    output: Optional[str] = typer.Option(None, help="Artifact path (default: PERMISSION_ARTIFACT_PATH)"),
):
    """Compile the route registry into the route permissions artifact."""
    from routeguard.core.config import settings
    from routeguard.core.exceptions import ExtractionShapeError
    from routeguard.services.extraction_service import extraction_service

    try:
        result = extraction_service.extract(
            source or settings.ROUTE_REGISTRY_PATH,
            output or settings.PERMISSION_ARTIFACT_PATH,
        )
    except ExtractionShapeError as e:
        typer.echo(f"❌ {e.message}", err=True)
        raise typer.Exit(code=1)

    typer.echo(f"Found {result.route_count} top-level routes")
    if result.written:
        typer.echo(f"✅ Wrote route permissions to {result.output_path}")
    else:
        typer.echo("No changes detected in route permissions, skipping write")


@db_app.command("init")
def db_init():
    """Create all tables that don't exist yet."""
    from routeguard.db.session import init_db

    init_db()
    typer.echo("✅ Tables created")


@db_app.command("create")
def db_create():
    """Create the MySQL database if it doesn't exist."""
    import pymysql

    params, db_name = _mysql_params()
    conn = pymysql.connect(**params)
    try:
        cursor = conn.cursor()
        cursor.execute(f"CREATE DATABASE IF NOT EXISTS `{db_name}` CHARACTER SET utf8mb4 COLLATE utf8mb4_unicode_ci")
        conn.commit()
        typer.echo(f"✅ Database '{db_name}' created (or already exists)")
    finally:
        conn.close()


@db_app.command("seed")
def db_seed():
    """Seed roles, the permission catalog, super-admin, and starter grants."""
    from routeguard.core.exceptions import ExtractionShapeError
    from routeguard.db.session import SessionLocal, init_db
    from routeguard.db.seeds.seed_roles import seed_roles
    from routeguard.db.seeds.seed_permissions import seed_permissions
    from routeguard.db.seeds.seed_super_admin import seed_super_admin
    from routeguard.db.seeds.seed_sample_data import seed_sample_data

    init_db()
    db = SessionLocal()
    try:
        seed_roles(db)
        seed_permissions(db)
        seed_super_admin(db)
        seed_sample_data(db)
    except ExtractionShapeError as e:
        typer.echo(f"❌ {e.message}", err=True)
        raise typer.Exit(code=1)
    finally:
        db.close()
    typer.echo("✅ All seeds applied")


@db_app.command("reset")
def db_reset():
    """Drop and recreate the database (DANGER)."""
    confirm = typer.confirm("⚠️  This will DROP the entire database. Continue?")
    if not confirm:
        raise typer.Abort()
    import pymysql

    params, db_name = _mysql_params()
    conn = pymysql.connect(**params)
    try:
        cursor = conn.cursor()
        cursor.execute(f"DROP DATABASE IF EXISTS `{db_name}`")
        cursor.execute(f"CREATE DATABASE `{db_name}` CHARACTER SET utf8mb4 COLLATE utf8mb4_unicode_ci")
        conn.commit()
        typer.echo(f"✅ Database '{db_name}' reset")
    finally:
        conn.close()


@permissions_app.command("sync")
def permissions_sync(
    artifact: Optional[str] = typer.Option(None, help="Artifact path (default: PERMISSION_ARTIFACT_PATH)"),
):
    """Insert or relabel Permission rows from the artifact. Never deletes."""
    from routeguard.core.config import settings
    from routeguard.core.exceptions import ExtractionShapeError
    from routeguard.db.session import SessionLocal
    from routeguard.services.permission_sync_service import permission_sync_service

    db = SessionLocal()
    try:
        report = permission_sync_service.sync_from_artifact(db, artifact or settings.PERMISSION_ARTIFACT_PATH)
    except ExtractionShapeError as e:
        typer.echo(f"❌ {e.message}", err=True)
        raise typer.Exit(code=1)
    finally:
        db.close()

    for label, modules in (
        ("created", report.created),
        ("updated", report.updated),
        ("unchanged", report.unchanged),
        ("retained", report.retained),
    ):
        typer.echo(f"  {label:<10} {len(modules):>3}  {', '.join(modules)}")


@app.command("grants")
def show_grants(
    username: str = typer.Argument(..., help="Employee username"),
    password: str = typer.Option(..., prompt=True, hide_input=True),
    base_url: Optional[str] = typer.Option(None, help="API base URL (default: API_BASE_URL)"),
):
    """Sign in through the API and print the caller's grant snapshot."""
    from routeguard.client import ApiSession
    from routeguard.core.exceptions import AuthenticationError

    session = ApiSession(base_url=base_url)
    try:
        snapshot = session.login(username, password)
    except AuthenticationError as e:
        typer.echo(f"❌ {e.message}", err=True)
        raise typer.Exit(code=1)

    typer.echo(f"{snapshot.username} [{snapshot.role_name}, {snapshot.role_class.value}]")
    typer.echo(f"  landing page: {snapshot.landing_page or '-'}")
    if not snapshot.grants:
        typer.echo("  (no grants)")
    for module in sorted(snapshot.grants):
        typer.echo(f"  {module}: {', '.join(sorted(snapshot.grants[module]))}")
    session.logout()


@app.command("serve")
def serve(
    host: str = typer.Option("0.0.0.0", help="Host"),
    port: int = typer.Option(8000, help="Port"),
    reload: bool = typer.Option(True, help="Auto-reload"),
):
    """Start the FastAPI development server."""
    import uvicorn
    uvicorn.run("routeguard.main:app", host=host, port=port, reload=reload)


if __name__ == "__main__":
    app()
