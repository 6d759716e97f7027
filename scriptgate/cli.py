"""Script Gate CLI tool (scriptgate)."""

from typing import List, Optional

import typer

app = typer.Typer(name="scriptgate", help="Script Gate CLI")
db_app = typer.Typer(help="Database management commands")
modules_app = typer.Typer(help="Inspect and run modules as a given role")
app.add_typer(db_app, name="db")
app.add_typer(modules_app, name="modules")


@db_app.command("init")
def db_init():
    """Create all tables that don't exist yet."""
    from scriptgate.db.session import init_db

    init_db()
    typer.echo("✅ Tables created (or already exist)")


@db_app.command("seed")
def db_seed():
    """Seed built-in roles, default modules and the admin account."""
    from scriptgate.db.session import SessionLocal
    from scriptgate.db.seeds.seed_roles import seed_roles
    from scriptgate.db.seeds.seed_modules import seed_modules
    from scriptgate.db.seeds.seed_admin import seed_admin

    db = SessionLocal()
    try:
        seed_roles(db)
        seed_modules(db)
        seed_admin(db)
    finally:
        db.close()
    typer.echo("✅ All seeds applied")


def parse_params(pairs: List[str]) -> dict:
    """Turn repeated ``key=value`` options into a mapping. Repeated keys collect into a list."""
    params: dict = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise typer.BadParameter(f"Expected key=value, got {pair!r}", param_hint="--param")
        if key in params:
            existing = params[key]
            params[key] = (existing if isinstance(existing, list) else [existing]) + [value]
        else:
            params[key] = value
    return params


@modules_app.command("list")
def modules_list(
    role: str = typer.Option(..., "--role", "-r", help="Role to resolve access for"),
):
    """List the modules a role may invoke."""
    from scriptgate.db.session import SessionLocal
    from scriptgate.executor.gate import access_gate

    db = SessionLocal()
    try:
        modules = access_gate.list_accessible_modules(db, role)
        if not modules:
            typer.echo(f"No modules available for role '{role}'")
            return
        for m in modules:
            names = ", ".join(p.name for p in m.parameter_definitions) or "-"
            typer.echo(f"  [{m.module_id}] {m.name} ({names})")
    finally:
        db.close()


@modules_app.command("run")
def modules_run(
    module_id: str = typer.Argument(..., help="Module identifier"),
    role: str = typer.Option(..., "--role", "-r", help="Role to run as"),
    caller: str = typer.Option("cli", "--caller", help="Caller id exported as USER_ID"),
    param: Optional[List[str]] = typer.Option(None, "--param", "-p", help="key=value, repeatable"),
):
    """Run a module through the access gate and print the result as JSON."""
    from scriptgate.db.session import SessionLocal
    from scriptgate.executor.gate import access_gate

    params = parse_params(param or [])
    db = SessionLocal()
    try:
        result = access_gate.execute_module(db, role, module_id, params, caller)
    finally:
        db.close()

    typer.echo(result.model_dump_json(indent=2))
    if not result.success:
        raise typer.Exit(code=1)


@app.command("serve")
def serve(
    host: str = typer.Option("0.0.0.0", help="Host"),
    port: int = typer.Option(8000, help="Port"),
    reload: bool = typer.Option(False, help="Auto-reload"),
):
    """Start the FastAPI server."""
    import uvicorn
    uvicorn.run("scriptgate.main:app", host=host, port=port, reload=reload)


if __name__ == "__main__":
    app()
