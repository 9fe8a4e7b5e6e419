import click
from sqlalchemy.orm import sessionmaker

from docflow.config import settings
from docflow.database import get_engine, init_db
from docflow.errors import Conflict
from docflow.models.enums import Role
from docflow.services import identity_service


@click.group()
@click.option("--database-url", envvar="DOCFLOW_DATABASE_URL", default=None,
              help="SQLAlchemy URL; defaults to the SQLite file under the data directory.")
@click.pass_context
def cli(ctx, database_url):
    """Docflow receipt approval service."""
    ctx.ensure_object(dict)
    ctx.obj["database_url"] = database_url or settings.db_url


def _engine(ctx):
    if "engine" not in ctx.obj:
        ctx.obj["engine"] = get_engine(ctx.obj["database_url"])
    return ctx.obj["engine"]


@cli.command("init-db")
@click.pass_context
def init_db_command(ctx):
    """Create tables and apply pending column migrations."""
    init_db(_engine(ctx))
    click.echo("Database initialised.")


@cli.command("create-user")
@click.option("--role", type=click.Choice([r.value for r in Role]), required=True)
@click.option("--email", required=True)
@click.option("--name", "full_name", required=True)
@click.option("--password", prompt=True, hide_input=True, confirmation_prompt=True)
@click.option("--position", default=None)
@click.option("--company", "company_name", default=None)
@click.pass_context
def create_user_command(ctx, role, email, full_name, password, position, company_name):
    """Create an account. Inspectors and executives can only be created here."""
    if len(password) < 6:
        raise click.BadParameter("must be at least 6 characters", param_hint="--password")
    engine = _engine(ctx)
    init_db(engine)
    db = sessionmaker(bind=engine, autoflush=False)()
    try:
        user = identity_service.create_user(
            db, Role(role), email, full_name, password,
            company_name=company_name, position=position,
        )
        click.echo(f"Created {user.role} #{user.id} <{user.email}>")
    except Conflict as exc:
        raise click.ClickException(exc.message)
    finally:
        db.close()


@cli.command("serve")
@click.option("--host", default=settings.host, show_default=True)
@click.option("--port", default=settings.port, show_default=True, type=int)
@click.option("--reload", is_flag=True, default=False)
def serve_command(host, port, reload):
    """Run the API with uvicorn."""
    import uvicorn

    uvicorn.run("docflow.main:app", host=host, port=port, reload=reload)


if __name__ == "__main__":
    cli()
