import asyncio
from pathlib import Path
import subprocess
from typing import Annotated

from pydantic import validate_email
from rich import print
import typer

from app.core.config import settings

app = typer.Typer()


async def create_admin_task(name: str, email: str, password: str) -> None:
    from app.core.db import AsyncSessionLocal
    from app.core.db.crud import user_db
    from app.core.enums import UserRole, UserStatus
    from app.core.utils import hash_password

    async with AsyncSessionLocal() as session:
        async with session.begin():
            if existing_user := await user_db.get_by_email(session, email):
                if existing_user.role == UserRole.ADMIN:
                    print(f"[yellow]Admin already exists:[/yellow] {email}")
                    return
                if not typer.confirm(
                    f"User {existing_user.email} exists with role "
                    f"{existing_user.role.value}. Upgrade to admin?"
                ):
                    print("[cyan]Nothing changed[/cyan]")
                    return
                await user_db.update(
                    session,
                    existing_user.id,
                    {"role": UserRole.ADMIN},
                    commit_self=False,
                )
                print(f"[green]User upgraded to admin:[/green] {email}")
                return

            user = await user_db.create(
                session,
                {
                    "name": name,
                    "email": email,
                    "password_hash": hash_password(password),
                    "role": UserRole.ADMIN,
                    "status": UserStatus.ACTIVE,
                    "is_email_verified": True,
                },
                commit_self=False,
            )
            print(f"[green]Admin created:[/green] {user.email}")


def email_validator(email: str) -> str:
    _, email = validate_email(email)
    return email.lower()


@app.command()
def createadmin(
    email: Annotated[
        str,
        typer.Option(
            prompt=True, prompt_required=False, callback=email_validator
        ),
    ] = settings.ADMIN_EMAIL,
    password: Annotated[
        str,
        typer.Option(
            prompt=True,
            prompt_required=False,
            hide_input=True,
            confirmation_prompt=True,
        ),
    ] = settings.ADMIN_PASSWORD,
    name: Annotated[str, typer.Option()] = "Administrator",
):
    """
    Creates an admin account, or upgrades an existing account to admin.

    Defaults to ADMIN_EMAIL and ADMIN_PASSWORD from the settings.

    Examples:
        python manage.py createadmin
        python manage.py createadmin --email ops@example.com --password
    """
    asyncio.run(create_admin_task(name, email, password))


async def sweep_codes_task() -> None:
    from app.infrastructure.scheduler.jobs import purge_expired_codes

    deleted = await purge_expired_codes()
    print(f"[green]Purged {deleted} expired one-time code(s)[/green]")


@app.command()
def sweepcodes():
    """
    Deletes expired one-time codes once, outside the scheduler.
    """
    asyncio.run(sweep_codes_task())


@app.command()
def initdb():
    """
    Creates all tables directly from the models. For local SQLite setups;
    use ``migrate`` for PostgreSQL.
    """
    from app.core.db import init_db

    asyncio.run(init_db())
    print("[green]Database tables created[/green]")


@app.command()
def makemigrations(comment: Annotated[str, typer.Argument()] = "auto"):
    """
    Creates a new Alembic migration revision with an autogenerated migration script.

    Args:
        comment (str, optional): The message to use for the migration revision. Defaults to "auto".

    Raises:
        subprocess.CalledProcessError: If the Alembic command fails.
    """
    try:
        revision_command = f'alembic revision --autogenerate -m "{comment}"'
        print(f"Running Alembic migrations: {revision_command}")
        subprocess.run(revision_command, shell=True, check=True)
    except subprocess.CalledProcessError as e:
        print(f"[red]Error:[/red] {e}")
        raise
    print("[green]Make migrations complete[/green]")


@app.command()
def showmigrations():
    """
    Shows the Alembic migration history.
    """
    try:
        history_command = "alembic history"
        print(f"Running Alembic history: {history_command}")
        subprocess.run(history_command, shell=True, check=True)
    except subprocess.CalledProcessError as e:
        print(f"[red]Error:[/red] {e}")
        raise
    print("[green]Show migrations complete[/green]")


@app.command()
def migrate():
    """
    Runs the Alembic database migration to upgrade the schema to the latest version.
    """
    try:
        upgrade_command = "alembic upgrade head"
        print(f"Running Alembic upgrade: {upgrade_command}")
        subprocess.run(upgrade_command, shell=True, check=True)
    except subprocess.CalledProcessError as e:
        print(f"[red]Error:[/red] {e}")
        raise
    print("[green]Migration complete[/green]")


@app.command()
def runserver():
    try:
        server_command = (
            "uvicorn app.main:app --host 127.0.0.1 --port 8000 --reload"
            if settings.DEBUG
            else "uvicorn app.main:app --host 0.0.0.0 --port 8000"
        )
        print(f"Running FastAPI server: {server_command}")
        subprocess.run(server_command, shell=True, check=True)
    except subprocess.CalledProcessError as e:
        print(f"[red]Error:[/red] {e}")
        raise


@app.command()
def runscheduler():
    """
    Runs the scheduler as a standalone process (set ENABLE_SCHEDULER=false
    on the API instances).
    """
    from app.infrastructure.scheduler.main import main as scheduler_main

    asyncio.run(scheduler_main())


@app.command()
def generateopenapi():
    """
    Generates the OpenAPI schema for the FastAPI application and saves it to openapi.json.
    """
    from app.core.utils import generate_openapi_json, write_to_file_async
    from app.main import app

    openapi_path = Path("openapi.json")
    asyncio.run(write_to_file_async(str(openapi_path), generate_openapi_json(app)))
    print(f"[green]OpenAPI schema generated at {openapi_path.name}[/green]")


@app.callback()
def main(ctx: typer.Context):
    print(f"Executing the command: {ctx.invoked_subcommand}")


if __name__ == "__main__":
    app()
