from glz.app import create_app, db

from flask_migrate import Migrate
from flask.cli import FlaskGroup
import click
from sqlalchemy import func

from glz.constants import ROLES, USER
from glz.models import User
from glz.services.bulk_import import ImportFileError, import_file
from glz.services.errors import CertificateValidationError
from glz.shared.passwords import password_problem


migrate = Migrate()


def create_glz_app():
    app = create_app()
    migrate.init_app(app, db)
    return app


cli = FlaskGroup(create_app=create_glz_app)


def _find_user(username: str):
    return (
        db.session.query(User)
        .filter(func.lower(User.username) == username.lower())
        .one_or_none()
    )


@cli.command("create-user")
@click.argument("username")
@click.option("--password", prompt=True, hide_input=True, confirmation_prompt=True)
@click.option("--role", type=click.Choice(ROLES), default=USER, show_default=True)
def create_user(username: str, password: str, role: str):
    """Create a login account."""
    problem = password_problem(password)
    if problem:
        raise click.ClickException(problem)
    if _find_user(username):
        raise click.ClickException(f"User {username} already exists")
    user = User(username=username, role=role)
    user.set_password(password)
    db.session.add(user)
    db.session.commit()
    click.echo(f"Created {role} {user.username} (id={user.id})")


@cli.command("import-certificates")
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
@click.option("--group", "group_code", required=True, help="Target group code")
@click.option("--as", "username", required=True, help="User recorded as creator")
def import_certificates(path: str, group_code: str, username: str):
    """Import certificates from an .xlsx or .csv file into one group."""
    actor = _find_user(username)
    if not actor:
        raise click.ClickException(f"Unknown user: {username}")
    try:
        with open(path, "rb") as fh:
            result = import_file(fh, path, group_code, actor)
    except (ImportFileError, CertificateValidationError) as exc:
        raise click.ClickException(str(exc))
    for outcome in result.results:
        status = outcome.reference_number if outcome.success else f"FAILED ({outcome.message})"
        click.echo(f"row {outcome.row}: {outcome.full_name} -> {status}")
    click.echo(
        f"total={result.total} success={result.succeeded} failed={result.failed}"
    )


if __name__ == "__main__":
    cli()
