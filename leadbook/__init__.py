import os
import logging

import click
from flask import Flask, jsonify

from leadbook.config import config_by_name
from leadbook.errors import BuyerError, CSVImportError
from leadbook.extensions import db, migrate, login_manager, csrf, limiter


def create_app(config_name=None):
    """Application factory."""

    if config_name is None:
        config_name = os.environ.get("FLASK_ENV", "development")

    app = Flask(__name__)
    app.config.from_object(config_by_name[config_name])

    # --- Validate required env vars (skip in testing) ---
    if config_name != "testing":
        try:
            config_by_name[config_name].validate()
        except RuntimeError as e:
            app.logger.warning(f"Config validation: {e}")

    # --- Init extensions ---
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)
    csrf.init_app(app)
    limiter.init_app(app)

    # --- Import models so Alembic can discover them ---
    with app.app_context():
        from leadbook import models  # noqa: F401

    # --- Register blueprints ---
    from leadbook.blueprints.auth import auth_bp
    from leadbook.blueprints.buyers import buyers_bp
    from leadbook.blueprints.dashboard import dashboard_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(buyers_bp)
    app.register_blueprint(dashboard_bp)

    # JSON API authenticated by session cookie (SameSite=Lax)
    csrf.exempt(auth_bp)
    csrf.exempt(buyers_bp)
    csrf.exempt(dashboard_bp)

    # --- Error handlers ---
    @app.errorhandler(BuyerError)
    def buyer_error(e):
        return jsonify(e.to_dict()), e.status_code

    @app.errorhandler(404)
    def not_found(e):
        return jsonify(success=False, error="not_found", message="Not found."), 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return jsonify(
            success=False, error="method_not_allowed", message="Method not allowed."
        ), 405

    @app.errorhandler(413)
    def too_large(e):
        return jsonify(
            success=False, error="payload_too_large", message="Upload is too large."
        ), 413

    @app.errorhandler(429)
    def rate_limited(e):
        return jsonify(
            success=False,
            error="rate_limited",
            message="Too many requests. Please try again later.",
        ), 429

    @app.errorhandler(500)
    def server_error(e):
        return jsonify(
            success=False, error="internal_error", message="Internal server error."
        ), 500

    # --- CLI commands ---
    register_cli(app)

    # --- Security headers ---
    @app.after_request
    def add_security_headers(response):
        """Add security headers to every response."""
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Content-Security-Policy"] = (
            "default-src 'none'; frame-ancestors 'none';"
        )
        # Strict Transport Security (only in production)
        if not app.debug:
            response.headers["Strict-Transport-Security"] = (
                "max-age=31536000; includeSubDomains"
            )
        return response

    # --- Logging ---
    if not app.debug:
        logging.basicConfig(level=logging.INFO)

    return app


def register_cli(app):
    """Register custom CLI commands with the Flask app."""

    @app.cli.command("create-user")
    @click.option("--email", required=True, help="Login email")
    @click.option("--password", required=True, help="Login password")
    @click.option("--name", default="", help="Display name")
    def create_user(email, password, name):
        """Create a user who can log in and own buyers.

        Usage:
            flask create-user --email agent@example.com --password s3cret --name "Asha"
        """
        from leadbook.models.user import User

        email = email.lower().strip()
        if User.query.filter_by(email=email).first():
            click.echo(f"User already exists: {email}")
            return

        user = User(email=email, name=name or email.split("@")[0])
        user.set_password(password)
        db.session.add(user)
        db.session.commit()
        click.echo(f"Created user: {email} (id: {user.id})")

    @app.cli.command("import-buyers")
    @click.argument("csv_file", type=click.File("r", encoding="utf-8-sig"))
    @click.option("--owner", required=True, help="Email of the user who will own the rows")
    def import_buyers(csv_file, owner):
        """Import buyers from a CSV file and print the row report.

        Usage:
            flask import-buyers buyers.csv --owner agent@example.com
        """
        from leadbook.models.user import User
        from leadbook.services import csv_service

        user = User.query.filter_by(email=owner.lower().strip()).first()
        if user is None:
            raise click.ClickException(f"No user with email {owner}")

        try:
            result = csv_service.import_buyers_csv(csv_file.read(), user.id)
        except CSVImportError as e:
            raise click.ClickException(e.message) from e

        click.echo("")
        click.echo("=" * 60)
        click.echo(f"  Imported:  {result.imported_count} of {result.total_rows_seen}")
        click.echo(f"  Rejected:  {len(result.errors)}")
        click.echo(f"  Skipped:   {result.skipped_rows} (over the row cap)")
        click.echo("=" * 60)
        for error in result.errors:
            for field_name, messages in error.field_errors.items():
                click.echo(f"  row {error.row_number}: {field_name}: {'; '.join(messages)}")

    @app.cli.command("export-buyers")
    @click.option("--city", default=None, help="Only buyers in this city")
    @click.option("--status", default=None, help="Only buyers with this status")
    @click.option("--search", default=None, help="Name, phone or email substring")
    def export_buyers(city, status, search):
        """Write buyers as CSV to stdout.

        Usage:
            flask export-buyers --city Mohali > mohali.csv
        """
        from leadbook.errors import ValidationError
        from leadbook.services import csv_service, query_service

        try:
            filters = query_service.parse_filters(
                {"city": city, "status": status, "search": search}
            )
        except ValidationError as e:
            raise click.ClickException(
                "; ".join(m for msgs in e.errors.values() for m in msgs)
            ) from e
        click.echo(csv_service.export_buyers_csv(filters), nl=False)
