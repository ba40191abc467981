import json

import click
from flask import Flask, jsonify
from werkzeug.middleware.proxy_fix import ProxyFix

from config import config


def create_app(config_name='default'):
    """Application factory — creates and configures the Flask app."""
    app = Flask(__name__)
    app.config.from_object(config[config_name])

    # ── Logging ───────────────────────────────────────────────────
    from billdesk.utils.logging import setup_logging
    setup_logging(app)

    # ── Blueprints ────────────────────────────────────────────────
    from billdesk.billing import billing as billing_blueprint
    app.register_blueprint(billing_blueprint, url_prefix='/billing')

    # ── Error Handlers ────────────────────────────────────────────
    @app.errorhandler(400)
    def bad_request(e):
        return jsonify({'error': {'code': 'BadRequest', 'message': str(e.description)}}), 400

    @app.errorhandler(404)
    def not_found(e):
        return jsonify({'error': {'code': 'NotFound', 'message': 'Resource not found.'}}), 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return jsonify({'error': {'code': 'MethodNotAllowed', 'message': str(e.description)}}), 405

    @app.errorhandler(500)
    def internal_error(e):
        app.logger.error(f"Unhandled error: {e}")
        return jsonify({'error': {'code': 'ServerError', 'message': 'Server error.'}}), 500

    # ── CLI Commands ──────────────────────────────────────────────
    register_commands(app)

    # ── ProxyFix (HTTPS termination at the platform proxy) ────────
    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_prefix=1)

    return app


def _lines_from_file(data):
    """Accept either a bare list of lines or {"lines": [...], ...}."""
    from billdesk.billing.cart import CartLine

    raw = data if isinstance(data, list) else data.get('lines', [])
    lines = []
    for index, item in enumerate(raw, start=1):
        item = dict(item)
        item.setdefault('lineId', item.get('productId') or str(index))
        lines.append(CartLine.from_dict(item))
    return lines


def register_commands(app):
    """Register custom Flask CLI commands."""

    @app.cli.command('totals')
    @click.argument('cart_file', type=click.File('r'))
    @click.option('--mode', type=click.Choice(['exclusive', 'inclusive']), default=None,
                  help='Tax price mode (defaults to TAX_PRICE_MODE).')
    @click.option('--tax-type', type=click.Choice(['intra', 'inter']), default=None,
                  help='Jurisdiction (defaults to the file, then DEFAULT_TAX_TYPE).')
    def totals(cart_file, mode, tax_type):
        """Compute the totals for a cart stored as JSON."""
        from billdesk.billing.totals import compute_totals

        try:
            data = json.load(cart_file)
        except ValueError as exc:
            raise click.ClickException(f'Cart file is not valid JSON: {exc}')
        if not isinstance(data, (list, dict)):
            raise click.ClickException('Cart file must hold a list of lines or an object.')

        options = data if isinstance(data, dict) else {}
        snapshot = compute_totals(
            _lines_from_file(data),
            bill_discount=options.get('billDiscount'),
            additional_charges=options.get('additionalCharges'),
            loyalty_points_discount=options.get('loyaltyPointsDiscount'),
            jurisdiction=tax_type or options.get('taxType') or app.config['DEFAULT_TAX_TYPE'],
            tax_mode=mode or app.config['TAX_PRICE_MODE'],
        )

        click.echo(f'{"Field":<26} {"Value"}')
        click.echo('─' * 40)
        for key, value in snapshot.to_dict().items():
            click.echo(f'{key:<26} {value}')

    @app.cli.command('show-config')
    def show_config():
        """Show the tax settings the totals engine will use (diagnostic)."""
        for key in ('TAX_PRICE_MODE', 'DEFAULT_TAX_TYPE', 'DEFAULT_TAX_RATE'):
            click.echo(f'{key:<18} {app.config[key]}')
