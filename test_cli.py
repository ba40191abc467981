"""
test_cli.py — Tests for the flask CLI commands (totals, show-config).
Run: pytest test_cli.py -v
"""
import json

import pytest

from billdesk import create_app


@pytest.fixture
def runner():
    app = create_app(config_name='testing')
    return app.test_cli_runner()


def write_cart(tmp_path, data):
    path = tmp_path / 'cart.json'
    path.write_text(json.dumps(data))
    return str(path)


def rows(output):
    """Parse the "Field  Value" table into a dict."""
    table = {}
    for line in output.splitlines()[2:]:
        key, _, value = line.partition(' ')
        table[key] = value.strip()
    return table


def test_totals_from_line_list(runner, tmp_path):
    cart = write_cart(tmp_path, [{'productId': 'p1', 'name': 'Rice', 'price': '100', 'taxRate': '18'}])
    result = runner.invoke(args=['totals', cart])
    assert result.exit_code == 0
    table = rows(result.output)
    assert table['rounded_total'] == '118'
    assert table['cgst'] == '9.00'


def test_totals_with_adjustments_and_options(runner, tmp_path):
    cart = write_cart(tmp_path, {
        'lines': [{'name': 'Soap', 'price': '118', 'quantity': 2, 'taxRate': '18'}],
        'billDiscount': '6',
        'taxType': 'intra',
    })
    result = runner.invoke(args=['totals', cart, '--mode', 'inclusive', '--tax-type', 'inter'])
    assert result.exit_code == 0
    table = rows(result.output)
    assert table['igst'] == '36.00'
    assert table['rounded_total'] == '230'


def test_totals_rejects_bad_json(runner, tmp_path):
    path = tmp_path / 'cart.json'
    path.write_text('{not json')
    result = runner.invoke(args=['totals', str(path)])
    assert result.exit_code != 0
    assert 'not valid JSON' in result.output


def test_totals_rejects_scalar(runner, tmp_path):
    result = runner.invoke(args=['totals', write_cart(tmp_path, 42)])
    assert result.exit_code != 0


def test_show_config(runner):
    result = runner.invoke(args=['show-config'])
    assert result.exit_code == 0
    assert 'TAX_PRICE_MODE' in result.output
    assert 'exclusive' in result.output
