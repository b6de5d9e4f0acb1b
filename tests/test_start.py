from sqlalchemy import inspect

import start
from autoparts.database import engine


def test_command_line_defaults(monkeypatch):
    monkeypatch.setenv("PORT", "8123")

    args = start.parse_args([])

    assert args.port == 8123
    assert args.init_only is False


def test_init_only_prepares_the_configured_database(capsys):
    start.main(["--init-only"])

    assert "Schéma à jour" in capsys.readouterr().out
    assert {"products", "invoices", "orders", "contacts"} <= set(inspect(engine).get_table_names())
