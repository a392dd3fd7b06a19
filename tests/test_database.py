"""SSL parameter handling for asyncpg URLs."""

import ssl

from patchgate.database import split_ssl_params


def test_plain_url_is_untouched():
    url = "postgresql+asyncpg://u:p@localhost:5432/patchgate"
    assert split_ssl_params(url) == (url, {})


def test_sslmode_moves_to_connect_args():
    url, connect_args = split_ssl_params(
        "postgresql+asyncpg://u:p@db.example.com:6543/postgres?sslmode=require&application_name=gate",
        verify=False,
    )
    assert "sslmode" not in url
    assert url.endswith("?application_name=gate")
    ctx = connect_args["ssl"]
    assert isinstance(ctx, ssl.SSLContext)
    assert ctx.verify_mode == ssl.CERT_NONE


def test_verified_ssl_keeps_checks():
    _, connect_args = split_ssl_params("postgresql+asyncpg://h/db?ssl=true", verify=True)
    assert connect_args["ssl"].check_hostname is True
