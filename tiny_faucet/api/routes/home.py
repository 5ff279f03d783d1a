"""HTML landing page with usage instructions."""

from __future__ import annotations

from html import escape

from fastapi import APIRouter
from fastapi.responses import HTMLResponse

from tiny_faucet.api.dependencies import LedgerDep
from tiny_faucet.core.config import ALLOWED_AMOUNTS, TEMPO_TOKENS, settings

router = APIRouter(include_in_schema=False)

_PAGE = """<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>Tempo Tiny Faucet</title>
    <style>
        body {{ font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', sans-serif;
               line-height: 1.6; max-width: 800px; margin: 0 auto; padding: 40px 20px; color: #333; }}
        pre {{ background: #f5f5f5; padding: 15px; border-radius: 4px; overflow-x: auto; }}
        .info {{ background: #f0f0f0; padding: 15px; border-radius: 4px; margin: 20px 0; }}
    </style>
</head>
<body>
    <h1>Tempo Tiny Faucet</h1>
    <p>A faucet service for Tempo testnet tokens</p>

    <div class="info">
        <strong>Service Address:</strong> {wallet}<br>
        <strong>Rate Limit:</strong> {max_requests} requests per {window}
    </div>

    <h2>Usage</h2>
    <pre><code>curl -X POST http://localhost:{port}/api/fund \\
  -H "Content-Type: application/json" \\
  -d '{{"address": "0xYourWalletAddress", "token": "pathUSD", "amount": 5000}}'</code></pre>

    <h2>Available Tokens</h2>
    <ul>{tokens}</ul>

    <h2>Amounts</h2>
    <p>{amounts}</p>

    <h2>Endpoints</h2>
    <ul>
        <li><code>GET /api/health</code> - Health check</li>
        <li><code>GET /api/info</code> - Service information</li>
        <li><code>POST /api/fund</code> - Request tokens</li>
        <li><code>GET /api/balance/{{token}}</code> - Check faucet balance</li>
        <li><code>GET /api/rate-limit/{{address}}</code> - Check rate limit status</li>
    </ul>
</body>
</html>
"""


_UNITS = ((3_600_000, "hour"), (60_000, "minute"), (1_000, "second"))


def describe_window(window_ms: int) -> str:
    """Render a window length in the largest whole unit that fits.

    Examples:
        >>> describe_window(86_400_000)
        '24 hours'
        >>> describe_window(90_000)
        '90 seconds'
    """
    for unit_ms, name in _UNITS:
        if window_ms >= unit_ms and window_ms % unit_ms == 0:
            count = window_ms // unit_ms
            return f"{count} {name}" if count == 1 else f"{count} {name}s"
    return f"{window_ms} ms"


@router.get("/", response_class=HTMLResponse)
def landing_page(ledger: LedgerDep) -> HTMLResponse:
    return HTMLResponse(
        _PAGE.format(
            wallet=escape(ledger.wallet_address),
            max_requests=settings.rate_limit.max_requests,
            window=describe_window(settings.rate_limit.window_ms),
            port=settings.app.port,
            tokens="".join(f"<li>{escape(name)}</li>" for name in TEMPO_TOKENS),
            amounts=", ".join(str(a) for a in ALLOWED_AMOUNTS),
        )
    )
