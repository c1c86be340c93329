#!/usr/bin/env python3
"""
Message texts built from market data and alerts.
"""
from typing import List, Optional

from telegram.helpers import escape_markdown

from models import Alert, CoinDetail, CoinSummary
from utils import format_threshold


def format_number(num: Optional[float]) -> str:
    """Short dollar amount: $1.2T, $3.4B, $5.6M or $12.34."""
    if num is None:
        return "N/A"
    if num >= 1e12:
        return f"${num / 1e12:.1f}T"
    if num >= 1e9:
        return f"${num / 1e9:.1f}B"
    if num >= 1e6:
        return f"${num / 1e6:.1f}M"
    if 0 < num < 1:
        # keep significant digits of cheap coins
        return f"${num:.6g}"
    return f"${num:.2f}"


def md(text: str) -> str:
    """Escapes text for messages sent with parse_mode='Markdown'."""
    return escape_markdown(text, version=1)


def coin_label(coin: Optional[CoinDetail], coin_id: str) -> str:
    """`Bitcoin (BTC)` or the bare identifier when details are unknown, Markdown escaped."""
    if coin is None:
        return md(coin_id)
    return f"{md(coin.name)} ({md(coin.symbol)})"


def format_coin_card(coin: CoinDetail) -> str:
    lines = [
        f"🪙 *{md(coin.name)}* ({md(coin.symbol)})",
        "",
        f"💰 *Price:* {format_number(coin.price)}",
        f"📊 *Market Cap:* {format_number(coin.market_cap)}",
        f"📈 *24h High:* {format_number(coin.high_24h)}",
        f"📉 *24h Low:* {format_number(coin.low_24h)}",
        f"📊 *Volume:* {format_number(coin.total_volume)}",
        f"🏆 *Rank:* #{coin.rank if coin.rank is not None else 'N/A'}",
    ]

    links = []
    if coin.homepage:
        links.append(f"Website: {md(coin.homepage)}")
    if coin.explorer:
        links.append(f"Explorer: {md(coin.explorer)}")
    if coin.whitepaper:
        links.append(f"Whitepaper: {md(coin.whitepaper)}")
    if links:
        lines += ["", "🔗 *Links:*"] + links

    return "\n".join(lines)


def format_top_coins(coins: List[CoinSummary]) -> str:
    """Monospace table of the top coins."""
    rows = [
        "🏆 *Top 10 Coins by Market Cap:*",
        "",
        "```",
        " # │ Coin       │ Price     │ Market Cap",
        "───┼────────────┼───────────┼─────────────",
    ]
    for index, coin in enumerate(coins, 1):
        # no escaping inside a code block, only the closing backticks matter
        name = coin.name.replace("`", "'")
        name = name if len(name) <= 10 else name[:9] + "…"
        rows.append(
            f"{index:>2} │ {name:<10} │ {format_number(coin.current_price):>9} │ "
            f"{format_number(coin.market_cap):>12}"
        )
    rows.append("```")
    return "\n".join(rows)


def format_alert_line(alert: Alert, coin: Optional[CoinDetail] = None) -> str:
    return f"• {coin_label(coin, alert.coin)} {alert.condition.value} ${format_threshold(alert.price)}"


def format_triggered_alert(alert: Alert, coin: CoinDetail) -> str:
    return (
        f"🚨 *Price Alert Triggered!*\n\n"
        f"{coin_label(coin, alert.coin)} is now {format_number(coin.price)}\n"
        f"Your alert: {alert.condition.value} ${format_threshold(alert.price)}"
    )
