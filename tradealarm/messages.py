"""Notification texts sent to users (Telegram Markdown)."""

from .models.session import LedgerEntry, OutcomeStatus, SessionSummary, UserSession

REMINDER_TEXT = (
    "🔔 *REMINDER*\n"
    "Reply *Win [amount]* or *Loss [amount]* to log your latest result."
)
BOT_ACTIVE_TEXT = (
    "✅ *BOT ACTIVE*\n"
    "Reminders are running. Configure balance and limits from the dashboard."
)
STOPPED_MANUALLY_TEXT = "🛑 *SESSION STOPPED MANUALLY*"
STOPPED_VIA_WEB_TEXT = "🛑 *SESSION ENDED (VIA WEB)*"


def format_amount(amount: int, currency: str = "Rp") -> str:
    """Format minor units with '.' thousands separators.

    Examples:
        >>> format_amount(1250000)
        'Rp 1.250.000'
        >>> format_amount(-25000)
        'Rp -25.000'
    """
    grouped = f"{amount:,}".replace(",", ".")
    return f"{currency} {grouped}"


def session_started(session: UserSession, currency: str = "Rp") -> str:
    """Activation notice after a start-session request."""
    target = format_amount(session.target_win, currency) if session.target_enabled else "off"
    stop = format_amount(session.stop_loss, currency) if session.stop_loss_enabled else "off"
    return (
        "🚀 *TRACKING STARTED*\n"
        f"Reminder every {session.interval_minutes} min.\n"
        f"Start Balance: {format_amount(session.start_balance, currency)}\n"
        f"Target Win: {target}\n"
        f"Stop Loss: {stop}"
    )


def entry_recorded(
    entry: LedgerEntry,
    net: int,
    status: OutcomeStatus,
    interval_minutes: int,
    currency: str = "Rp",
) -> str:
    """Confirmation for an accepted win/loss, with the threshold verdict."""
    text = (
        "📊 *ENTRY LOGGED*\n"
        f"{entry.kind.value}: {format_amount(entry.amount, currency)}\n"
        f"Session Net: *{format_amount(net, currency)}*\n\n"
    )

    if status is OutcomeStatus.TARGET_REACHED:
        text += "🏆 *TARGET WIN REACHED!*\nReminders stopped automatically. Lock in your profit!"
    elif status is OutcomeStatus.STOP_LOSS_REACHED:
        text += "🛑 *STOP LOSS REACHED!*\nReminders stopped automatically. Do not force more trades!"
    else:
        text += f"🔔 Reminders keep running every {interval_minutes} min."

    return text


def summary(result: SessionSummary, currency: str = "Rp") -> str:
    """Account summary in reply to `total`."""
    status = "🟢 Monitoring active" if result.active else "⚪ Session stopped"
    return (
        "📈 *ACCOUNT SUMMARY*\n\n"
        f"💰 Start Balance: {format_amount(result.start_balance, currency)}\n"
        f"📊 Net Profit: *{format_amount(result.net, currency)}*\n"
        f"🏦 Current Balance: *{format_amount(result.current_balance, currency)}*\n\n"
        f"Status: {status}"
    )
