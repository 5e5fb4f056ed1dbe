"""pt-BR formatting for messages shown in the review screens."""

MONTH_NAMES = [
    "Jan", "Fev", "Mar", "Abr", "Mai", "Jun",
    "Jul", "Ago", "Set", "Out", "Nov", "Dez",
]


def format_currency(cents: int) -> str:
    """Format cents as a pt-BR number: 123456 -> "1.234,56". Sign is kept."""
    sign = "-" if cents < 0 else ""
    reais, centavos = divmod(abs(cents), 100)
    grouped = f"{reais:,}".replace(",", ".")
    return f"{sign}{grouped},{centavos:02d}"


def format_brl(cents: int) -> str:
    return f"R$ {format_currency(cents)}"


def format_signed_brl(cents: int) -> str:
    """Drift display: +R$ 10,00 / -R$ 10,00."""
    prefix = "+" if cents >= 0 else "-"
    return f"{prefix}R$ {format_currency(abs(cents))}"


def format_month(yymm: str) -> str:
    """Format a YYMM billing month: "2508" -> "Ago 2025"."""
    if not yymm or yymm == "todos":
        return "Todos os meses"
    year = "20" + yymm[:2]
    month = int(yymm[2:4])
    return f"{MONTH_NAMES[month - 1]} {year}"
