from decimal import Decimal, InvalidOperation


def to_decimal(value, default=Decimal("0")) -> Decimal:
    """
    Lenient numeric coercion: anything non-numeric counts as `default`.
    """
    if value is None or isinstance(value, bool):
        return default
    try:
        result = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return default
    if not result.is_finite():
        return default
    return result


def format_currency(amount, show_decimals=False) -> str:
    """
    COP style: '$ 25.000' (dot thousands, comma decimals).
    """
    number = to_decimal(amount)
    places = 2 if show_decimals else 0
    text = f"{number:,.{places}f}"
    text = text.replace(",", "_").replace(".", ",").replace("_", ".")
    return f"$ {text}"
