"""Human-readable labels for tool calls shown while a turn runs."""

import re

TOOL_LABELS = {
    "getOrders": "📦 Getting orders",
    "getProducts": "🛍️ Getting products",
    "getCustomers": "👥 Getting customers",
    "getCategories": "📁 Getting categories",
    "getProductReviews": "⭐ Getting product reviews",
    "createDataCards": "📊 Creating data cards",
    "createDataDisplay": "📈 Creating data display",
    "codeInterpreter": "🧮 Running analysis code",
}

_CAPITAL = re.compile(r"([A-Z])")


def format_tool_name(name: str) -> str:
    """Return the label for ``name``.

    Unknown camelCase names are split into words: ``getStoreOverview``
    becomes ``⚡ Get Store Overview``.
    """
    if name in TOOL_LABELS:
        return TOOL_LABELS[name]
    readable = _CAPITAL.sub(r" \1", name).strip()
    return f"⚡ {readable[:1].upper()}{readable[1:]}"
