"""
Store verticals: label, enabled dashboard features and terminology.

Dashboards read `features` to decide which tabs to show and `terminology`
to rename generic nouns (product, inventory, order) for the vertical.
"""

DEFAULT_STORE_TYPE = "general"

DEFAULT_TERMINOLOGY = {
    "product": "Producto",
    "inventory": "Inventario",
    "order": "Pedido",
}

STORE_TYPES = {
    "restaurant": {
        "label": "Restaurante",
        "features": ["products", "orders", "pos", "tables", "kitchen", "maintenance", "menu"],
        "terminology": {"product": "Plato", "inventory": "Ingredientes", "order": "Comanda"},
    },
    "pharmacy": {
        "label": "Farmacia",
        "features": ["products", "orders", "pos", "inventory", "prescriptions"],
        "terminology": {"product": "Medicamento", "inventory": "Stock"},
    },
    "grocery": {
        "label": "Mercado",
        "features": ["products", "orders", "pos", "inventory"],
        "terminology": {"product": "Producto", "inventory": "Stock"},
    },
    "clothing": {
        "label": "Tienda de Ropa",
        "features": ["products", "orders", "pos", "inventory", "collections"],
        "terminology": {"product": "Prenda", "inventory": "Existencias"},
    },
    "farm": {
        "label": "Agro / Cultivos",
        "features": ["products", "orders", "harvests", "inventory", "volume_orders"],
        "terminology": {"product": "Cosecha/Producto", "inventory": "Insumos/Semillas", "order": "Pedido Mayorista"},
    },
    "hotel": {
        "label": "Hotel / Turismo",
        "features": ["rooms", "bookings", "services", "calendar"],
        "terminology": {"product": "Habitación", "inventory": "Disponibilidad", "order": "Reserva"},
    },
    "stationery": {
        "label": "Papelería",
        "features": ["products", "orders", "pos", "inventory"],
        "terminology": {"product": "Artículo"},
    },
    "bakery": {
        "label": "Panadería",
        "features": ["products", "orders", "pos", "inventory"],
        "terminology": {"product": "Producto", "inventory": "Insumos"},
    },
    "general": {
        "label": "Tienda General",
        "features": ["products", "orders", "pos", "inventory"],
        "terminology": {},
    },
}

STORE_TYPE_CHOICES = [(key, cfg["label"]) for key, cfg in STORE_TYPES.items()]


def get_store_type_config(key):
    """
    Full config for a vertical with terminology defaults merged in.
    Unknown keys resolve to the general store.
    """
    resolved = key if key in STORE_TYPES else DEFAULT_STORE_TYPE
    cfg = STORE_TYPES[resolved]
    return {
        "key": resolved,
        "label": cfg["label"],
        "features": list(cfg["features"]),
        "terminology": {**DEFAULT_TERMINOLOGY, **cfg["terminology"]},
    }


def has_feature(key, feature) -> bool:
    return feature in get_store_type_config(key)["features"]
