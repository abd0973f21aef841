import uuid

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


STORE_TYPE_CHOICES = [
    ("restaurant", "Restaurante"),
    ("pharmacy", "Farmacia"),
    ("grocery", "Mercado"),
    ("clothing", "Tienda de Ropa"),
    ("farm", "Agro / Cultivos"),
    ("hotel", "Hotel / Turismo"),
    ("stationery", "Papelería"),
    ("bakery", "Panadería"),
    ("general", "Tienda General"),
]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Store",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("name", models.CharField(max_length=255)),
                ("slug", models.SlugField(blank=True, unique=True)),
                ("store_type", models.CharField(choices=STORE_TYPE_CHOICES, db_index=True, default="general", max_length=30)),
                ("description", models.TextField(blank=True)),
                ("address", models.CharField(blank=True, max_length=255)),
                ("phone", models.CharField(blank=True, max_length=20)),
                ("image_url", models.URLField(blank=True)),
                ("lat", models.FloatField(blank=True, null=True)),
                ("lng", models.FloatField(blank=True, null=True)),
                ("is_active", models.BooleanField(default=True)),
                (
                    "owner",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="store",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["name"],
                "indexes": [models.Index(fields=["store_type", "is_active"], name="store_type_active_idx")],
            },
        ),
    ]
