import os
import tempfile
from decimal import Decimal
from io import StringIO

from django.core.files.uploadedfile import SimpleUploadedFile
from django.core.management import call_command
from django.core.management.base import CommandError
from django.test import TestCase
from rest_framework import status
from rest_framework.test import APIClient

from apps.accounts.models import User, Role
from apps.orders.models import Order
from apps.stores.models import Store
from apps.utils.exceptions import BusinessLogicException
from .models import Product
from .services import CSV_TEMPLATE, import_products, parse_product_csv, point_of_sale_checkout

HEADER = "name,description,price,category,stock,discount"


class ProductCSVParserTests(TestCase):

    def test_well_formed_rows(self):
        text = "\n".join([
            HEADER,
            "Arroz,Bolsa 1kg,4500,Granos,30,5",
            "Leche,,3200,,12,",
        ])
        rows, skipped = parse_product_csv(text)

        self.assertEqual(skipped, [])
        self.assertEqual(len(rows), 2)
        self.assertEqual(rows[0], {
            "name": "Arroz",
            "description": "Bolsa 1kg",
            "price": Decimal("4500"),
            "category": "Granos",
            "stock": 30,
            "discount": Decimal("5"),
        })
        # Defaults for blank optional columns
        self.assertEqual(rows[1]["description"], "")
        self.assertEqual(rows[1]["category"], "General")
        self.assertEqual(rows[1]["discount"], Decimal("0"))

    def test_header_and_blank_lines_are_skipped(self):
        rows, skipped = parse_product_csv(HEADER + "\n\n   \nPan,,500,,10,0\n")
        self.assertEqual([r["name"] for r in rows], ["Pan"])
        self.assertEqual(skipped, [])

    def test_rows_missing_required_columns_are_reported(self):
        text = "\n".join([HEADER, ",sin nombre,100,,1,0", "Sin precio,,,,5,0", "Sin stock,,100,,,0"])
        rows, skipped = parse_product_csv(text)
        self.assertEqual(rows, [])
        self.assertEqual(skipped, [2, 3, 4])

    def test_unparsable_numbers_become_zero(self):
        rows, _ = parse_product_csv(HEADER + "\nCafé,,gratis,,muchos,x")
        self.assertEqual(rows[0]["price"], Decimal("0"))
        self.assertEqual(rows[0]["stock"], 0)
        self.assertEqual(rows[0]["discount"], Decimal("0"))

    def test_numbers_with_trailing_text_become_zero(self):
        rows, _ = parse_product_csv(HEADER + "\nTé,,15000abc,,7und,5%")
        self.assertEqual(rows[0]["price"], Decimal("0"))
        self.assertEqual(rows[0]["stock"], 0)
        self.assertEqual(rows[0]["discount"], Decimal("0"))

    def test_windows_line_endings(self):
        rows, _ = parse_product_csv(HEADER + "\r\nHuevos,,12000,Lácteos,8,10\r\n")
        self.assertEqual(rows[0]["discount"], Decimal("10"))
        self.assertEqual(rows[0]["category"], "Lácteos")

    def test_quoted_comma_shifts_columns(self):
        """Quoting is not supported: a comma inside quotes splits the field."""
        rows, _ = parse_product_csv(HEADER + '\nQueso,"Fresco, campesino",9000,Lácteos,4,0')

        self.assertEqual(len(rows), 1)
        row = rows[0]
        self.assertEqual(row["description"], '"Fresco')
        # price column now holds the second half of the description
        self.assertEqual(row["price"], Decimal("0"))
        self.assertEqual(row["category"], "9000")
        self.assertEqual(row["stock"], 0)

    def test_template_parses(self):
        rows, skipped = parse_product_csv(CSV_TEMPLATE)
        self.assertEqual(len(rows), 1)
        self.assertEqual(rows[0]["price"], Decimal("15000"))


class ImportAndPOSTests(TestCase):

    def setUp(self):
        self.owner = User.objects.create_user("tienda@example.com", "x", role=Role.MERCHANT)
        self.store = Store.objects.create(owner=self.owner, name="Papelería Lápiz", store_type="stationery")

    def test_import_products_inserts_rows(self):
        result = import_products(self.store, HEADER + "\nCuaderno,,3500,,20,0\nBorrador,,800,,50,0\n,,,,,")
        self.assertEqual(result.created, 2)
        self.assertEqual(result.skipped_lines, [4])
        self.assertEqual(self.store.products.count(), 2)

    def test_import_with_no_valid_rows_fails(self):
        with self.assertRaises(BusinessLogicException):
            import_products(self.store, HEADER + "\n")

    def test_pos_checkout_records_delivered_sale_and_clamps_stock(self):
        pen = Product.objects.create(store=self.store, name="Esfero", price=Decimal("1500"), stock=10)
        glue = Product.objects.create(store=self.store, name="Pegante", price=Decimal("4000"), stock=1)

        order = point_of_sale_checkout(
            self.store,
            [{"product_id": pen.id, "quantity": 3}, {"product_id": glue.id, "quantity": 2}],
            guest_info={"guest_name": "Cliente mostrador"},
        )

        self.assertEqual(order.status, Order.Status.DELIVERED)
        self.assertIsNone(order.customer)
        self.assertTrue(order.is_pos)
        self.assertEqual(order.total, Decimal("12500"))
        self.assertEqual(order.guest_info["type"], "POS")
        self.assertEqual(order.items.count(), 2)

        pen.refresh_from_db()
        glue.refresh_from_db()
        self.assertEqual(pen.stock, 7)
        self.assertEqual(glue.stock, 0)

    def test_pos_rejects_foreign_product(self):
        other_owner = User.objects.create_user("otra@example.com", "x", role=Role.MERCHANT)
        other = Store.objects.create(owner=other_owner, name="Otra")
        product = Product.objects.create(store=other, name="Ajeno", price=Decimal("100"), stock=1)
        with self.assertRaises(BusinessLogicException):
            point_of_sale_checkout(self.store, [{"product_id": product.id, "quantity": 1}])
        self.assertFalse(Order.objects.exists())


class CatalogApiTests(TestCase):

    def setUp(self):
        self.client = APIClient()
        self.owner = User.objects.create_user("api@example.com", "x", role=Role.MERCHANT)
        self.store = Store.objects.create(owner=self.owner, name="Mercado Central", store_type="grocery")
        self.client.force_authenticate(self.owner)

    def test_csv_upload_endpoint(self):
        upload = SimpleUploadedFile(
            "inventario.csv",
            (HEADER + "\nTomate,,2500,Verduras,40,0\n").encode("utf-8"),
            content_type="text/csv",
        )
        response = self.client.post("/api/v1/catalog/my-products/import/", {"file": upload}, format="multipart")
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data, {"created": 1, "skipped_lines": []})
        self.assertTrue(Product.objects.filter(store=self.store, name="Tomate").exists())

    def test_template_download(self):
        response = self.client.get("/api/v1/catalog/my-products/import-template/")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.content.decode("utf-8").startswith(HEADER))

    def test_merchant_sees_only_own_products(self):
        Product.objects.create(store=self.store, name="Propio", price=1, stock=1)
        other_owner = User.objects.create_user("x@example.com", "x", role=Role.MERCHANT)
        other = Store.objects.create(owner=other_owner, name="Ajena")
        Product.objects.create(store=other, name="Ajeno", price=1, stock=1)

        response = self.client.get("/api/v1/catalog/my-products/")
        self.assertEqual([p["name"] for p in response.data], ["Propio"])

    def test_public_list_filters_by_store(self):
        Product.objects.create(store=self.store, name="Papa", price=1, stock=1)
        client = APIClient()
        response = client.get("/api/v1/catalog/products/", {"store": self.store.slug})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 1)


class ImportCommandTests(TestCase):

    def setUp(self):
        owner = User.objects.create_user("cmd@example.com", "x", role=Role.MERCHANT)
        self.store = Store.objects.create(owner=owner, name="Granja Verde", store_type="farm")

    def test_command_imports_file(self):
        with tempfile.NamedTemporaryFile("w", suffix=".csv", delete=False, encoding="utf-8") as f:
            f.write(HEADER + "\nMazorca,,900,Cosecha,100,0\n")
            path = f.name
        try:
            out = StringIO()
            call_command("import_products", self.store.slug, path, stdout=out)
        finally:
            os.unlink(path)

        self.assertIn("Successfully imported 1 products", out.getvalue())
        self.assertEqual(self.store.products.count(), 1)

    def test_command_unknown_store(self):
        with self.assertRaises(CommandError):
            call_command("import_products", "no-existe", __file__)
