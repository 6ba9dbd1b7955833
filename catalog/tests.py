from django.test import TestCase

from account.models import User
from catalog.models import Category, Product
from catalog.services import get_product_snapshots


class CatalogModelTests(TestCase):
    def setUp(self):
        self.seller = User.objects.create_user(
            email="seller-sku@example.com",
            password="Pass123!",
            role="SELLER",
        )

    def test_category_str_returns_name(self):
        category = Category.objects.create(name="Gadgets")
        self.assertEqual(str(category), "Gadgets")

    def test_product_sku_is_auto_generated(self):
        product = Product.objects.create(
            name="Wireless Earbuds",
            description="Demo",
            seller=self.seller,
            price=7999,
        )
        self.assertIsNotNone(product.sku)
        self.assertRegex(product.sku, r"^WIRELESSEARB-")


class CatalogLookupTests(TestCase):
    def setUp(self):
        self.seller = User.objects.create_user(
            email="seller-lookup@example.com",
            password="Pass123!",
            role="SELLER",
        )
        self.category = Category.objects.create(name="Electronics")
        self.product = Product.objects.create(
            name="Speaker",
            seller=self.seller,
            category=self.category,
            price=4500,
        )
        self.uncategorized = Product.objects.create(
            name="Mystery Box",
            seller=self.seller,
            price=1000,
        )

    def test_snapshot_carries_price_seller_and_category(self):
        snapshot = get_product_snapshots([self.product.id])[str(self.product.id)]

        self.assertEqual(snapshot.product_id, str(self.product.id))
        self.assertEqual(snapshot.seller_id, str(self.seller.id))
        self.assertEqual(snapshot.category_id, str(self.category.id))
        self.assertEqual(snapshot.unit_price, 4500)
        self.assertEqual(snapshot.name, "Speaker")

    def test_snapshot_without_category(self):
        snapshot = get_product_snapshots([self.uncategorized.id])[str(self.uncategorized.id)]
        self.assertIsNone(snapshot.category_id)

    def test_bulk_lookup_skips_unknown_ids(self):
        snapshots = get_product_snapshots(
            [self.product.id, str(self.uncategorized.id), "7a0d4d1e-8b5b-4b0e-9a37-8b8e3e0f0000"]
        )
        self.assertEqual(set(snapshots), {str(self.product.id), str(self.uncategorized.id)})

    def test_bulk_lookup_ignores_external_ids(self):
        snapshots = get_product_snapshots(["ext-sku-42", None, self.product.id])
        self.assertEqual(list(snapshots), [str(self.product.id)])
