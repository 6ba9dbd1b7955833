from django.db import models
import uuid
from django.utils.text import slugify


class Category(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=255)
    parent = models.ForeignKey(
        'self', on_delete=models.SET_NULL, null=True, blank=True, related_name='subcategories'
    )
    description = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name_plural = "Categories"

    def __str__(self):
        return self.name


class Product(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    seller = models.ForeignKey(
        "account.User",
        on_delete=models.CASCADE,
        related_name="products",
        limit_choices_to={"role": "SELLER"},
    )
    sku = models.CharField(max_length=100, unique=True, blank=True, null=True)
    price = models.PositiveBigIntegerField(help_text="Unit price in minor currency units (cents)")
    category = models.ForeignKey(Category, on_delete=models.SET_NULL, null=True, blank=True, related_name="products")
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [
            models.Index(fields=["seller", "is_active"], name="product_seller_active_idx"),
        ]

    def save(self, *args, **kwargs):
        if not self.sku:
            base = (slugify(self.name) or "product").upper().replace("-", "")[:12]
            self.sku = f"{base}-{uuid.uuid4().hex[:6].upper()}"
        super().save(*args, **kwargs)

    def __str__(self):
        return self.name
