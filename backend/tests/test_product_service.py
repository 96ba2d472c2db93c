"""
Catalog service tests: product documents with variants, categories.
"""

import pytest

from kiosk.models import Product, ProductVariant
from kiosk.services import product_service
from kiosk.services.product_service import CatalogError
from kiosk.validation import ValidationError


class TestValidateProductPayload:

    def test_plain_product_requires_price_and_stock(self):
        with pytest.raises(ValidationError):
            product_service.validate_product_payload({"name": "Bar", "price": 5}, partial=False)

    def test_camel_case_aliases(self):
        patch, variants = product_service.validate_product_payload(
            {"name": "Bar", "price": 5, "stock": 3, "purchasePrice": 2.5, "relatedProductIds": ["x"]},
            partial=False,
        )
        assert patch["purchase_price"] == 2.5
        assert patch["related_product_ids"] == ["x"]
        assert variants is None

    def test_variants_zero_product_stock_and_cost(self):
        patch, variants = product_service.validate_product_payload(
            {
                "name": "Coffee",
                "price": 15,
                "stock": 99,
                "purchase_price": 7,
                "variants": [{"name": "Small", "price": 15, "stock": 4}],
            },
            partial=False,
        )
        assert patch["stock"] == 0
        assert patch["purchase_price"] == 0.0
        assert variants == [{"name": "Small", "price": 15.0, "stock": 4}]

    def test_unknown_field_rejected(self):
        with pytest.raises(ValidationError):
            product_service.validate_product_payload({"name": "Bar", "price": 5, "stock": 1, "sku": "X"}, partial=False)

    def test_negative_stock_rejected(self):
        with pytest.raises(ValidationError):
            product_service.validate_product_payload({"name": "Bar", "price": 5, "stock": -1}, partial=False)


class TestProducts:

    def test_create_with_variants(self, db_session, category):
        patch, variants = product_service.validate_product_payload(
            {
                "name": "Coffee",
                "price": 15,
                "category_id": category.id,
                "variants": [
                    {"name": "Small", "price": 15, "stock": 4, "purchase_price": 8},
                    {"name": "Large", "price": 25, "stock": 2},
                ],
            },
            partial=False,
        )
        created = product_service.create_product(patch=patch, variants=variants)

        data = created.to_dict()
        assert [v["name"] for v in data["variants"]] == ["Large", "Small"]
        assert data["category"]["title"] == "Snacks"
        assert data["stock"] == 0

    def test_update_diffs_variants(self, db_session, variant_product):
        large, small = variant_product.variants
        patch, variants = product_service.validate_product_payload(
            {
                "name": "Filter coffee",
                "variants": [
                    {"id": small.id, "name": "Small", "price": 16, "stock": 5},
                    {"name": "Medium", "price": 20, "stock": 1},
                ],
            },
            partial=True,
        )
        product_service.update_product(product_id=variant_product.id, patch=patch, variants=variants)

        names = sorted(v.name for v in db_session.query(ProductVariant).all())
        assert names == ["Medium", "Small"]
        assert db_session.get(ProductVariant, small.id).price == 16.0
        assert db_session.get(ProductVariant, large.id) is None
        assert db_session.get(Product, variant_product.id).name == "Filter coffee"

    def test_update_unknown_category(self, db_session, product):
        with pytest.raises(CatalogError):
            product_service.update_product(product_id=product.id, patch={"category_id": "nope"}, variants=None)

    def test_delete_removes_variants(self, db_session, variant_product):
        assert product_service.delete_product(variant_product.id) is True
        assert db_session.query(ProductVariant).count() == 0
        assert product_service.delete_product(variant_product.id) is False


class TestCategories:

    def test_delete_category_keeps_products(self, db_session, product, category):
        assert product_service.delete_category(category.id) is True
        assert db_session.get(Product, product.id).category_id is None

    def test_blank_title_rejected(self):
        with pytest.raises(ValidationError):
            product_service.validate_category_payload({"title": "  "}, partial=True)
