import pytest

from keepr.grocery import GroceryList
from keepr.record import RecordValidationError


@pytest.fixture
def basket(groceries):
    groceries.add_category("Dairy")
    groceries.add_category("Produce")
    groceries.add_product("milk", 2, "dairy")
    groceries.add_product("Apples", 6, "Produce")
    groceries.add_product("bread")
    groceries.add_product("yogurt", category="Dairy")
    return groceries


def _named(groceries, name):
    return groceries.products.search(name, "name")[0]


@pytest.mark.unit
class TestProducts:
    def test_name_required(self, groceries):
        with pytest.raises(RecordValidationError):
            groceries.add_product("  ")
        assert len(groceries.products) == 0

    def test_quantity_range(self, groceries):
        with pytest.raises(RecordValidationError):
            groceries.add_product("eggs", 0)

    def test_known_category_spelling_is_used(self, basket):
        assert _named(basket, "milk").category == "Dairy"

    def test_toggle_twice(self, basket):
        bread = _named(basket, "bread")
        assert basket.toggle_completed(bread.id).is_completed
        restored = basket.toggle_completed(bread.id)
        assert restored.model_dump(exclude={"modified"}) == bread.model_dump(exclude={"modified"})

    def test_open_items_first(self, basket):
        basket.toggle_completed(_named(basket, "Apples").id)
        assert [p.name for p in basket.filtered_products()] == ["bread", "milk", "yogurt", "Apples"]
        assert basket.progress() == (1, 4)

    def test_search_and_category_filter(self, basket):
        basket.category = "dairy"
        assert [p.name for p in basket.filtered_products()] == ["milk", "yogurt"]
        basket.search_text = "YOG"
        assert [p.name for p in basket.filtered_products()] == ["yogurt"]

    def test_delete_completed(self, basket):
        basket.toggle_completed(_named(basket, "milk").id)
        basket.toggle_completed(_named(basket, "bread").id)
        assert basket.delete_completed() == 2
        assert [p.name for p in basket.products] == ["Apples", "yogurt"]

    def test_clear_all(self, basket):
        assert basket.clear_all()
        assert basket.progress() == (0, 0)

    def test_update_product(self, basket):
        bread = _named(basket, "bread")
        updated = basket.update_product(bread.id, quantity=3, category="produce")
        assert updated.quantity == 3
        assert updated.category == "Produce"


@pytest.mark.unit
class TestCategories:
    def test_duplicate_names_are_refused(self, basket):
        with pytest.raises(RecordValidationError):
            basket.add_category(" dairy ")
        assert len(basket.categories) == 2

    def test_sorted_categories(self, basket):
        basket.add_category("bakery")
        assert [c.name for c in basket.sorted_categories()] == ["bakery", "Dairy", "Produce"]

    def test_rename_cascades_to_products(self, basket):
        dairy = basket.category_named("dairy")
        basket.rename_category(dairy.id, "Milk & cheese")
        assert _named(basket, "milk").category == "Milk & cheese"
        assert _named(basket, "yogurt").category == "Milk & cheese"

    def test_rename_to_existing_name(self, basket):
        dairy = basket.category_named("dairy")
        with pytest.raises(RecordValidationError):
            basket.rename_category(dairy.id, "PRODUCE")

    def test_delete_moves_products(self, basket):
        dairy = basket.category_named("dairy")
        assert basket.delete_category(dairy.id, move_to="produce")
        assert _named(basket, "milk").category == "Produce"
        assert basket.category_named("dairy") is None

    def test_delete_without_target_uncategorizes(self, basket):
        produce = basket.category_named("produce")
        assert basket.delete_category(produce.id)
        assert _named(basket, "Apples").category is None

    def test_delete_onto_itself_uncategorizes(self, basket):
        dairy = basket.category_named("dairy")
        basket.delete_category(dairy.id, move_to="Dairy")
        assert _named(basket, "milk").category is None

    def test_products_typed_before_the_category_follow_it(self, groceries):
        groceries.add_product("milk", category="dairy")
        dairy = groceries.add_category("Dairy")
        groceries.rename_category(dairy.id, "Milk stuff")
        assert _named(groceries, "milk").category == "Milk stuff"
        groceries.category = "milk stuff"
        assert [p.name for p in groceries.filtered_products()] == ["milk"]

    def test_delete_moves_products_in_any_case(self, groceries):
        groceries.add_product("cheese", category="DAIRY")
        groceries.add_category("Deli")
        dairy = groceries.add_category("Dairy")
        assert groceries.delete_category(dairy.id, move_to="deli")
        assert _named(groceries, "cheese").category == "Deli"

    def test_category_counts(self, basket):
        assert basket.category_counts() == {"Dairy": 2, "Produce": 1, "Uncategorized": 1}


@pytest.mark.unit
def test_grocery_survives_reload(test_env, any_backend):
    first = GroceryList(test_env, any_backend)
    first.add_category("Dairy")
    first.add_product("milk", 2, "Dairy")
    again = GroceryList(test_env, any_backend)
    assert again.products.all() == first.products.all()
    assert [c.name for c in again.categories] == ["Dairy"]


@pytest.fixture
def shaky(test_env, failing_backend):
    groceries = GroceryList(test_env, failing_backend)
    groceries.add_category("Dairy")
    groceries.add_category("Produce")
    groceries.add_product("milk", 2, "Dairy")
    groceries.add_product("Apples", 6, "Produce")
    return groceries


@pytest.mark.unit
class TestFailedCategorySaves:
    def test_delete_with_products_unsaved(self, shaky, failing_backend):
        failing_backend.fail_keys = {"products"}
        dairy = shaky.category_named("Dairy")
        assert shaky.delete_category(dairy.id) is False
        assert shaky.category_named("Dairy") is not None
        assert _named(shaky, "milk").category == "Dairy"

    def test_rename_with_categories_unsaved(self, shaky, failing_backend):
        failing_backend.fail_keys = {"grocery_categories"}
        dairy = shaky.category_named("Dairy")
        assert shaky.rename_category(dairy.id, "Milk stuff") is None
        assert [c.name for c in shaky.sorted_categories()] == ["Dairy", "Produce"]
        assert _named(shaky, "milk").category == "Dairy"
        reloaded = GroceryList(None, failing_backend)
        assert _named(reloaded, "milk").category == "Dairy"

    def test_delete_with_categories_unsaved_restores_products(self, shaky, failing_backend):
        failing_backend.fail_keys = {"grocery_categories"}
        dairy = shaky.category_named("Dairy")
        assert shaky.delete_category(dairy.id, move_to="Produce") is False
        assert _named(shaky, "milk").category == "Dairy"
        assert _named(shaky, "Apples").category == "Produce"
