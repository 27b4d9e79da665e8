"""
test_package.py - Unit tests for the public namespace

Tests:
- products re-exports exactly its declared names
- submodules do not leak into the top-level namespace
"""

import notekit
import notekit.products as products


class TestPublicNamespace:
    """Tests for package-level exports."""

    def test_products_exports_are_declared(self):
        for name in products.__all__:
            assert hasattr(notekit, name), name

    def test_submodules_not_reexported(self):
        for module in ("guards", "autocall", "reverse_convertible", "capital_protected"):
            assert module not in products.__all__
            assert not hasattr(notekit, module)

    def test_helpers_reachable_from_top_level(self):
        assert notekit.knock_in_settlement is products.knock_in_settlement
        assert notekit.enforce_strike_for_continuity is products.enforce_strike_for_continuity
