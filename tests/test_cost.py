"""
Tests for plan operation counts.
"""

import pytest

from sqeval.compiler.binarize import binarize
from sqeval.compiler.cost import node_ops, ops_count
from sqeval.core.config import default_config
from sqeval.expr.nodes import Product, Sum, tensor

NOCC, NVIRT = 3, 5


@pytest.fixture
def cfg():
    return default_config(NOCC, NVIRT)


class TestOpsCount:
    def test_product(self, cfg):
        t = tensor("t", "i_1", "a_1", config=cfg)
        g = tensor("g", "i_1 i_2", "a_1 a_2", config=cfg)
        plan = binarize(Product((t, g)), cfg)
        assert ops_count(plan, cfg.registry) == NOCC * NOCC * NVIRT * NVIRT

    def test_sum(self, cfg):
        t = tensor("t", "i_1", "a_1", config=cfg)
        f = tensor("f", "i_2", "a_2", config=cfg)
        g = tensor("g", "i_1 i_2", "a_1 a_2", config=cfg)
        plan = binarize(Sum((Product((t, f)), g)), cfg)
        assert ops_count(plan, cfg.registry) == NOCC * NOCC * NVIRT * NVIRT

    def test_leaf_is_free(self, cfg):
        plan = binarize(tensor("t", "i_1", "a_1", config=cfg), cfg)
        assert ops_count(plan, cfg.registry) == 0
        assert node_ops(plan, plan.root, cfg.registry) == 0

    def test_repeated_subtree_counted_once(self, cfg):
        f = tensor("f", "i_1", "a_1", config=cfg)
        t = tensor("t", "i_1 i_2", "a_1 a_2", config=cfg)
        f2 = tensor("f", "i_3", "a_3", config=cfg)
        t2 = tensor("t", "i_3 i_2", "a_3 a_2", config=cfg)
        plan = binarize(Sum((Product((f, t)), Product((f2, t2), 2.0))), cfg)
        assert ops_count(plan, cfg.registry) == NOCC * NOCC * NVIRT * NVIRT

    def test_subtree(self, cfg):
        x = tensor("x", "i_1", "a_1", config=cfg)
        y = tensor("y", "a_1", "i_2", config=cfg)
        z = tensor("z", "i_2", "a_2", config=cfg)
        plan = binarize(Product((x, y, z)), cfg)
        inner = plan.root_node.left
        assert ops_count(plan, cfg.registry, inner) == NOCC * NOCC * NVIRT
        assert ops_count(plan, cfg.registry) == 2 * NOCC * NOCC * NVIRT
