"""
Tests for leaf stores, iteration scheduling and the engine entry points.
"""

import numpy as np
import pytest

from sqeval.compiler.binarize import binarize
from sqeval.core.config import default_config
from sqeval.core.errors import MissingLeafError, ShapeMismatchError
from sqeval.engine import evaluate_expr, evaluate_many
from sqeval.expr.nodes import Product, Sum, tensor
from sqeval.expr.tensor import BraKetSymmetry
from sqeval.runtime.leaves import LeafStore, split_spaces
from sqeval.runtime.schedule import evaluate_plans, iterate
from sqeval.vm.backend import complex_backend
from sqeval.vm.evaluator import Evaluator
from sqeval.vm.memory import make_cache_manager

NOCC, NVIRT = 2, 3


@pytest.fixture
def cfg():
    return default_config(NOCC, NVIRT)


@pytest.fixture
def rng():
    return np.random.default_rng(11)


class TestLeafStore:
    def test_split_spaces(self):
        assert split_spaces("oovv") == ("oo", "vv")
        with pytest.raises(ValueError):
            split_spaces("ovv")

    def test_register_and_lookup(self, cfg, rng):
        store = LeafStore(cfg)
        arr = rng.random((NOCC, NVIRT))
        store.register("f", "ov", arr)
        assert "f" in store
        assert ("f", "o", "v") in store
        assert store(tensor("f", "i_1", "a_1", config=cfg)) is arr

    def test_bra_ket_given_separately(self, cfg, rng):
        store = LeafStore(cfg)
        store.register("x", "o", rng.random((NOCC, NVIRT, NVIRT)), ket="vv")
        assert store.lookup("x", "o", "vv").shape == (NOCC, NVIRT, NVIRT)

    def test_shape_mismatch(self, cfg):
        with pytest.raises(ShapeMismatchError):
            LeafStore(cfg).register("f", "ov", np.zeros((NVIRT, NOCC)))

    def test_duplicate(self, cfg):
        store = LeafStore(cfg)
        store.register("f", "ov", np.zeros((NOCC, NVIRT)))
        with pytest.raises(ValueError):
            store.register("f", "ov", np.zeros((NOCC, NVIRT)))
        store.register("f", "ov", np.ones((NOCC, NVIRT)), overwrite=True)
        assert np.allclose(store.lookup("f", "o", "v"), 1.0)

    def test_blocked_slicing(self, cfg, rng):
        store = LeafStore(cfg)
        norb = NOCC + NVIRT
        full = rng.random((norb, norb))
        store.register_blocked("h", full)
        assert np.allclose(store(tensor("h", "i_1", "a_1", config=cfg)), full[:NOCC, NOCC:])
        assert np.allclose(store(tensor("h", "a_1", "a_2", config=cfg)), full[NOCC:, NOCC:])
        with pytest.raises(ShapeMismatchError):
            store.register_blocked("k", np.zeros((norb, NOCC)))

    def test_symmetric_swapped_block(self, cfg, rng):
        store = LeafStore(cfg)
        arr = rng.random((NOCC, NOCC, NVIRT, NVIRT))
        store.register("v", "oovv", arr)
        t = tensor("v", "a_1 a_2", "i_1 i_2", braket=BraKetSymmetry.SYMMETRIC, config=cfg)
        assert np.allclose(store(t), arr.transpose(2, 3, 0, 1))

    def test_conjugate_swapped_block(self, rng):
        cfg = default_config(NOCC, NVIRT, complex_valued=True)
        store = LeafStore(cfg)
        arr = rng.random((NOCC, NVIRT)) + 1j * rng.random((NOCC, NVIRT))
        store.register("f", "ov", arr)
        t = tensor("f", "a_1", "i_1", braket=BraKetSymmetry.CONJUGATE, config=cfg)
        assert np.allclose(store(t), arr.T.conj())

    def test_distinct_not_swapped(self, cfg):
        store = LeafStore(cfg)
        store.register("f", "ov", np.zeros((NOCC, NVIRT)))
        with pytest.raises(MissingLeafError):
            store(tensor("f", "a_1", "i_1", config=cfg))

    def test_from_mapping(self, cfg, rng):
        store = LeafStore.from_mapping(
            {("f", "ov"): rng.random((NOCC, NVIRT)), ("x", "o", "vv"): rng.random((NOCC, NVIRT, NVIRT))},
            cfg,
        )
        assert len(store) == 2
        with pytest.raises(ValueError):
            LeafStore.from_mapping({("f",): np.zeros(1)}, cfg)


class TestSchedule:
    def test_evaluate_plans(self, cfg, rng):
        store = LeafStore(cfg)
        F = rng.random((NOCC, NVIRT))
        store.register("f", "ov", F)
        f = tensor("f", "i_1", "a_1", config=cfg)
        plans = [binarize(f, cfg), binarize(Product((f,), 2.0), cfg)]
        ev = Evaluator(cache=make_cache_manager(plans), config=cfg)
        r1, r2 = evaluate_plans(plans, ev, store)
        assert np.allclose(r2, 2 * F)
        assert ev.stats.leaf_loads == 1
        with pytest.raises(ValueError):
            evaluate_plans(plans, ev, store, target_layouts=[None])

    def test_fixed_point(self, cfg, rng):
        C = rng.random((NOCC, NVIRT))
        store = LeafStore(cfg)
        store.register("c", "ov", C)
        store.register("t", "ov", np.zeros((NOCC, NVIRT)))
        t = tensor("t", "i_1", "a_1", config=cfg)
        c = tensor("c", "i_1", "a_1", config=cfg)
        plan = binarize(Sum((Product((t,), 0.5), c)), cfg)
        ev = Evaluator(cache=make_cache_manager([plan], volatile_labels=("t",)), config=cfg)

        def update(it, results):
            old = store.lookup("t", "o", "v")
            store.register("t", "ov", results[0], overwrite=True)
            return np.max(np.abs(results[0] - old)) < 1e-12

        n, results = iterate([plan], ev, store, update, max_iter=200)
        assert n < 200
        assert np.allclose(results[0], 2 * C)
        # c is loaded once and stays cached across passes
        assert ev.stats.leaf_loads == n + 1

    def test_max_iter_reached(self, cfg):
        store = LeafStore(cfg)
        store.register("c", "ov", np.ones((NOCC, NVIRT)))
        plan = binarize(tensor("c", "i_1", "a_1", config=cfg), cfg)
        ev = Evaluator(cache=make_cache_manager([plan]), config=cfg)
        n, results = iterate([plan], ev, store, lambda it, res: False, max_iter=3)
        assert n == 3
        assert np.allclose(results[0], 1.0)
        with pytest.raises(ValueError):
            iterate([plan], ev, store, lambda it, res: True, max_iter=0)

    def test_failure_clears_cache(self, cfg):
        store = LeafStore(cfg)
        store.register("c", "ov", np.ones((NOCC, NVIRT)))
        plan = binarize(tensor("c", "i_1", "a_1", config=cfg), cfg)
        ev = Evaluator(cache=make_cache_manager([plan]), config=cfg)

        def update(it, results):
            assert len(ev.cache) == 1
            raise RuntimeError("diverged")

        with pytest.raises(RuntimeError):
            iterate([plan], ev, store, update)
        assert len(ev.cache) == 0


class TestEngine:
    def test_evaluate_expr_with_mapping(self, cfg, rng):
        G = rng.random((NOCC, NOCC, NVIRT, NVIRT))
        T = rng.random((NOCC, NOCC, NVIRT, NVIRT))
        g = tensor("g", "i_1 i_2", "a_1 a_2", config=cfg)
        t = tensor("t", "i_1 i_2", "a_1 a_2", config=cfg)
        res = evaluate_expr(Sum((g, t)), {("g", "oovv"): G, ("t", "oovv"): T}, config=cfg)
        assert np.allclose(res.value, G + T)
        assert res.layout == res.plan.output_layout
        assert res.stats.sums == 1

    def test_evaluate_expr_callable(self, cfg):
        t = tensor("t", "i_1", "a_1", config=cfg)
        res = evaluate_expr(
            Product((t,), 1j), lambda _: np.ones((NOCC, NVIRT)), config=cfg, backend=complex_backend()
        )
        assert np.allclose(res.value, 1j)

    def test_bad_leaves(self, cfg):
        with pytest.raises(TypeError):
            evaluate_expr(tensor("t", "i_1", "a_1", config=cfg), 3, config=cfg)

    def test_evaluate_many_shares_work(self, cfg, rng):
        F = rng.random((NOCC, NVIRT))
        T = rng.random((NOCC, NOCC, NVIRT, NVIRT))
        f = tensor("f", "i_1", "a_1", config=cfg)
        t = tensor("t", "i_1 i_2", "a_1 a_2", config=cfg)
        f2 = tensor("f", "i_3", "a_3", config=cfg)
        t2 = tensor("t", "i_3 i_2", "a_3 a_2", config=cfg)
        out = evaluate_many(
            [Product((f, t)), Product((f2, t2), -1.0)],
            {("f", "ov"): F, ("t", "oovv"): T},
            config=cfg,
        )
        assert np.allclose(out[1].value, -out[0].value)
        assert out[1].stats.contractions == 1
        assert out[0].stats.contractions == 1
