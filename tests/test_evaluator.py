"""
Tests for plan evaluation.
"""

import math

import numpy as np
import pytest

from sqeval.compiler.binarize import binarize
from sqeval.core.config import default_config
from sqeval.core.errors import ComplexNarrowingError, MissingLeafError, ShapeMismatchError
from sqeval.expr.nodes import Constant, Product, Sum, tensor
from sqeval.expr.tensor import BraKetSymmetry
from sqeval.ir.schema import Layout, PermutationPolicy
from sqeval.runtime.leaves import LeafStore
from sqeval.vm.backend import complex_backend
from sqeval.vm.evaluator import Evaluator
from sqeval.vm.memory import make_cache_manager

NOCC, NVIRT = 10, 20


@pytest.fixture
def cfg():
    return default_config(NOCC, NVIRT)


@pytest.fixture
def data():
    rng = np.random.default_rng(2024)
    return {
        "T": rng.standard_normal((NOCC, NOCC, NVIRT, NVIRT)),
        "G": rng.standard_normal((NOCC, NOCC, NVIRT, NVIRT)),
        "F": rng.standard_normal((NOCC, NVIRT)),
    }


@pytest.fixture
def store(cfg, data):
    s = LeafStore(cfg)
    s.register("t", "oovv", data["T"])
    s.register("g", "oovv", data["G"])
    s.register("f", "ov", data["F"])
    return s


def rel_err(a, b):
    return np.linalg.norm(a - b) / np.linalg.norm(b)


class TestSums:
    def test_g_plus_t(self, cfg, store, data):
        g = tensor("g", "i_1 i_2", "a_1 a_2", config=cfg)
        t = tensor("t", "i_1 i_2", "a_1 a_2", config=cfg)
        res = Evaluator(config=cfg).evaluate(binarize(Sum((g, t)), cfg), store)
        assert res.shape == (NOCC, NOCC, NVIRT, NVIRT)
        assert rel_err(res, data["G"] + data["T"]) < 1e-10

    def test_sum_by_permutation(self, cfg, store, data):
        g = tensor("g", "i_1 i_2", "a_1 a_2", config=cfg)
        t = tensor("t", "i_1 i_2", "a_2 a_1", config=cfg)
        res = Evaluator(config=cfg).evaluate(binarize(Sum((g, t)), cfg), store)
        assert np.allclose(res, data["G"] + data["T"].transpose(0, 1, 3, 2))

    def test_weighted_sum(self, cfg, store, data):
        g = tensor("g", "i_1 i_2", "a_1 a_2", config=cfg)
        t = tensor("t", "i_1 i_2", "a_1 a_2", config=cfg)
        expr = Sum((Product((g,), 2.0), Product((t,), -0.5)))
        res = Evaluator(config=cfg).evaluate(binarize(expr, cfg), store)
        assert np.allclose(res, 2.0 * data["G"] - 0.5 * data["T"])


class TestProducts:
    def test_matches_einsum(self, cfg, store, data):
        f = tensor("f", "i_1", "a_1", config=cfg)
        t = tensor("t", "i_1 i_2", "a_1 a_2", config=cfg)
        res = Evaluator(config=cfg).evaluate(binarize(Product((f, t), 0.5), cfg), store)
        assert np.allclose(res, 0.5 * np.einsum("ia,ijab->jb", data["F"], data["T"]))

    def test_three_factors(self, cfg, store, data):
        f1 = tensor("f", "i_1", "a_1", config=cfg)
        g = tensor("g", "i_1 i_2", "a_1 a_2", config=cfg)
        f2 = tensor("f", "i_2", "a_2", config=cfg)
        res = Evaluator(config=cfg).evaluate(binarize(Product((f1, g, f2)), cfg), store)
        assert res.shape == ()
        assert np.isclose(res, np.einsum("ia,ijab,jb->", data["F"], data["G"], data["F"]))

    def test_constant_term(self, cfg):
        res = Evaluator(config=cfg).evaluate(binarize(Product((Constant(3),), 2), cfg), LeafStore(cfg))
        assert np.isclose(res, 6.0)

    def test_target_layout(self, cfg, store, data):
        f = tensor("f", "i_1", "a_1", config=cfg)
        t = tensor("t", "i_1 i_2", "a_1 a_2", config=cfg)
        plan = binarize(Product((f, t)), cfg)
        target = Layout(plan.layout.ket, plan.layout.bra)
        res = Evaluator(config=cfg).evaluate(plan, store, target)
        assert np.allclose(res, np.einsum("ia,ijab->bj", data["F"], data["T"]))

    def test_result_is_writable(self, cfg, store):
        t = tensor("t", "i_1 i_2", "a_1 a_2", config=cfg)
        res = Evaluator(config=cfg).evaluate(binarize(t, cfg), store)
        res[0, 0, 0, 0] = 1.0


class TestCaching:
    def test_at_most_once(self, cfg, store, data):
        g = tensor("g", "i_1 i_2", "a_1 a_2", config=cfg)
        t = tensor("t", "i_1 i_2", "a_1 a_2", config=cfg)
        gt = Product((g, t))
        g2 = tensor("g", "i_3 i_4", "a_3 a_4", config=cfg)
        t2 = tensor("t", "i_3 i_4", "a_3 a_4", config=cfg)
        expr = Sum((gt, Product((g2, t2))))
        ev = Evaluator(config=cfg)
        res = ev.evaluate(binarize(expr, cfg), store)
        assert ev.stats.leaf_loads == 2
        assert ev.stats.contractions == 1
        assert ev.stats.hits == 1
        assert np.isclose(res, 2 * np.sum(data["G"] * data["T"]))

    def test_shared_across_plans(self, cfg, store):
        f = tensor("f", "i_1", "a_1", config=cfg)
        t = tensor("t", "i_1 i_2", "a_1 a_2", config=cfg)
        p1 = binarize(Product((f, t)), cfg)
        p2 = binarize(Product((f, t), 3.0), cfg)
        ev = Evaluator(cache=make_cache_manager([p1, p2]), config=cfg)
        r1 = ev.evaluate(p1, store)
        r2 = ev.evaluate(p2, store)
        assert ev.stats.contractions == 1
        assert np.allclose(r2, 3.0 * r1)

    def test_reevaluate_after_reset(self, cfg, store):
        f = tensor("f", "i_1", "a_1", config=cfg)
        t = tensor("t", "i_1 i_2", "a_1 a_2", config=cfg)
        plan = binarize(Product((f, t)), cfg)
        ev = Evaluator(cache=make_cache_manager([plan]), config=cfg)
        ev.evaluate(plan, store)
        ev.cache.reset_decaying()
        ev.evaluate(plan, store)
        assert ev.stats.leaf_loads == 1
        assert ev.stats.contractions == 2


class TestErrors:
    def test_missing_leaf(self, cfg, store):
        x = tensor("x", "i_1 i_2", "a_1 a_2", config=cfg)
        with pytest.raises(MissingLeafError):
            Evaluator(config=cfg).evaluate(binarize(x, cfg), store)

    def test_shape_mismatch(self, cfg):
        t = tensor("t", "i_1", "a_1", config=cfg)
        with pytest.raises(ShapeMismatchError):
            Evaluator(config=cfg).evaluate(binarize(t, cfg), lambda _: np.zeros((NOCC, NOCC)))

    def test_complex_prefactor_on_real_backend(self, cfg, store):
        t = tensor("t", "i_1 i_2", "a_1 a_2", config=cfg)
        g = tensor("g", "i_1 i_2", "a_1 a_2", config=cfg)
        plan = binarize(Sum((t, Product((g,), 1j))), cfg)
        with pytest.raises(ComplexNarrowingError):
            Evaluator(config=cfg).evaluate(plan, store)

    def test_complex_leaf_on_real_backend(self, cfg):
        t = tensor("t", "i_1", "a_1", config=cfg)
        yielder = lambda _: np.full((NOCC, NVIRT), 1 + 1j)
        with pytest.raises(ComplexNarrowingError):
            Evaluator(config=cfg).evaluate(binarize(t, cfg), yielder)

    def test_complex_backend_keeps_imaginary(self, cfg, store, data):
        t = tensor("t", "i_1 i_2", "a_1 a_2", config=cfg)
        plan = binarize(Product((t,), 2j), cfg)
        res = Evaluator(backend=complex_backend(), config=cfg).evaluate(plan, store)
        assert np.allclose(res, 2j * data["T"])


class TestSymmetrization:
    def test_antisymmetrizer_operator(self, cfg, store, data):
        a = tensor("A", "i_1 i_2", "a_1 a_2", config=cfg)
        t = tensor("t", "i_1 i_2", "a_1 a_2", config=cfg)
        res = Evaluator(config=cfg).evaluate(binarize(Product((a, t)), cfg), store)
        T = data["T"]
        expected = (
            T
            - T.transpose(0, 1, 3, 2)
            + T.transpose(1, 0, 3, 2)
            - T.transpose(1, 0, 2, 3)
        )
        assert np.allclose(res, expected)

    def test_idempotent_up_to_scale(self, cfg, store):
        a = tensor("A", "i_1 i_2", "a_1 a_2", config=cfg)
        t = tensor("t", "i_1 i_2", "a_1 a_2", config=cfg)
        once = Evaluator(config=cfg).evaluate(binarize(Product((a, t)), cfg), store)
        twice = Evaluator(config=cfg).evaluate_antisymmetric(binarize(t, cfg), lambda _: once)
        assert np.allclose(twice, math.factorial(2) ** 2 * once)

    def test_evaluate_sorted(self, cfg, store, data):
        t = tensor("t", "i_2 i_1", "a_1 a_2", config=cfg)
        res = Evaluator(config=cfg).evaluate_sorted(binarize(t, cfg), store)
        assert np.allclose(res, data["T"].transpose(1, 0, 2, 3))

    def test_evaluate_symmetric_joint(self, cfg, store, data):
        t = tensor("t", "i_1 i_2", "a_1 a_2", config=cfg)
        res = Evaluator(config=cfg).evaluate_symmetric(binarize(t, cfg), store, PermutationPolicy.JOINT)
        T = data["T"]
        assert np.allclose(res, T + T.transpose(1, 0, 3, 2))


class TestBraKetLeaves:
    def test_conjugate_leaf_served_by_transpose(self, cfg, data):
        s = LeafStore(cfg)
        s.register("f", "ov", data["F"])
        f_vo = tensor("f", "a_1", "i_1", braket=BraKetSymmetry.CONJUGATE, config=cfg)
        plan = binarize(f_vo, cfg)
        res = Evaluator(config=cfg).evaluate(plan, s, Layout(f_vo.bra, f_vo.ket))
        assert np.allclose(res, data["F"].T)
