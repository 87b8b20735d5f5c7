# Copyright 2024 Google LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     https://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Differentiation driver for the NLP callbacks.

A Tape records the objective and the constraint residuals once and serves
every derivative the NLP solver asks for afterwards:

    objective(x)                       f(x)
    gradient(x)                        grad f(x)
    constraints(x)                     g(x)
    jacobian_values(x)                 nonzeros of dg/dx
    hessian_values(x, sigma, lam)      lower triangle of
                                       d2/dx2 [sigma f(x) + lam' g(x)]

Recording traces each program to a jaxpr and compiles it ahead of time
for the fixed input shapes. The sparsity of the Jacobian and of the
Lagrangian Hessian is discovered from unit-vector directional
derivatives at random probe points in the interior of the unit box, then
compressed with a column coloring so that a value request costs one
directional derivative per color instead of one per column.
"""

from typing import Callable, Dict, Optional, Tuple

from absl import logging
import jax
import jax.numpy as jnp
import numpy as np
from jax import Array

from obcajax.autodiff.coloring import greedy_column_coloring, seed_matrix
from obcajax.core.types import ConstraintFn, ObjectiveFn, Structure


def _split_keys(keys, n: int) -> Structure:
    """Sorted unique (rows, cols) from linear keys row * n + col."""
    merged = np.unique(np.concatenate(keys)) if keys else np.zeros((0,), np.int64)
    return merged // n, merged % n


class Tape:
    """Recorded objective/constraint programs with sparse derivatives.

    Args:
        objective_fn: Scalar function of the (n,) decision vector.
        constraints_fn: Function of the (n,) decision vector returning (m,).
        n: Number of decision variables.
        m: Number of constraint rows.
        chunk_size: Derivative columns evaluated together while discovering
            sparsity.

    Example:
        >>> tape = Tape(objective, constraints, n, m)
        >>> tape.generate()
        >>> rows, cols = tape.jacobian_structure()
        >>> values = tape.jacobian_values(x)
    """

    def __init__(
        self,
        objective_fn: ObjectiveFn,
        constraints_fn: ConstraintFn,
        n: int,
        m: int,
        chunk_size: int = 128,
    ):
        self.objective_fn = objective_fn
        self.constraints_fn = constraints_fn
        self.n = int(n)
        self.m = int(m)
        self.chunk_size = int(chunk_size)
        self._compiled: Dict[str, Callable] = {}
        self._jac_structure: Optional[Structure] = None
        self._hess_structure: Optional[Structure] = None
        self._jac_colors = 0
        self._hess_colors = 0

    @property
    def generated(self) -> bool:
        return bool(self._compiled)

    @property
    def nnz_jac(self) -> int:
        self._check_generated()
        return len(self._jac_structure[0])

    @property
    def nnz_hess(self) -> int:
        self._check_generated()
        return len(self._hess_structure[0])

    @property
    def num_colors(self) -> Tuple[int, int]:
        """(Jacobian colors, Hessian colors)."""
        return self._jac_colors, self._hess_colors

    def lagrangian(self, x: Array, obj_factor: Array, lagrange: Array) -> Array:
        return obj_factor * self.objective_fn(x) + jnp.dot(lagrange, self.constraints_fn(x))

    def generate(self, num_probes: int = 3, seed: int = 0) -> None:
        """Record, discover sparsity and compile. A second call does nothing.

        Args:
            num_probes: Number of random points whose nonzeros are merged.
            seed: Seed of the probe points and probe multipliers.
        """
        if self.generated:
            logging.debug('Tape already generated, skipping')
            return

        x_spec = jax.ShapeDtypeStruct((self.n,), jnp.float64)
        scalar_spec = jax.ShapeDtypeStruct((), jnp.float64)
        lam_spec = jax.ShapeDtypeStruct((self.m,), jnp.float64)

        for name, fn, specs in (
            ('objective', self.objective_fn, (x_spec,)),
            ('constraints', self.constraints_fn, (x_spec,)),
            ('lagrangian', self.lagrangian, (x_spec, scalar_spec, lam_spec)),
        ):
            jaxpr = jax.make_jaxpr(fn)(*specs)
            logging.info('Recorded %s tape: %d equations', name, len(jaxpr.jaxpr.eqns))

        self._discover_sparsity(num_probes, seed)

        jac_rows, jac_cols = self._jac_structure
        jac_colors, self._jac_colors = greedy_column_coloring(
            jac_rows, jac_cols, (self.m, self.n))
        jac_seeds = jnp.asarray(seed_matrix(jac_colors, self._jac_colors))
        jac_pick = (jnp.asarray(jac_colors[jac_cols]), jnp.asarray(jac_rows))

        hess_rows, hess_cols = self._hess_structure
        # full symmetric pattern with the diagonal for direct recovery
        sym_rows = np.concatenate([hess_rows, hess_cols, np.arange(self.n)])
        sym_cols = np.concatenate([hess_cols, hess_rows, np.arange(self.n)])
        hess_colors, self._hess_colors = greedy_column_coloring(
            sym_rows, sym_cols, (self.n, self.n))
        hess_seeds = jnp.asarray(seed_matrix(hess_colors, self._hess_colors))
        hess_pick = (jnp.asarray(hess_colors[hess_cols]), jnp.asarray(hess_rows))

        constraints_fn = self.constraints_fn
        lagrangian_grad = jax.grad(self.lagrangian)

        def jacobian_values(x):
            products = jax.vmap(
                lambda s: jax.jvp(constraints_fn, (x,), (s,))[1])(jac_seeds)
            return products[jac_pick]

        def hessian_values(x, obj_factor, lagrange):
            grad_x = lambda z: lagrangian_grad(z, obj_factor, lagrange)
            products = jax.vmap(lambda s: jax.jvp(grad_x, (x,), (s,))[1])(hess_seeds)
            return products[hess_pick]

        programs = {
            'objective': (self.objective_fn, (x_spec,)),
            'gradient': (jax.grad(self.objective_fn), (x_spec,)),
            'constraints': (constraints_fn, (x_spec,)),
            'jacobian': (jacobian_values, (x_spec,)),
            'hessian': (hessian_values, (x_spec, scalar_spec, lam_spec)),
        }
        for name, (fn, specs) in programs.items():
            self._compiled[name] = jax.jit(fn).lower(*specs).compile()

        logging.info(
            'Generated tapes: n=%d, m=%d, nnz_jac=%d (%d colors), '
            'nnz_hess=%d (%d colors)',
            self.n, self.m, self.nnz_jac, self._jac_colors,
            self.nnz_hess, self._hess_colors)

    def _discover_sparsity(self, num_probes: int, seed: int) -> None:
        """Union of nonzeros of derivative columns at random points.

        Columns are produced chunk_size at a time by forward-mode products,
        so no dense (m, n) or (n, n) matrix is ever formed.
        """
        key = jax.random.PRNGKey(seed)
        key_x, key_lam = jax.random.split(key)
        probes = jax.random.uniform(
            key_x, (num_probes, self.n), jnp.float64, minval=0.1, maxval=0.9)
        multipliers = jax.random.uniform(
            key_lam, (num_probes, self.m), jnp.float64, minval=0.1, maxval=0.9)

        constraints_fn = self.constraints_fn
        lagrangian_grad = jax.grad(self.lagrangian)

        @jax.jit
        def jacobian_columns(x, basis):
            return jax.vmap(lambda e: jax.jvp(constraints_fn, (x,), (e,))[1])(basis)

        @jax.jit
        def hessian_columns(x, lam, basis):
            grad_x = lambda z: lagrangian_grad(z, 1.0, lam)
            return jax.vmap(lambda e: jax.jvp(grad_x, (x,), (e,))[1])(basis)

        chunk = max(1, min(self.chunk_size, self.n))
        jac_keys, hess_keys = [], []
        for start in range(0, self.n, chunk):
            cols = np.arange(start, min(start + chunk, self.n))
            # padding rows stay zero and contribute no nonzeros
            basis = np.zeros((chunk, self.n))
            basis[np.arange(len(cols)), cols] = 1.0
            for probe, lam in zip(probes, multipliers):
                jac = np.asarray(jacobian_columns(probe, basis))[:len(cols)]
                c, r = np.nonzero(jac)
                jac_keys.append(r.astype(np.int64) * self.n + cols[c])

                hess = np.asarray(hessian_columns(probe, lam, basis))[:len(cols)]
                c, r = np.nonzero(hess)
                c = cols[c]
                hess_keys.append(np.maximum(r, c).astype(np.int64) * self.n
                                 + np.minimum(r, c))

        self._jac_structure = _split_keys(jac_keys, self.n)
        self._hess_structure = _split_keys(hess_keys, self.n)

    def _check_generated(self):
        if not self.generated:
            raise RuntimeError('Tape has not been generated; call generate() first')

    def _run(self, name: str, *args) -> np.ndarray:
        self._check_generated()
        args = [np.asarray(a, dtype=np.float64) for a in args]
        return np.asarray(self._compiled[name](*args))

    def objective(self, x) -> float:
        return float(self._run('objective', x))

    def gradient(self, x) -> np.ndarray:
        return self._run('gradient', x)

    def constraints(self, x) -> np.ndarray:
        return self._run('constraints', x)

    def jacobian_structure(self) -> Structure:
        """(rows, cols) of the Jacobian nonzeros, in row-major order."""
        self._check_generated()
        return self._jac_structure

    def jacobian_values(self, x) -> np.ndarray:
        """Jacobian nonzeros at x, aligned with jacobian_structure()."""
        return self._run('jacobian', x)

    def hessian_structure(self) -> Structure:
        """(rows, cols) with rows >= cols of the Lagrangian Hessian."""
        self._check_generated()
        return self._hess_structure

    def hessian_values(self, x, obj_factor: float, lagrange) -> np.ndarray:
        """Lower triangle nonzeros of the Lagrangian Hessian at x.

        Args:
            x: Decision vector of shape (n,).
            obj_factor: Scaling sigma of the objective.
            lagrange: Constraint multipliers of shape (m,).

        Returns:
            Values aligned with hessian_structure().
        """
        return self._run('hessian', x, obj_factor, lagrange)
