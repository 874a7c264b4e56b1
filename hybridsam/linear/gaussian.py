"""
hybridsam/linear/gaussian.py

Gaussian factors in square-root (Jacobian) form and their elimination.

A JacobianFactor on keys (k1, ..., kn) encodes the whitened error

    e(x) = 0.5 * || A_1 x_1 + ... + A_n x_n - b ||^2

Eliminating frontal keys stacks the factors into [A_frontal | A_sep | b],
triangularizes it with a QR decomposition and reads off:
- a GaussianConditional  R x_f + S x_s = d
- a remaining JacobianFactor on the separator
- a normalization scalar exp(-e) when no separator remains
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

import numpy as np
from scipy.linalg import qr, solve_triangular

from hybridsam.core.errors import SingularElimination
from hybridsam.core.keys import Key, key_name
from hybridsam.core.kinds import ConditionalKind, FactorKind

_logger = logging.getLogger(__name__)

ArrayLike = Union[float, Sequence[float], np.ndarray]


def _as_matrix(a: ArrayLike) -> np.ndarray:
    m = np.asarray(a, dtype=np.float64)
    if m.ndim == 0:
        return m.reshape(1, 1)
    if m.ndim == 1:
        return m.reshape(-1, 1)
    if m.ndim != 2:
        raise ValueError(f"Jacobian block must be at most 2-D, got shape {m.shape}")
    return m


class JacobianFactor:
    """
    Linear Gaussian factor on continuous keys.

    Attributes:
        keys: Continuous keys, in the order given at construction
        dims: Dimension of each key
        b: Right-hand side, shape (rows,)
    """
    kind = FactorKind.CONTINUOUS
    discrete_keys: Tuple = ()

    def __init__(
        self,
        terms: Sequence[Tuple[Key, ArrayLike]],
        b: ArrayLike,
        sigmas: Optional[ArrayLike] = None,
    ):
        """
        Args:
            terms: (key, A) pairs; a scalar or 1-D A is a single column
            b: Right-hand side
            sigmas: Optional standard deviations; rows are whitened by them
        """
        b_vec = np.atleast_1d(np.asarray(b, dtype=np.float64)).ravel()
        blocks: Dict[Key, np.ndarray] = {}
        for key, a in terms:
            if key in blocks:
                raise ValueError(f"Key {key_name(key)} appears twice in factor")
            m = _as_matrix(a)
            if m.shape[0] != b_vec.shape[0]:
                raise ValueError(
                    f"Block for {key_name(key)} has {m.shape[0]} rows, expected {b_vec.shape[0]}"
                )
            blocks[key] = m
        if sigmas is not None:
            s = np.broadcast_to(np.asarray(sigmas, dtype=np.float64), b_vec.shape)
            if np.any(s <= 0.0):
                raise ValueError("Sigmas must be positive")
            b_vec = b_vec / s
            blocks = {k: m / s[:, None] for k, m in blocks.items()}
        self._blocks = blocks
        self.b = b_vec

    @property
    def keys(self) -> Tuple[Key, ...]:
        return tuple(self._blocks)

    @property
    def continuous_keys(self) -> Tuple[Key, ...]:
        return self.keys

    @property
    def dims(self) -> Dict[Key, int]:
        return {k: m.shape[1] for k, m in self._blocks.items()}

    @property
    def rows(self) -> int:
        return self.b.shape[0]

    def A(self, key: Key) -> np.ndarray:
        return self._blocks[key]

    def terms(self) -> List[Tuple[Key, np.ndarray]]:
        return list(self._blocks.items())

    def residual(self, values: Mapping[Key, np.ndarray]) -> np.ndarray:
        """Whitened residual A x - b at `values`."""
        r = -self.b.copy()
        for k, m in self._blocks.items():
            r += m @ np.atleast_1d(values[k])
        return r

    def error(self, values: Mapping[Key, np.ndarray]) -> float:
        """0.5 * ||A x - b||^2 at `values`."""
        r = self.residual(values)
        return 0.5 * float(r @ r)

    def eliminate(self, frontal_keys: Sequence[Key]):
        """Eliminate `frontal_keys` from this factor alone."""
        return eliminate_gaussian([self], frontal_keys)

    def equals(self, other: "JacobianFactor", tol: float = 1e-9) -> bool:
        if not isinstance(other, JacobianFactor) or self.keys != other.keys:
            return False
        if self.b.shape != other.b.shape or not np.allclose(self.b, other.b, atol=tol):
            return False
        return all(np.allclose(self.A(k), other.A(k), atol=tol) for k in self.keys)

    def __repr__(self) -> str:
        names = " ".join(key_name(k) for k in self.keys)
        return f"JacobianFactor([{names}], rows={self.rows})"


class GaussianConditional:
    """
    Gaussian conditional on frontal keys given continuous parents:

        R x_f + S x_p = d

    with R upper triangular with positive diagonal.

    Attributes:
        frontals: Frontal keys, in elimination order
        parents: Parent keys
        R: (nf, nf) upper triangular matrix
        S: (nf, np) matrix over the stacked parents
        d: (nf,) right-hand side
        dims: Dimension of each frontal and parent key
    """
    kind = ConditionalKind.CONTINUOUS

    def __init__(
        self,
        frontals: Sequence[Key],
        parents: Sequence[Key],
        R: np.ndarray,
        S: np.ndarray,
        d: np.ndarray,
        dims: Mapping[Key, int],
    ):
        self.frontals: Tuple[Key, ...] = tuple(frontals)
        self.parents: Tuple[Key, ...] = tuple(parents)
        self.R = np.asarray(R, dtype=np.float64)
        self.S = np.asarray(S, dtype=np.float64).reshape(self.R.shape[0], -1)
        self.d = np.asarray(d, dtype=np.float64).ravel()
        self.dims = {k: int(dims[k]) for k in self.frontals + self.parents}

    @property
    def keys(self) -> Tuple[Key, ...]:
        return self.frontals + self.parents

    def _offsets(self, keys: Sequence[Key]) -> Dict[Key, Tuple[int, int]]:
        out = {}
        o = 0
        for k in keys:
            out[k] = (o, o + self.dims[k])
            o += self.dims[k]
        return out

    def R_block(self, frontal: Key) -> np.ndarray:
        """Columns of R belonging to one frontal key."""
        lo, hi = self._offsets(self.frontals)[frontal]
        return self.R[:, lo:hi]

    def S_block(self, parent: Key) -> np.ndarray:
        """Columns of S belonging to one parent key."""
        lo, hi = self._offsets(self.parents)[parent]
        return self.S[:, lo:hi]

    def solve(self, parent_values: Mapping[Key, np.ndarray]) -> Dict[Key, np.ndarray]:
        """
        Back-substitute: x_f = R^{-1} (d - S x_p).

        Args:
            parent_values: Values for every parent key

        Returns:
            Values for the frontal keys
        """
        rhs = self.d.copy()
        if self.parents:
            xp = np.concatenate([np.atleast_1d(parent_values[k]) for k in self.parents])
            rhs -= self.S @ xp
        x = solve_triangular(self.R, rhs, lower=False)
        return {k: x[lo:hi] for k, (lo, hi) in self._offsets(self.frontals).items()}

    def to_factor(self) -> JacobianFactor:
        """The conditional as a Jacobian factor on frontals and parents."""
        terms = [(k, self.R_block(k)) for k in self.frontals]
        terms += [(k, self.S_block(k)) for k in self.parents]
        return JacobianFactor(terms, self.d)

    def equals(self, other: "GaussianConditional", tol: float = 1e-9) -> bool:
        return (
            isinstance(other, GaussianConditional)
            and self.frontals == other.frontals
            and self.parents == other.parents
            and self.R.shape == other.R.shape
            and self.S.shape == other.S.shape
            and np.allclose(self.R, other.R, atol=tol)
            and np.allclose(self.S, other.S, atol=tol)
            and np.allclose(self.d, other.d, atol=tol)
        )

    def __repr__(self) -> str:
        f = " ".join(key_name(k) for k in self.frontals)
        p = " ".join(key_name(k) for k in self.parents)
        return f"GaussianConditional(p({f} | {p}))" if p else f"GaussianConditional(p({f}))"


class GaussianBayesNet:
    """Gaussian conditionals in elimination order (frontals before parents)."""

    def __init__(self, conditionals: Iterable[GaussianConditional] = ()):
        self.conditionals: List[GaussianConditional] = list(conditionals)

    def __len__(self) -> int:
        return len(self.conditionals)

    def __iter__(self):
        return iter(self.conditionals)

    def __getitem__(self, i: int) -> GaussianConditional:
        return self.conditionals[i]

    def optimize(self) -> Dict[Key, np.ndarray]:
        """Most probable values, by back-substitution from the last conditional."""
        values: Dict[Key, np.ndarray] = {}
        for c in reversed(self.conditionals):
            values.update(c.solve(values))
        return values

    def error(self, values: Mapping[Key, np.ndarray]) -> float:
        """Sum of the conditionals' errors; 0 at the result of optimize()."""
        return sum(c.to_factor().error(values) for c in self.conditionals)

    def equals(self, other: "GaussianBayesNet", tol: float = 1e-9) -> bool:
        return len(self) == len(other) and all(a.equals(b, tol) for a, b in zip(self, other))

    def __repr__(self) -> str:
        return f"GaussianBayesNet(size={len(self)})"


def collect_dims(factors: Iterable[JacobianFactor], dims: Optional[Mapping[Key, int]] = None) -> Dict[Key, int]:
    """Dimension of every key, checked for consistency across factors."""
    out: Dict[Key, int] = dict(dims or {})
    for f in factors:
        for k, d in f.dims.items():
            seen = out.setdefault(k, d)
            if seen != d:
                raise ValueError(f"Key {key_name(k)} used with dimensions {seen} and {d}")
    return out


def eliminate_gaussian(
    factors: Sequence[JacobianFactor],
    frontal_keys: Sequence[Key],
    separator_keys: Optional[Sequence[Key]] = None,
    dims: Optional[Mapping[Key, int]] = None,
    rank_tol: float = 1e-9,
) -> Tuple[GaussianConditional, Optional[JacobianFactor], float]:
    """
    Eliminate frontal keys from a set of Jacobian factors by QR.

    Args:
        factors: Factors touching the frontal keys
        frontal_keys: Keys to eliminate, in order
        separator_keys: Columns of the conditional's parents and of the
            remaining factor. Defaults to the other keys of `factors`, sorted;
            pass them explicitly to give every branch of a mixture the same
            columns.
        dims: Dimensions of keys that may not appear in `factors`
        rank_tol: Relative tolerance on the diagonal of R

    Returns:
        (conditional, remaining, scalar). `remaining` is None when no
        separator is left; `scalar` is exp(-e) of the residual error e in
        that case and 1.0 otherwise.

    Raises:
        SingularElimination: the frontal block is rank deficient
    """
    frontal_keys = tuple(frontal_keys)
    all_dims = collect_dims(factors, dims)
    if separator_keys is None:
        touched = {k for f in factors for k in f.keys}
        separator_keys = sorted(touched - set(frontal_keys))
    separator_keys = tuple(separator_keys)
    for k in frontal_keys + separator_keys:
        if k not in all_dims:
            raise ValueError(f"Unknown dimension for key {key_name(k)}")

    columns = frontal_keys + separator_keys
    offsets: Dict[Key, int] = {}
    n = 0
    for k in columns:
        offsets[k] = n
        n += all_dims[k]
    nf = sum(all_dims[k] for k in frontal_keys)

    rows = sum(f.rows for f in factors)
    M = np.zeros((rows, n + 1))
    r0 = 0
    for f in factors:
        for k, a in f.terms():
            if k not in offsets:
                raise ValueError(f"Factor key {key_name(k)} is neither frontal nor separator")
            M[r0:r0 + f.rows, offsets[k]:offsets[k] + a.shape[1]] = a
        M[r0:r0 + f.rows, n] = f.b
        r0 += f.rows

    if rows < nf:
        raise SingularElimination(frontal_keys, detail=f"{rows} rows for {nf} frontal dimensions")

    _, r = qr(M, mode="economic")
    for i in range(min(nf, r.shape[0])):
        if r[i, i] < 0.0:
            r[i, :] = -r[i, :]
    scale = max(1.0, float(np.max(np.abs(M)))) if M.size else 1.0
    diag = np.abs(np.diag(r[:nf, :nf]))
    if diag.size < nf or np.any(diag <= rank_tol * scale):
        raise SingularElimination(frontal_keys, detail="rank deficient frontal block")

    R = r[:nf, :nf]
    S = r[:nf, nf:n]
    d = r[:nf, n]
    conditional = GaussianConditional(frontal_keys, separator_keys, R, S, d, all_dims)

    rest = r[nf:, :]
    if separator_keys:
        terms = []
        for k in separator_keys:
            lo = offsets[k]
            terms.append((k, rest[:, lo:lo + all_dims[k]]))
        remaining = JacobianFactor(terms, rest[:, n])
        scalar = 1.0
    else:
        remaining = None
        residual = rest[:, n]
        scalar = float(np.exp(-0.5 * float(residual @ residual)))

    _logger.debug(
        "Eliminated [%s] from %d factors: %d separator keys, scalar %.6g",
        " ".join(key_name(k) for k in frontal_keys), len(factors), len(separator_keys), scalar,
    )
    return conditional, remaining, scalar
